"""Alert refresh triggers: data-updated broadcast, explicit refresh and poll."""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Union

from lifecycle_service.core.alerts import PracticeSnapshot

logger = logging.getLogger(__name__)

Listener = Callable[[str], Union[None, Awaitable[None]]]


class DataUpdateBroadcaster:
    """Fan-out of "data updated" events after every successful mutation."""

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def publish(self, reason: str) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(reason)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Data-updated listener failed for '{reason}': {e}")


class AlertRefresher:
    """
    Reloads the alert inputs and publishes the newest snapshot.

    Alert queries evaluate the rules against the published snapshot; each
    trigger (a data-updated broadcast, an explicit refresh, the poll) replaces
    it. Every pass takes a generation number when it starts. A pass that
    finishes after a newer pass has already published is discarded, so a slow,
    stale pass never overwrites a fresher snapshot.
    """

    def __init__(
        self,
        load: Callable[[], Awaitable[PracticeSnapshot]],
        broadcaster: Optional[DataUpdateBroadcaster] = None,
        interval_seconds: float = 60.0,
    ):
        self.load = load
        self.interval_seconds = interval_seconds
        self.snapshot: Optional[PracticeSnapshot] = None
        self._generation = 0
        self._published_generation = 0
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        if broadcaster is not None:
            self._unsubscribe = broadcaster.subscribe(self._on_data_updated)

    @property
    def published_generation(self) -> int:
        return self._published_generation

    async def refresh(self) -> PracticeSnapshot:
        """Reload now; returns the currently published snapshot."""
        self._generation += 1
        generation = self._generation
        snapshot = await self.load()
        if generation <= self._published_generation:
            logger.debug(
                f"Dropping stale alert pass {generation} (pass {self._published_generation} already published)"
            )
            return self.snapshot
        self._published_generation = generation
        self.snapshot = snapshot
        return snapshot

    async def current(self) -> PracticeSnapshot:
        """The published snapshot; the first call loads one."""
        if self.snapshot is None:
            return await self.refresh()
        return self.snapshot

    async def _on_data_updated(self, reason: str) -> None:
        logger.debug(f"Refreshing alerts after update: {reason}")
        await self.refresh()

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Periodic alert refresh failed: {e}")

    def start(self) -> None:
        """Start the periodic poll on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._poll())
            logger.info(f"Alert poll started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Alert poll stopped")
