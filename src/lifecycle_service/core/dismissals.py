"""Dismissal cache: hides an alert id from one viewer for a fixed time after they dismiss it."""

import json
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Set

from lifecycle_service.infrastructure.storage.key_value import KeyValueStore
from lifecycle_service.models.viewer import ViewerContext
from lifecycle_service.utils.time import ensure_utc, utcnow

logger = logging.getLogger(__name__)

STORAGE_KEY = "dismissed-alerts"
DEFAULT_TTL = timedelta(days=7)


class DismissalCache:
    """
    Maps alert id to the time it was dismissed.

    Expired records are pruned on every read and write. Storage that cannot be
    read or parsed is treated as empty. Each viewer's records live under their
    own key; see ``for_viewer``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
        key: str = STORAGE_KEY,
    ):
        self.store = store
        self.ttl = ttl
        self.clock = clock
        self.key = key

    def for_viewer(self, viewer: ViewerContext) -> "DismissalCache":
        """The cache holding ``viewer``'s own dismissals, on the same storage."""
        return DismissalCache(self.store, self.ttl, self.clock, key=f"{STORAGE_KEY}:{viewer.actor}")

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else self.clock()

    def _load(self) -> Dict[str, datetime]:
        try:
            raw = self.store.get(self.key)
        except OSError as e:
            logger.warning(f"Dismissal storage unreadable, treating as empty: {e}")
            return {}
        if not raw:
            return {}
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            return {
                str(alert_id): ensure_utc(datetime.fromisoformat(stamp))
                for alert_id, stamp in data.items()
            }
        except (TypeError, ValueError) as e:
            logger.warning(f"Dismissal storage corrupted, treating as empty: {e}")
            return {}

    def _save(self, records: Dict[str, datetime]) -> None:
        payload = json.dumps({alert_id: stamp.isoformat() for alert_id, stamp in records.items()})
        try:
            self.store.set(self.key, payload)
        except OSError as e:
            logger.warning(f"Could not persist dismissals: {e}")

    def _live(self, now: datetime) -> Dict[str, datetime]:
        """Load, drop expired records, write back if anything was dropped."""
        records = self._load()
        live = {alert_id: at for alert_id, at in records.items() if now - at <= self.ttl}
        if len(live) != len(records):
            logger.debug(f"Pruned {len(records) - len(live)} expired dismissal(s)")
            self._save(live)
        return live

    def dismiss(self, alert_id: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        records = self._live(now)
        records[alert_id] = now
        self._save(records)
        logger.info(f"Dismissed alert {alert_id}")

    def is_dismissed(self, alert_id: str, now: Optional[datetime] = None) -> bool:
        """True iff a record exists and is no older than the TTL."""
        return alert_id in self._live(self._now(now))

    def dismissed_ids(self, now: Optional[datetime] = None) -> Set[str]:
        return set(self._live(self._now(now)))

    def prune(self, now: Optional[datetime] = None) -> int:
        """Drop expired records; returns how many remain."""
        return len(self._live(self._now(now)))

    def clear(self) -> None:
        self.store.delete(self.key)
