"""Optimistic concurrency for customer mutations.

The store owns the version check; this controller owns the caller-side view:
what the caller last saw, the optimistic patch, and what to do when the store
disagrees. It never retries.
"""

import logging
from typing import Any, Dict, Optional

from lifecycle_service.core.errors import ConflictError, NotFoundError, TransportError
from lifecycle_service.core.refresh import DataUpdateBroadcaster
from lifecycle_service.infrastructure.persistence.practice_store import PracticeStore, apply_patch
from lifecycle_service.models.customer import Customer

logger = logging.getLogger(__name__)


class OptimisticConcurrencyController:
    """Submits versioned customer patches and keeps local snapshots in step."""

    def __init__(self, store: PracticeStore, broadcaster: Optional[DataUpdateBroadcaster] = None):
        self.store = store
        self.broadcaster = broadcaster
        self._known: Dict[str, Customer] = {}

    def remember(self, customer: Customer) -> Customer:
        self._known[customer.customer_id] = customer
        return customer

    def known(self, customer_id: str) -> Optional[Customer]:
        """The locally known snapshot, if any."""
        return self._known.get(customer_id)

    async def load(self, customer_id: str) -> Customer:
        """Fetch the authoritative customer and remember it."""
        return self.remember(await self.store.get_customer(customer_id))

    async def submit(self, base: Customer, patch: Dict[str, Any]) -> Customer:
        """
        Write ``patch`` against the version of ``base``.

        Args:
            base: The snapshot the patch was computed from
            patch: Field updates (status and history travel together)

        Returns:
            The authoritative customer after the write

        Raises:
            ConflictError: Another writer got there first; ``latest`` holds
                the reloaded customer and the local snapshot is replaced by it
            TransportError: The store could not be reached; the local
                snapshot is restored to ``base``
        """
        customer_id = base.customer_id
        previous = self._known.get(customer_id, base)

        # Optimistic local view; the version only moves when the store agrees
        self._known[customer_id] = apply_patch(base, patch, base.version)

        try:
            saved = await self.store.update_customer(customer_id, patch, expected_version=base.version)
        except ConflictError as e:
            logger.warning(f"Discarding optimistic update of customer {customer_id}: {e}")
            self._known.pop(customer_id, None)
            e.latest = await self._reload(customer_id, e.latest)
            raise
        except TransportError:
            logger.error(f"Store unreachable while updating customer {customer_id}; local state restored")
            self._known[customer_id] = previous
            raise

        self.remember(saved)
        if self.broadcaster is not None:
            await self.broadcaster.publish(f"customer:{customer_id}")
        return saved

    async def _reload(self, customer_id: str, latest: Optional[Customer]) -> Optional[Customer]:
        if latest is not None:
            return self.remember(latest)
        try:
            return await self.load(customer_id)
        except (TransportError, NotFoundError) as e:
            logger.warning(f"Could not reload customer {customer_id} after conflict: {e}")
            return None
