"""Practice business logic manager - the operations the API exposes."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from lifecycle_service.core.alerts import (
    AlertThresholds,
    PracticeSnapshot,
    compute_alerts,
    on_hold_alert_id,
)
from lifecycle_service.core.case_lifecycle import CaseLifecycleManager
from lifecycle_service.core.concurrency import OptimisticConcurrencyController
from lifecycle_service.core.customer_lifecycle import CustomerLifecycleManager
from lifecycle_service.core.dismissals import DismissalCache
from lifecycle_service.core.errors import NotFoundError, TransportError
from lifecycle_service.core.refresh import AlertRefresher, DataUpdateBroadcaster
from lifecycle_service.infrastructure.persistence.practice_store import PracticeStore
from lifecycle_service.models.alert import Alert, make_alert_id
from lifecycle_service.models.case import Case, CaseState, CaseType
from lifecycle_service.models.customer import (
    AdvanceResult,
    Customer,
    CustomerStatus,
    StatusExtras,
    StatusHistoryEntry,
)
from lifecycle_service.models.viewer import ViewerContext
from lifecycle_service.utils.time import utcnow

logger = logging.getLogger(__name__)


class PracticeManager:
    """Business logic for the practice lifecycle.

    Wires the customer and case state machines, the alert engine and the
    dismissal cache around one PracticeStore.
    """

    def __init__(
        self,
        store: PracticeStore,
        dismissals: DismissalCache,
        closer_roster: List[str],
        thresholds: Optional[AlertThresholds] = None,
        clock: Callable[[], datetime] = utcnow,
        poll_interval_seconds: float = 60.0,
    ):
        """Initialize practice manager.

        Args:
            store: Authoritative store (InMemory, SQL or HTTP)
            dismissals: Dismissal cache; each viewer gets their own records
            closer_roster: Assignees allowed when a non-admin confirms a client
            thresholds: Alert thresholds (defaults when omitted)
            clock: Source of "now" for history entries and alert evaluation
            poll_interval_seconds: Period of the background alert refresh
        """
        self.store = store
        self.dismissals = dismissals
        self.thresholds = thresholds or AlertThresholds()
        self.clock = clock

        self.broadcaster = DataUpdateBroadcaster()
        self.controller = OptimisticConcurrencyController(store, self.broadcaster)
        self.customers = CustomerLifecycleManager(self.controller, closer_roster, clock)
        self.cases = CaseLifecycleManager(store, self.broadcaster, clock)
        self.refresher = AlertRefresher(self.load_snapshot, self.broadcaster, poll_interval_seconds)

    # Customers

    async def create_customer(self, initial: Customer, viewer: ViewerContext) -> Customer:
        return await self.customers.create_customer(initial, viewer)

    async def list_customers(self, viewer: ViewerContext, status: Optional[CustomerStatus] = None) -> List[Customer]:
        customers = await self.store.list_customers()
        if status is not None:
            customers = [c for c in customers if c.status == status]
        return [c for c in customers if viewer.can_see(c.assigned_to)]

    async def get_customer_history(self, customer_id: str, viewer: ViewerContext) -> List[StatusHistoryEntry]:
        """History of a customer the viewer can see; others read as not found."""
        customer = await self.store.get_customer(customer_id)
        if not viewer.can_see(customer.assigned_to):
            raise NotFoundError("Customer", customer_id)
        return await self.customers.get_history(customer_id)

    async def advance_customer(
        self,
        customer_id: str,
        viewer: ViewerContext,
        extras: Optional[StatusExtras] = None,
        expected_version: Optional[int] = None,
    ) -> AdvanceResult:
        return await self.customers.advance_customer(customer_id, viewer, extras, expected_version)

    async def set_customer_status(
        self,
        customer_id: str,
        status: CustomerStatus,
        viewer: ViewerContext,
        extras: Optional[StatusExtras] = None,
        expected_version: Optional[int] = None,
    ) -> Customer:
        return await self.customers.set_customer_status(customer_id, status, viewer, extras, expected_version)

    # Cases

    async def create_case(self, initial: Case, viewer: ViewerContext) -> Case:
        return await self.cases.create_case(initial, viewer)

    async def list_cases(
        self,
        viewer: ViewerContext,
        case_type: Optional[CaseType] = None,
        customer_id: Optional[str] = None,
    ) -> List[Case]:
        cases = await self.store.list_cases(case_type=case_type, customer_id=customer_id)
        return [c for c in cases if viewer.can_see_case(c)]

    async def change_case_state(self, case_id: str, new_state: CaseState, viewer: ViewerContext) -> Case:
        return await self.cases.change_case_state(case_id, new_state, viewer)

    async def set_case_ready_for_work(self, case_id: str, ready: bool, viewer: ViewerContext) -> Case:
        return await self.cases.set_case_ready_for_work(case_id, ready, viewer)

    # Alerts

    async def load_snapshot(self) -> PracticeSnapshot:
        """Load every alert input from the store concurrently."""
        customers, cases, meetings, notifications = await asyncio.gather(
            self.store.list_customers(),
            self.store.list_cases(),
            self.store.list_meetings(),
            self.store.get_customer_notifications(),
        )
        return PracticeSnapshot(customers=customers, cases=cases, meetings=meetings, notifications=notifications)

    async def compute_alerts(self, viewer: ViewerContext, now: Optional[datetime] = None) -> List[Alert]:
        """Evaluate the rules on the published snapshot for ``viewer``."""
        now = now or self.clock()
        snapshot = await self.refresher.current()
        dismissed = self.dismissals.for_viewer(viewer).dismissed_ids(now)
        alerts = compute_alerts(snapshot, now, dismissed, viewer, self.thresholds)
        logger.debug(f"Computed {len(alerts)} alert(s) for {viewer.actor}")
        return alerts

    async def dismiss_alert(self, alert_id: str, viewer: ViewerContext, now: Optional[datetime] = None) -> None:
        """Hide ``alert_id`` from ``viewer`` for the dismissal TTL.

        Alerts raised from a backend notification also delete that
        notification, and the customer's on-hold fallback is dismissed with it
        so the same condition does not reappear under another id. If the
        delete fails the local dismissal still stands.
        """
        now = now or self.clock()
        dismissals = self.dismissals.for_viewer(viewer)
        dismissals.dismiss(alert_id, now)
        logger.info(f"Alert {alert_id} dismissed by {viewer.actor}")

        if "-notification-" not in alert_id:
            return
        try:
            notifications = await self.store.get_customer_notifications()
            for notification in notifications:
                if make_alert_id(notification.customer_id, "notification", notification.notification_id) != alert_id:
                    continue
                fallback_id = await self._on_hold_alert_id(notification.customer_id)
                if fallback_id is not None:
                    dismissals.dismiss(fallback_id, now)
                await self.store.delete_customer_notification(notification.notification_id)
                logger.info(f"Deleted backend notification {notification.notification_id}")
                await self.broadcaster.publish(f"notification:{notification.notification_id}")
                break
        except (TransportError, NotFoundError) as e:
            logger.error(f"Could not delete backend notification for alert {alert_id}: {e}")

    async def _on_hold_alert_id(self, customer_id: str) -> Optional[str]:
        try:
            return on_hold_alert_id(await self.store.get_customer(customer_id))
        except NotFoundError:
            return None

    async def start(self) -> None:
        self.refresher.start()

    async def close(self) -> None:
        await self.refresher.stop()
        await self.store.close()
