"""Customer lifecycle: free status edit and guided advance.

Both disciplines share the same guards and the same write path: the status and
its history entry travel in one versioned patch through the concurrency
controller.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from lifecycle_service.core.concurrency import OptimisticConcurrencyController
from lifecycle_service.core.errors import ConflictError, ValidationError
from lifecycle_service.core.history import append_status_entry, initial_status_entry, log_transition
from lifecycle_service.core.transitions import AlwaysLegal, LinearSequence, Transition, check_transition
from lifecycle_service.models.customer import (
    WORKFLOW_SEQUENCE,
    AdvanceResult,
    Customer,
    CustomerStatus,
    StatusExtras,
)
from lifecycle_service.models.viewer import ViewerContext, same_person, strip_professional_title
from lifecycle_service.utils.time import utcnow

logger = logging.getLogger(__name__)

FREE_EDIT = AlwaysLegal(CustomerStatus)
GUIDED_ADVANCE = LinearSequence(WORKFLOW_SEQUENCE)

NO_NEXT_STEP = "no next step"


class CustomerLifecycleManager:
    """Business logic for customer status changes."""

    def __init__(
        self,
        controller: OptimisticConcurrencyController,
        closer_roster: List[str],
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize with the concurrency controller and the closer roster.

        Args:
            controller: Controller wrapping the authoritative store
            closer_roster: Names allowed as assignee when a non-admin confirms a client
            clock: Source of history and confirmation timestamps
        """
        self.controller = controller
        self.closer_roster = [strip_professional_title(name) for name in closer_roster]
        self.clock = clock

    @property
    def store(self):
        return self.controller.store

    async def create_customer(self, initial: Customer, viewer: ViewerContext) -> Customer:
        """Create a customer with its initial history entry and version 1.

        Creating directly in CLIENT or ON_HOLD is subject to the usual guards.
        """
        now = self.clock()
        extras = StatusExtras(assigned_to=initial.assigned_to or None, follow_up_date=initial.follow_up_date)
        fields = self._entry_fields(initial.customer_id, initial.status, None, extras, viewer)

        data = initial.model_dump()
        data.update(fields)
        data.update(
            status_history=[initial_status_entry(initial.status, viewer.actor, now)],
            version=1,
            created_by=initial.created_by or viewer.actor,
        )
        if initial.status == CustomerStatus.CLIENT:
            data["confirmed_at"] = initial.confirmed_at or now
        customer = Customer.model_validate(data)

        saved = self.controller.remember(await self.store.create_customer(customer))
        logger.info(f"Created customer {saved.customer_id} in {saved.status.value} by {viewer.actor}")
        if self.controller.broadcaster is not None:
            await self.controller.broadcaster.publish(f"customer:{saved.customer_id}")
        return saved

    async def set_customer_status(
        self,
        customer_id: str,
        status: CustomerStatus,
        viewer: ViewerContext,
        extras: Optional[StatusExtras] = None,
        expected_version: Optional[int] = None,
    ) -> Customer:
        """Free edit: move the customer to any status.

        Raises:
            ValidationError: A guard failed (nothing is sent to the store)
            ConflictError: The customer changed since ``expected_version``
        """
        base = await self._base(customer_id, expected_version)
        if status == base.status:
            logger.debug(f"Customer {customer_id} already in {status.value}; nothing to record")
            return base
        transition = check_transition(
            FREE_EDIT, Transition(customer_id, base.status, status, viewer.actor, self.clock())
        )
        return await self._apply(base, transition, extras or StatusExtras(), viewer)

    async def advance_customer(
        self,
        customer_id: str,
        viewer: ViewerContext,
        extras: Optional[StatusExtras] = None,
        expected_version: Optional[int] = None,
    ) -> AdvanceResult:
        """Guided advance to the next status in the workflow sequence.

        At CLIENT, or in a status outside the sequence, nothing is written and
        the result reports ``advanced=False``.
        """
        base = await self._base(customer_id, expected_version)
        next_status = GUIDED_ADVANCE.next(base.status)
        if next_status is None:
            logger.info(f"Customer {customer_id} in {base.status.value} has no next step")
            return AdvanceResult(advanced=False, customer=base, reason=NO_NEXT_STEP)

        transition = check_transition(
            GUIDED_ADVANCE, Transition(customer_id, base.status, next_status, viewer.actor, self.clock())
        )
        saved = await self._apply(base, transition, extras or StatusExtras(), viewer)
        return AdvanceResult(advanced=True, customer=saved)

    async def get_history(self, customer_id: str):
        return await self.store.get_customer_history(customer_id)

    async def _base(self, customer_id: str, expected_version: Optional[int]) -> Customer:
        """Load the live customer and check it against the version the caller saw.

        Without ``expected_version`` the last locally known version stands in.
        """
        known = self.controller.known(customer_id)
        if expected_version is None and known is not None:
            expected_version = known.version
        base = await self.controller.load(customer_id)
        if expected_version is not None and expected_version != base.version:
            logger.warning(
                f"Stale write on customer {customer_id}: caller saw version {expected_version}, "
                f"live is {base.version}"
            )
            raise ConflictError(customer_id, expected_version, base.version, base)
        return base

    async def _apply(
        self,
        base: Customer,
        transition: Transition[CustomerStatus],
        extras: StatusExtras,
        viewer: ViewerContext,
    ) -> Customer:
        patch = self._entry_fields(base.customer_id, transition.to_state, base, extras, viewer)
        if transition.to_state == CustomerStatus.CLIENT and base.confirmed_at is None:
            patch["confirmed_at"] = transition.at
        if base.status == CustomerStatus.ON_HOLD:
            patch["follow_up_date"] = None
        patch["status"] = transition.to_state
        patch["status_history"] = append_status_entry(base.status_history, transition)

        saved = await self.controller.submit(base, patch)
        log_transition("Customer", transition, saved.version)
        return saved

    def _entry_fields(
        self,
        customer_id: str,
        target: CustomerStatus,
        base: Optional[Customer],
        extras: StatusExtras,
        viewer: ViewerContext,
    ) -> Dict[str, Any]:
        """Check the guards for entering ``target`` and return the fields to write."""
        fields: Dict[str, Any] = {}
        if extras.assigned_to is not None:
            fields["assigned_to"] = strip_professional_title(extras.assigned_to)

        if target == CustomerStatus.CLIENT:
            fields["assigned_to"] = self._closer_for(customer_id, base, extras, viewer)
        if target == CustomerStatus.ON_HOLD:
            fields["follow_up_date"] = self._follow_up_for(customer_id, extras.follow_up_date)
        return fields

    def _closer_for(
        self,
        customer_id: str,
        base: Optional[Customer],
        extras: StatusExtras,
        viewer: ViewerContext,
    ) -> str:
        candidate = strip_professional_title(extras.assigned_to or (base.assigned_to if base else ""))
        if viewer.may_confirm_without_roster():
            if not candidate:
                raise ValidationError(f"Confirming {customer_id} as client requires an assignee", "assigned_to")
            return candidate

        for closer in self.closer_roster:
            if same_person(candidate, closer):
                return closer
        raise ValidationError(
            f"Confirming {customer_id} as client requires an assignee from: {', '.join(self.closer_roster)}",
            "assigned_to",
        )

    @staticmethod
    def _follow_up_for(customer_id: str, follow_up_date: Optional[datetime]) -> datetime:
        if follow_up_date is None:
            raise ValidationError(f"Putting {customer_id} on hold requires a follow-up date", "follow_up_date")
        return follow_up_date
