"""Case lifecycle: strict adjacency, no free edit."""

import logging
from datetime import datetime
from typing import Callable, FrozenSet, Optional

from lifecycle_service.core.errors import ValidationError
from lifecycle_service.core.history import case_record_for, initial_case_record, log_transition
from lifecycle_service.core.refresh import DataUpdateBroadcaster
from lifecycle_service.core.transitions import AdjacencyTable, Transition, check_transition
from lifecycle_service.infrastructure.persistence.practice_store import PracticeStore
from lifecycle_service.models.case import (
    ALLOWED_TRANSITIONS,
    INITIAL_STATE,
    Case,
    CaseStage,
    CaseState,
)
from lifecycle_service.models.viewer import ViewerContext, strip_professional_title
from lifecycle_service.utils.time import utcnow

logger = logging.getLogger(__name__)

CASE_POLICY = AdjacencyTable(ALLOWED_TRANSITIONS)


def allowed_next(case: Case) -> FrozenSet[CaseState]:
    """States the case may move to next (empty when terminal)."""
    return CASE_POLICY.allowed_from(case.state)


class CaseLifecycleManager:
    """Business logic for case creation and state changes."""

    def __init__(
        self,
        store: PracticeStore,
        broadcaster: Optional[DataUpdateBroadcaster] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.clock = clock

    async def create_case(self, initial: Case, viewer: ViewerContext) -> Case:
        """Create a case in its type's initial state with a creation record.

        Customer cases start in INTAKE, client cases in NEW.
        """
        await self.store.get_customer(initial.customer_id)

        now = self.clock()
        state = INITIAL_STATE[initial.case_type]
        data = initial.model_dump()
        data.update(
            state=state,
            last_state_change=now,
            assigned_to=strip_professional_title(initial.assigned_to),
            created_by=initial.created_by or viewer.actor,
            version=1,
            history=[initial_case_record(initial.case_id, state, viewer.actor, now)],
        )
        case = Case.model_validate(data)

        saved = await self.store.create_case(case)
        logger.info(f"Created {saved.case_type.value} case {saved.case_id} for customer {saved.customer_id}")
        await self._published(saved)
        return saved

    async def change_case_state(self, case_id: str, new_state: CaseState, viewer: ViewerContext) -> Case:
        """Move a case along its adjacency table.

        Raises:
            TransitionError: ``new_state`` is not an allowed successor (no write happens)
        """
        case = await self.store.get_case(case_id)
        if new_state == case.state:
            logger.debug(f"Case {case_id} already in {new_state.value}; nothing to record")
            return case

        transition = check_transition(
            CASE_POLICY, Transition(case_id, case.state, new_state, viewer.actor, self.clock())
        )
        record = case_record_for(case.history, transition)
        saved = await self.store.change_case_state(case_id, new_state, record)
        log_transition("Case", transition, saved.version)
        return await self._published(saved)

    async def set_case_ready_for_work(self, case_id: str, ready: bool, viewer: ViewerContext) -> Case:
        """Toggle ``ready_for_work``; not allowed while the case is still in intake.

        Raises:
            ValidationError: The case is in the INTAKE stage
        """
        case = await self.store.get_case(case_id)
        if case.stage == CaseStage.INTAKE:
            raise ValidationError(
                f"Case {case_id} is still in intake ({case.state.value}); it cannot be marked ready for work",
                "ready_for_work",
            )
        if case.ready_for_work == ready:
            return case

        saved = await self.store.update_case(case_id, {"ready_for_work": ready})
        logger.info(f"Case {case_id} ready_for_work={ready} by {viewer.actor}")
        return await self._published(saved)

    async def _published(self, case: Case) -> Case:
        if self.broadcaster is not None:
            await self.broadcaster.publish(f"case:{case.case_id}")
        return case
