"""Append-only status history for Customers and Cases.

Writers only ever append. Every helper returns a new list so a rejected write
leaves the caller's snapshot untouched.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, TypeVar, Union

from lifecycle_service.core.transitions import Transition
from lifecycle_service.models.case import Case, CaseState, HistoryRecord
from lifecycle_service.models.customer import Customer, CustomerStatus, StatusHistoryEntry
from lifecycle_service.utils.time import ensure_utc, utcnow

logger = logging.getLogger(__name__)

E = TypeVar("E", StatusHistoryEntry, HistoryRecord)


def _monotonic_date(history: Sequence[Union[StatusHistoryEntry, HistoryRecord]], at: Optional[datetime]) -> datetime:
    """Clamp ``at`` so history dates never go backwards."""
    at = ensure_utc(at) or utcnow()
    if history and at < history[-1].date:
        logger.debug(f"Clamping history date {at.isoformat()} to {history[-1].date.isoformat()}")
        return history[-1].date
    return at


def _append(history: Sequence[E], entry: E) -> List[E]:
    if history and entry.date < history[-1].date:
        raise ValueError("History entries must be appended in chronological order")
    return [*history, entry]


def initial_status_entry(
    status: CustomerStatus,
    actor: Optional[str] = None,
    at: Optional[datetime] = None,
) -> StatusHistoryEntry:
    """The entry every new Customer starts with."""
    return StatusHistoryEntry(status=status, previous_status=None, date=at or utcnow(), changed_by=actor)


def append_status_entry(
    history: Sequence[StatusHistoryEntry],
    transition: Transition[CustomerStatus],
) -> List[StatusHistoryEntry]:
    """Return ``history`` with an entry for ``transition`` appended."""
    entry = StatusHistoryEntry(
        status=transition.to_state,
        previous_status=transition.from_state,
        date=_monotonic_date(history, transition.at),
        changed_by=transition.actor,
    )
    return _append(history, entry)


def initial_case_record(
    case_id: str,
    state: CaseState,
    actor: Optional[str] = None,
    at: Optional[datetime] = None,
) -> HistoryRecord:
    return HistoryRecord(case_id=case_id, state_from=None, state_to=state, date=at or utcnow(), actor=actor)


def case_record_for(
    history: Sequence[HistoryRecord],
    transition: Transition[CaseState],
) -> HistoryRecord:
    """Build (but do not append) the record for a case transition."""
    return HistoryRecord(
        case_id=transition.entity_id,
        state_from=transition.from_state,
        state_to=transition.to_state,
        date=_monotonic_date(history, transition.at),
        actor=transition.actor,
    )


def append_case_record(history: Sequence[HistoryRecord], record: HistoryRecord) -> List[HistoryRecord]:
    """Return ``history`` with ``record`` appended."""
    return _append(history, record)


def last_change_at(entity: Union[Customer, Case]) -> datetime:
    """When the entity entered its current state; drives staleness alerts."""
    if isinstance(entity, Customer):
        return entity.last_status_change_at
    if entity.history:
        return max(entity.history[-1].date, entity.last_state_change)
    return entity.last_state_change


def verify_history(customer: Customer) -> List[str]:
    """List violations of the customer history invariants (empty when healthy)."""
    problems = []
    history = customer.status_history
    if not history:
        problems.append("status history is empty")
        return problems
    if history[-1].status != customer.status:
        problems.append(
            f"last history status {history[-1].status.value} != current status {customer.status.value}"
        )
    for earlier, later in zip(history, history[1:]):
        if later.date < earlier.date:
            problems.append(f"history out of order at {later.date.isoformat()}")
            break
    return problems


def log_transition(kind: str, transition: Transition, version: Optional[int] = None) -> None:
    """Emit the audit line for an accepted transition."""
    from_state = getattr(transition.from_state, "value", transition.from_state)
    to_state = getattr(transition.to_state, "value", transition.to_state)
    suffix = f" (version {version})" if version is not None else ""
    logger.info(
        f"{kind} {transition.entity_id}: {from_state} -> {to_state} by {transition.actor or 'unknown'}{suffix}"
    )
