"""Generic tagged transitions with pluggable legality policies.

Customers and Cases share one transition shape; what differs is the policy:

- AlwaysLegal: any state in the allowed set (Customer free edit)
- AdjacencyTable: only the listed successors (Case)
- LinearSequence: a fixed order that yields ``next(state)`` (Customer advance)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Generic, Hashable, Iterable, List, Mapping, Optional, TypeVar

from lifecycle_service.core.errors import TransitionError
from lifecycle_service.utils.time import utcnow

S = TypeVar("S", bound=Hashable)


@dataclass(frozen=True)
class Transition(Generic[S]):
    """A requested move of one entity from one state to another."""

    entity_id: str
    from_state: S
    to_state: S
    actor: Optional[str] = None
    at: Optional[datetime] = None

    @property
    def is_noop(self) -> bool:
        return self.from_state == self.to_state

    def stamped(self) -> "Transition[S]":
        """Return a copy with ``at`` filled in."""
        if self.at is not None:
            return self
        return Transition(self.entity_id, self.from_state, self.to_state, self.actor, utcnow())


class LegalityPolicy(ABC, Generic[S]):
    """Decides which transitions are allowed."""

    @abstractmethod
    def allowed_from(self, state: S) -> FrozenSet[S]:
        """States reachable in one step from ``state``."""

    def is_legal(self, from_state: S, to_state: S) -> bool:
        return to_state in self.allowed_from(from_state)


class AlwaysLegal(LegalityPolicy[S]):
    """Operator override: any member of the state set may follow any other."""

    def __init__(self, states: Iterable[S]):
        self.states: FrozenSet[S] = frozenset(states)

    def allowed_from(self, state: S) -> FrozenSet[S]:
        return self.states - {state}


class AdjacencyTable(LegalityPolicy[S]):
    """Strict legality from an explicit state → successors table."""

    def __init__(self, table: Mapping[S, Iterable[S]]):
        self.table: Dict[S, FrozenSet[S]] = {
            state: frozenset(successors) for state, successors in table.items()
        }

    def allowed_from(self, state: S) -> FrozenSet[S]:
        return self.table.get(state, frozenset())

    def is_terminal(self, state: S) -> bool:
        return not self.allowed_from(state)


class LinearSequence(LegalityPolicy[S]):
    """A fixed forward order; only the immediate successor is legal."""

    def __init__(self, sequence: Iterable[S]):
        self.sequence: List[S] = list(sequence)

    def next(self, state: S) -> Optional[S]:
        """The state after ``state``, or None at the end or off the sequence."""
        try:
            index = self.sequence.index(state)
        except ValueError:
            return None
        if index + 1 >= len(self.sequence):
            return None
        return self.sequence[index + 1]

    def allowed_from(self, state: S) -> FrozenSet[S]:
        successor = self.next(state)
        return frozenset({successor}) if successor is not None else frozenset()


def check_transition(policy: LegalityPolicy[S], transition: Transition[S]) -> Transition[S]:
    """Validate ``transition`` against ``policy`` and return it stamped.

    Raises:
        TransitionError: If the target is not reachable from the current state
    """
    if not policy.is_legal(transition.from_state, transition.to_state):
        raise TransitionError(
            transition.entity_id,
            transition.from_state,
            transition.to_state,
            policy.allowed_from(transition.from_state),
        )
    return transition.stamped()
