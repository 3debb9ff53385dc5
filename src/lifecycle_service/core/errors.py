"""Lifecycle error taxonomy.

Nothing here is fatal to the process: every error degrades to "show a message,
keep the caller usable".
"""

from typing import Any, Iterable, Optional


class LifecycleError(Exception):
    """Base class for lifecycle engine errors."""


class ValidationError(LifecycleError):
    """A transition is missing a required field. Never sent to the store."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class TransitionError(LifecycleError):
    """Raised when a state change is not in the current state's allowed set."""

    def __init__(self, entity_id: str, current: Any, requested: Any, allowed: Iterable[Any] = ()):
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        self.allowed = sorted(_value(a) for a in allowed)
        msg = f"Cannot move {entity_id} from {_value(current)} to {_value(requested)}"
        if self.allowed:
            msg += f" (allowed: {', '.join(self.allowed)})"
        else:
            msg += f" ({_value(current)} has no further transitions)"
        super().__init__(msg)


class ConflictError(LifecycleError):
    """Version mismatch on an optimistic write. Recoverable by reloading."""

    def __init__(
        self,
        entity_id: str,
        expected_version: int,
        actual_version: Optional[int] = None,
        latest: Any = None,
    ):
        super().__init__(
            f"Conflict on {entity_id}: expected version {expected_version}, "
            f"found {actual_version if actual_version is not None else 'unknown'}"
        )
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        self.latest = latest


class TransportError(LifecycleError):
    """The authoritative store could not be reached or failed to answer."""


class NotFoundError(LifecycleError):
    """The requested entity does not exist (or is not visible)."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


def _value(item: Any) -> str:
    return str(getattr(item, "value", item))
