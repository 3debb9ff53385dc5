"""Alert models.

Alerts are never stored. They are recomputed from entity snapshots on every
pass, so an alert's id must depend only on the condition it describes.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel


class AlertKind(str, Enum):
    DEADLINE = "deadline"
    FOLLOW = "follow"
    RESPOND = "respond"
    MEETING = "meeting"


class AlertSeverity(str, Enum):
    WARN = "warn"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return 0 if self is AlertSeverity.CRITICAL else 1


def make_alert_id(subject_id: str, tag: str, bucket: Union[str, int, float]) -> str:
    """Deterministic alert identity: ``{subject}-{tag}-{bucket}``.

    >>> make_alert_id("C1", "wait", 48)
    'C1-wait-48'
    """
    if isinstance(bucket, float) and bucket.is_integer():
        bucket = int(bucket)
    return f"{subject_id}-{tag}-{bucket}"


class Alert(BaseModel):
    """A derived, non-persistent notice."""

    id: str
    subject_id: str
    kind: AlertKind
    severity: AlertSeverity
    message: str

    # Routing fields consulted by the visibility filter
    customer_id: Optional[str] = None
    case_id: Optional[str] = None
    meeting_id: Optional[str] = None
    notification_id: Optional[str] = None
    assigned_to: str = ""
    case_type: Optional[str] = None
    # Set on meeting alerts only
    created_by: Optional[str] = None

    class Config:
        frozen = True
