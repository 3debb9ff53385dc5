"""Meeting and backend notification models (read-only inputs to the alert engine)."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from lifecycle_service.utils.time import ensure_utc, utcnow


class MeetingStatus(str, Enum):
    SCHEDULED = "scheduled"
    DONE = "done"
    CANCELLED = "cancelled"


class Meeting(BaseModel):
    """A consultation or appointment on the practice calendar."""

    meeting_id: str
    title: str = "Consultation"
    customer_id: Optional[str] = None
    starts_at: datetime
    ends_at: Optional[datetime] = None
    assigned_to: str = ""
    location: Optional[str] = None
    status: MeetingStatus = MeetingStatus.SCHEDULED
    created_by: Optional[str] = None

    @field_validator("starts_at", "ends_at")
    @classmethod
    def timestamps_are_utc(cls, v):
        return ensure_utc(v)

    @property
    def is_open(self) -> bool:
        """Still expected to happen (not done, not cancelled)."""
        return self.status == MeetingStatus.SCHEDULED

    class Config:
        from_attributes = True


class CustomerNotification(BaseModel):
    """Notification produced by the backend notification sweep."""

    notification_id: str
    customer_id: str
    message: str = ""
    kind: str = "follow"
    severity: str = "warn"
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def created_at_is_utc(cls, v):
        return ensure_utc(v)

    class Config:
        from_attributes = True
