"""Customer (lead / client) models.

A Customer moves through the acquisition pipeline:

  INTAKE → SEND_PROPOSAL → WAITING_APPROVAL → SEND_CONTRACT
         → WAITING_ACCEPTANCE → SEND_RESPONSE → CLIENT

ON_HOLD and ARCHIVED are parking states reachable from anywhere and reversible.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from lifecycle_service.utils.time import ensure_utc, utcnow


class CustomerStatus(str, Enum):
    """Customer lifecycle status."""

    INTAKE = "INTAKE"
    SEND_PROPOSAL = "SEND_PROPOSAL"
    WAITING_APPROVAL = "WAITING_APPROVAL"
    SEND_CONTRACT = "SEND_CONTRACT"
    WAITING_ACCEPTANCE = "WAITING_ACCEPTANCE"
    SEND_RESPONSE = "SEND_RESPONSE"
    CLIENT = "CLIENT"
    CONSULTATION_SCHEDULED = "CONSULTATION_SCHEDULED"
    CONSULTATION_DONE = "CONSULTATION_DONE"
    ON_HOLD = "ON_HOLD"
    ARCHIVED = "ARCHIVED"

    @property
    def is_parked(self) -> bool:
        """Check if this status is a parking state"""
        return self in (CustomerStatus.ON_HOLD, CustomerStatus.ARCHIVED)

    @property
    def label(self) -> str:
        return CUSTOMER_STATUS_LABELS[self]


CUSTOMER_STATUS_LABELS = {
    CustomerStatus.INTAKE: "Intake / New",
    CustomerStatus.SEND_PROPOSAL: "Send Proposal",
    CustomerStatus.WAITING_APPROVAL: "Waiting Approval",
    CustomerStatus.SEND_CONTRACT: "Send Contract",
    CustomerStatus.WAITING_ACCEPTANCE: "Waiting Acceptance",
    CustomerStatus.SEND_RESPONSE: "Send Response",
    CustomerStatus.CLIENT: "Client",
    CustomerStatus.CONSULTATION_SCHEDULED: "Consultation Scheduled",
    CustomerStatus.CONSULTATION_DONE: "Consultation Done",
    CustomerStatus.ON_HOLD: "On Hold",
    CustomerStatus.ARCHIVED: "Archived",
}

# Guided-advance order
WORKFLOW_SEQUENCE = [
    CustomerStatus.INTAKE,
    CustomerStatus.SEND_PROPOSAL,
    CustomerStatus.WAITING_APPROVAL,
    CustomerStatus.SEND_CONTRACT,
    CustomerStatus.WAITING_ACCEPTANCE,
    CustomerStatus.SEND_RESPONSE,
    CustomerStatus.CLIENT,
]


class ServiceType(str, Enum):
    """Services a customer can request."""

    VISA_C = "visa_c"
    VISA_D = "visa_d"
    RESIDENCY_PERMIT = "residency_permit"
    COMPANY_FORMATION = "company_formation"
    REAL_ESTATE = "real_estate"
    TAX_CONSULTING = "tax_consulting"
    COMPLIANCE = "compliance"


class ContactChannel(str, Enum):
    """How the lead first reached the practice."""

    PHONE_CALL = "phone_call"
    WHATSAPP = "whatsapp"
    WEBSITE = "website"
    EMAIL = "email"
    IN_PERSON = "in_person"
    REFERRAL = "referral"


class StatusHistoryEntry(BaseModel):
    """
    Record of one customer status change.
    Immutable once written; the creation entry has no previous_status.
    """

    status: CustomerStatus = Field(description="Status after the change")
    previous_status: Optional[CustomerStatus] = Field(
        default=None,
        description="Status before the change (None for the creation entry)",
    )
    date: datetime = Field(default_factory=utcnow)
    changed_by: Optional[str] = Field(default=None, description="Actor who made the change")

    @field_validator("date")
    @classmethod
    def date_is_utc(cls, v):
        return ensure_utc(v)

    class Config:
        frozen = True


class Customer(BaseModel):
    """Customer domain model."""

    customer_id: str = Field(default_factory=lambda: f"C-{uuid4().hex[:10].upper()}")
    name: str = Field(min_length=1, max_length=200)
    customer_type: str = "Individual"
    contact: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    country: str = ""
    registered_at: datetime = Field(default_factory=utcnow)
    services: List[ServiceType] = Field(default_factory=list)
    service_description: str = ""
    contact_channel: ContactChannel = ContactChannel.EMAIL
    notes: str = ""

    status: CustomerStatus = CustomerStatus.INTAKE
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    assigned_to: str = ""
    follow_up_date: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    created_by: Optional[str] = None
    version: int = Field(default=1, ge=1)

    @field_validator("registered_at", "follow_up_date", "confirmed_at")
    @classmethod
    def timestamps_are_utc(cls, v):
        return ensure_utc(v)

    @field_validator("status_history")
    @classmethod
    def status_history_ordered(cls, v):
        """Ensure status history is chronologically ordered"""
        for earlier, later in zip(v, v[1:]):
            if earlier.date > later.date:
                raise ValueError("Status history must be chronologically ordered")
        return v

    @model_validator(mode="after")
    def history_matches_status(self) -> "Customer":
        """The last history entry always records the current status."""
        if self.status_history and self.status_history[-1].status != self.status:
            raise ValueError(
                f"Last status history entry ({self.status_history[-1].status.value}) "
                f"does not match status {self.status.value}"
            )
        return self

    @property
    def last_status_change_at(self) -> datetime:
        """When the current status was entered (registration if no history)."""
        if self.status_history:
            return self.status_history[-1].date
        return self.registered_at

    class Config:
        from_attributes = True


class StatusExtras(BaseModel):
    """Fields a status change may need besides the status itself."""

    assigned_to: Optional[str] = Field(default=None, description="Closer to assign when confirming a client")
    follow_up_date: Optional[datetime] = Field(default=None, description="Required when parking ON_HOLD")

    @field_validator("follow_up_date")
    @classmethod
    def follow_up_is_utc(cls, v):
        return ensure_utc(v)


class AdvanceResult(BaseModel):
    """Outcome of a guided advance."""

    advanced: bool
    customer: Customer
    reason: Optional[str] = None
