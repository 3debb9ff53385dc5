"""API request and response models."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from lifecycle_service.models.alert import Alert
from lifecycle_service.models.case import (
    ALLOWED_TRANSITIONS,
    Case,
    CasePriority,
    CaseState,
    CaseType,
    DocumentState,
    HistoryRecord,
)
from lifecycle_service.models.customer import (
    ContactChannel,
    Customer,
    CustomerStatus,
    ServiceType,
    StatusExtras,
    StatusHistoryEntry,
)


class CustomerCreateRequest(BaseModel):
    """Request to register a new lead."""

    name: str = Field(..., min_length=1, max_length=200)
    customer_type: str = "Individual"
    contact: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    country: str = ""
    services: List[ServiceType] = Field(default_factory=list)
    service_description: str = ""
    contact_channel: ContactChannel = ContactChannel.EMAIL
    notes: str = ""
    status: CustomerStatus = Field(default=CustomerStatus.INTAKE)
    assigned_to: str = ""
    follow_up_date: Optional[datetime] = None

    def to_customer(self) -> Customer:
        return Customer(**self.model_dump())


class CustomerStatusUpdateRequest(BaseModel):
    """Free edit of a customer's status."""

    status: CustomerStatus
    assigned_to: Optional[str] = Field(None, description="Closer, required when moving to CLIENT")
    follow_up_date: Optional[datetime] = Field(None, description="Required when moving to ON_HOLD")
    expected_version: int = Field(..., ge=1, description="Version the caller last saw")

    def extras(self) -> StatusExtras:
        return StatusExtras(assigned_to=self.assigned_to, follow_up_date=self.follow_up_date)


class CustomerAdvanceRequest(BaseModel):
    """Guided advance to the next workflow step."""

    assigned_to: Optional[str] = Field(None, description="Closer, required when advancing to CLIENT")
    expected_version: int = Field(..., ge=1, description="Version the caller last saw")

    def extras(self) -> StatusExtras:
        return StatusExtras(assigned_to=self.assigned_to)


class CustomerListResponse(BaseModel):
    customers: List[Customer]
    total: int


class CustomerHistoryResponse(BaseModel):
    customer_id: str
    history: List[StatusHistoryEntry]


class AdvanceResponse(BaseModel):
    """Result of a guided advance; ``advanced`` is False at the end of the workflow."""

    advanced: bool
    reason: Optional[str] = None
    customer: Customer


class CaseCreateRequest(BaseModel):
    """Request to open a case for a customer."""

    customer_id: str = Field(..., min_length=1)
    case_type: CaseType = CaseType.CLIENT
    category: str = ""
    subcategory: str = ""
    title: str = Field(default="", max_length=200)
    deadline: Optional[datetime] = None
    priority: CasePriority = Field(default=CasePriority.MEDIUM)
    assigned_to: str = ""
    document_state: DocumentState = DocumentState.OK

    def to_case(self) -> Case:
        return Case(**self.model_dump())


class CaseStateChangeRequest(BaseModel):
    state: CaseState


class CaseReadyRequest(BaseModel):
    ready_for_work: bool


class CaseResponse(BaseModel):
    """Response containing a single case and where it may go next."""

    case_id: str
    customer_id: str
    case_type: CaseType
    category: str
    subcategory: str
    title: str
    state: CaseState
    stage: str
    allowed_next: List[CaseState]
    last_state_change: datetime
    deadline: Optional[datetime]
    ready_for_work: bool
    priority: CasePriority
    assigned_to: str
    document_state: DocumentState
    version: int
    history: List[HistoryRecord]

    @classmethod
    def from_case(cls, case: Case) -> "CaseResponse":
        """Convert Case model to response."""
        return cls(
            case_id=case.case_id,
            customer_id=case.customer_id,
            case_type=case.case_type,
            category=case.category,
            subcategory=case.subcategory,
            title=case.title,
            state=case.state,
            stage=case.stage.value,
            allowed_next=sorted(ALLOWED_TRANSITIONS[case.state], key=lambda s: s.value),
            last_state_change=case.last_state_change,
            deadline=case.deadline,
            ready_for_work=case.ready_for_work,
            priority=case.priority,
            assigned_to=case.assigned_to,
            document_state=case.document_state,
            version=case.version,
            history=case.history,
        )


class CaseListResponse(BaseModel):
    cases: List[CaseResponse]
    total: int


class AlertListResponse(BaseModel):
    alerts: List[Alert]
    total: int
    critical: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str
    storage: str
