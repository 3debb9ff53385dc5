"""Case data models.

A Case is one legal matter owned by a Customer. Two pipelines share one
state enum:

  Customer cases (pre-engagement):
    INTAKE → SEND_PROPOSAL → WAITING_RESPONSE_P → DISCUSSING_Q ↔ SEND_PROPOSAL
                                                → SEND_CONTRACT → WAITING_RESPONSE_C

  Client cases (engaged matters):
    NEW → IN_PROGRESS ⇄ WAITING_CUSTOMER
                      ⇄ WAITING_AUTHORITIES → FINALIZED (terminal)
                      → FINALIZED

Transitions are checked against ALLOWED_TRANSITIONS; there is no free edit.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from lifecycle_service.utils.time import ensure_utc, utcnow


class CaseState(str, Enum):
    """Case lifecycle state."""

    INTAKE = "INTAKE"
    SEND_PROPOSAL = "SEND_PROPOSAL"
    WAITING_RESPONSE_P = "WAITING_RESPONSE_P"
    DISCUSSING_Q = "DISCUSSING_Q"
    SEND_CONTRACT = "SEND_CONTRACT"
    WAITING_RESPONSE_C = "WAITING_RESPONSE_C"
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_CUSTOMER = "WAITING_CUSTOMER"
    WAITING_AUTHORITIES = "WAITING_AUTHORITIES"
    FINALIZED = "FINALIZED"

    @property
    def stage(self) -> "CaseStage":
        return STATE_TO_STAGE[self]

    @property
    def is_finalized(self) -> bool:
        return self.stage == CaseStage.FINALIZED


class CaseStage(str, Enum):
    """Coarse grouping of case states used for alerting and guards."""

    INTAKE = "INTAKE"
    ACTIONABLE = "ACTIONABLE"
    AWAITING = "AWAITING"
    FINALIZED = "FINALIZED"


class CaseType(str, Enum):
    """Whether the matter belongs to a lead or to a confirmed client."""

    CUSTOMER = "customer"
    CLIENT = "client"


class CasePriority(str, Enum):
    """Case priority levels."""

    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DocumentState(str, Enum):
    OK = "ok"
    MISSING = "missing"


ALLOWED_TRANSITIONS: Dict[CaseState, FrozenSet[CaseState]] = {
    CaseState.INTAKE: frozenset({CaseState.SEND_PROPOSAL}),
    CaseState.SEND_PROPOSAL: frozenset({CaseState.WAITING_RESPONSE_P}),
    CaseState.WAITING_RESPONSE_P: frozenset({CaseState.DISCUSSING_Q, CaseState.SEND_CONTRACT}),
    CaseState.DISCUSSING_Q: frozenset({CaseState.SEND_PROPOSAL, CaseState.SEND_CONTRACT}),
    CaseState.SEND_CONTRACT: frozenset({CaseState.WAITING_RESPONSE_C}),
    CaseState.WAITING_RESPONSE_C: frozenset(),
    CaseState.NEW: frozenset({CaseState.IN_PROGRESS}),
    CaseState.IN_PROGRESS: frozenset({
        CaseState.WAITING_CUSTOMER,
        CaseState.WAITING_AUTHORITIES,
        CaseState.FINALIZED,
    }),
    CaseState.WAITING_CUSTOMER: frozenset({CaseState.IN_PROGRESS}),
    CaseState.WAITING_AUTHORITIES: frozenset({CaseState.IN_PROGRESS, CaseState.FINALIZED}),
    CaseState.FINALIZED: frozenset(),  # Terminal
}

STATE_TO_STAGE: Dict[CaseState, CaseStage] = {
    CaseState.INTAKE: CaseStage.INTAKE,
    CaseState.NEW: CaseStage.INTAKE,
    CaseState.SEND_PROPOSAL: CaseStage.ACTIONABLE,
    CaseState.DISCUSSING_Q: CaseStage.ACTIONABLE,
    CaseState.SEND_CONTRACT: CaseStage.ACTIONABLE,
    CaseState.IN_PROGRESS: CaseStage.ACTIONABLE,
    CaseState.WAITING_RESPONSE_P: CaseStage.AWAITING,
    CaseState.WAITING_RESPONSE_C: CaseStage.AWAITING,
    CaseState.WAITING_CUSTOMER: CaseStage.AWAITING,
    CaseState.WAITING_AUTHORITIES: CaseStage.AWAITING,
    CaseState.FINALIZED: CaseStage.FINALIZED,
}

INITIAL_STATE: Dict[CaseType, CaseState] = {
    CaseType.CUSTOMER: CaseState.INTAKE,
    CaseType.CLIENT: CaseState.NEW,
}


class HistoryRecord(BaseModel):
    """
    Record of one case state change.
    The creation record has no state_from.
    """

    history_id: str = Field(default_factory=lambda: f"H-{uuid4().hex[:10].upper()}")
    case_id: str
    state_from: Optional[CaseState] = None
    state_to: CaseState
    date: datetime = Field(default_factory=utcnow)
    actor: Optional[str] = None

    @field_validator("date")
    @classmethod
    def date_is_utc(cls, v):
        return ensure_utc(v)

    class Config:
        frozen = True


class Case(BaseModel):
    """Case domain model."""

    case_id: str = Field(default_factory=lambda: f"CASE-{uuid4().hex[:10].upper()}")
    customer_id: str = Field(min_length=1)
    case_type: CaseType = CaseType.CLIENT
    category: str = ""
    subcategory: str = ""
    title: str = ""

    state: CaseState = CaseState.NEW
    last_state_change: datetime = Field(default_factory=utcnow)
    deadline: Optional[datetime] = None
    ready_for_work: bool = False
    priority: CasePriority = CasePriority.MEDIUM
    assigned_to: str = ""
    document_state: DocumentState = DocumentState.OK
    created_by: Optional[str] = None
    version: int = Field(default=1, ge=1)

    history: List[HistoryRecord] = Field(default_factory=list)

    @field_validator("last_state_change", "deadline")
    @classmethod
    def timestamps_are_utc(cls, v):
        return ensure_utc(v)

    @property
    def stage(self) -> CaseStage:
        return self.state.stage

    @property
    def is_finalized(self) -> bool:
        return self.state.is_finalized

    class Config:
        from_attributes = True
