"""Models package."""

from .alert import Alert, AlertKind, AlertSeverity, make_alert_id
from .case import (
    ALLOWED_TRANSITIONS,
    INITIAL_STATE,
    Case,
    CasePriority,
    CaseStage,
    CaseState,
    CaseType,
    DocumentState,
    HistoryRecord,
)
from .customer import (
    WORKFLOW_SEQUENCE,
    AdvanceResult,
    ContactChannel,
    Customer,
    CustomerStatus,
    ServiceType,
    StatusExtras,
    StatusHistoryEntry,
)
from .meeting import CustomerNotification, Meeting, MeetingStatus
from .requests import (
    AdvanceResponse,
    AlertListResponse,
    CaseCreateRequest,
    CaseListResponse,
    CaseReadyRequest,
    CaseResponse,
    CaseStateChangeRequest,
    CustomerAdvanceRequest,
    CustomerCreateRequest,
    CustomerHistoryResponse,
    CustomerListResponse,
    CustomerStatusUpdateRequest,
    HealthResponse,
)
from .viewer import SYSTEM_VIEWER, ViewerContext, ViewerRole

__all__ = [
    "Alert",
    "AlertKind",
    "AlertSeverity",
    "make_alert_id",
    "ALLOWED_TRANSITIONS",
    "INITIAL_STATE",
    "Case",
    "CasePriority",
    "CaseStage",
    "CaseState",
    "CaseType",
    "DocumentState",
    "HistoryRecord",
    "WORKFLOW_SEQUENCE",
    "AdvanceResult",
    "ContactChannel",
    "Customer",
    "CustomerStatus",
    "ServiceType",
    "StatusExtras",
    "StatusHistoryEntry",
    "CustomerNotification",
    "Meeting",
    "MeetingStatus",
    "AdvanceResponse",
    "AlertListResponse",
    "CaseCreateRequest",
    "CaseListResponse",
    "CaseReadyRequest",
    "CaseResponse",
    "CaseStateChangeRequest",
    "CustomerAdvanceRequest",
    "CustomerCreateRequest",
    "CustomerHistoryResponse",
    "CustomerListResponse",
    "CustomerStatusUpdateRequest",
    "HealthResponse",
    "SYSTEM_VIEWER",
    "ViewerContext",
    "ViewerRole",
]
