"""Database infrastructure package."""

from .client import DatabaseClient
from .models import (
    Base,
    CaseDB,
    CaseHistoryDB,
    CustomerDB,
    CustomerNotificationDB,
    CustomerStatusHistoryDB,
    MeetingDB,
)

__all__ = [
    "DatabaseClient",
    "Base",
    "CaseDB",
    "CaseHistoryDB",
    "CustomerDB",
    "CustomerNotificationDB",
    "CustomerStatusHistoryDB",
    "MeetingDB",
]
