"""SQLAlchemy database models."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base

from lifecycle_service.models.case import CasePriority, CaseState, CaseType, DocumentState
from lifecycle_service.models.customer import ContactChannel, CustomerStatus
from lifecycle_service.models.meeting import MeetingStatus

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CustomerDB(Base):
    """SQLAlchemy model for customers table."""

    __tablename__ = "customers"

    customer_id = Column(String(50), primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    customer_type = Column(String(50), nullable=False, default="Individual")
    contact = Column(String(200), nullable=False, default="")
    phone = Column(String(50), nullable=False, default="")
    email = Column(String(200), nullable=False, default="")
    address = Column(Text, nullable=False, default="")
    country = Column(String(100), nullable=False, default="")
    registered_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    services = Column(JSON, nullable=False, default=list)
    service_description = Column(Text, nullable=False, default="")
    contact_channel = Column(Enum(ContactChannel), nullable=False, default=ContactChannel.EMAIL)
    notes = Column(Text, nullable=False, default="")

    status = Column(Enum(CustomerStatus), nullable=False, default=CustomerStatus.INTAKE, index=True)
    assigned_to = Column(String(100), nullable=False, default="", index=True)
    follow_up_date = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(100), nullable=True)
    version = Column(Integer, nullable=False, default=1)


class CustomerStatusHistoryDB(Base):
    """Append-only customer status history."""

    __tablename__ = "customer_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(String(50), ForeignKey("customers.customer_id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    status = Column(Enum(CustomerStatus), nullable=False)
    previous_status = Column(Enum(CustomerStatus), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    changed_by = Column(String(100), nullable=True)


class CaseDB(Base):
    """SQLAlchemy model for cases table."""

    __tablename__ = "cases"

    case_id = Column(String(50), primary_key=True, index=True)
    customer_id = Column(String(50), ForeignKey("customers.customer_id"), nullable=False, index=True)
    case_type = Column(Enum(CaseType), nullable=False, default=CaseType.CLIENT, index=True)
    category = Column(String(100), nullable=False, default="")
    subcategory = Column(String(100), nullable=False, default="")
    title = Column(String(200), nullable=False, default="")

    state = Column(Enum(CaseState), nullable=False, default=CaseState.NEW, index=True)
    last_state_change = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    deadline = Column(DateTime(timezone=True), nullable=True)
    ready_for_work = Column(Boolean, nullable=False, default=False)
    priority = Column(Enum(CasePriority), nullable=False, default=CasePriority.MEDIUM)
    assigned_to = Column(String(100), nullable=False, default="", index=True)
    document_state = Column(Enum(DocumentState), nullable=False, default=DocumentState.OK)
    created_by = Column(String(100), nullable=True)
    version = Column(Integer, nullable=False, default=1)


class CaseHistoryDB(Base):
    """Append-only case state history."""

    __tablename__ = "case_history"

    history_id = Column(String(50), primary_key=True)
    case_id = Column(String(50), ForeignKey("cases.case_id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    state_from = Column(Enum(CaseState), nullable=True)
    state_to = Column(Enum(CaseState), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    actor = Column(String(100), nullable=True)


class MeetingDB(Base):
    """Calendar entries read by the alert engine."""

    __tablename__ = "meetings"

    meeting_id = Column(String(50), primary_key=True)
    title = Column(String(200), nullable=False, default="Consultation")
    customer_id = Column(String(50), nullable=True, index=True)
    starts_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    assigned_to = Column(String(100), nullable=False, default="")
    location = Column(String(200), nullable=True)
    status = Column(Enum(MeetingStatus), nullable=False, default=MeetingStatus.SCHEDULED)
    created_by = Column(String(100), nullable=True)


class CustomerNotificationDB(Base):
    """Notifications produced by the backend notification sweep."""

    __tablename__ = "customer_notifications"

    notification_id = Column(String(50), primary_key=True)
    customer_id = Column(String(50), nullable=False, index=True)
    message = Column(Text, nullable=False, default="")
    kind = Column(String(20), nullable=False, default="follow")
    severity = Column(String(20), nullable=False, default="warn")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
