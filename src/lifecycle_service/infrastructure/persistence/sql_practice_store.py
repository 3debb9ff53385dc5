"""SQL implementation of PracticeStore.

Customer writes are compare-and-set: ``UPDATE ... WHERE version = :expected``.
A zero row count means another writer got there first.
"""

import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lifecycle_service.core.errors import ConflictError, NotFoundError, TransportError, ValidationError
from lifecycle_service.infrastructure.database.client import DatabaseClient
from lifecycle_service.infrastructure.database.models import (
    CaseDB,
    CaseHistoryDB,
    CustomerDB,
    CustomerNotificationDB,
    CustomerStatusHistoryDB,
    MeetingDB,
)
from lifecycle_service.infrastructure.persistence.practice_store import PracticeStore, apply_patch
from lifecycle_service.models.case import Case, CaseState, CaseType, HistoryRecord
from lifecycle_service.models.customer import Customer, CustomerStatus, StatusHistoryEntry
from lifecycle_service.models.meeting import CustomerNotification, Meeting

logger = logging.getLogger(__name__)

CUSTOMER_COLUMNS = [c.name for c in CustomerDB.__table__.columns]
CASE_COLUMNS = [c.name for c in CaseDB.__table__.columns]


def _customer_values(customer: Customer) -> Dict[str, Any]:
    data = customer.model_dump(mode="python")
    data["services"] = [s.value for s in customer.services]
    return {name: data[name] for name in CUSTOMER_COLUMNS}


def _case_values(case: Case) -> Dict[str, Any]:
    data = case.model_dump(mode="python")
    return {name: data[name] for name in CASE_COLUMNS}


def _row_dict(row: Any, columns: List[str]) -> Dict[str, Any]:
    return {name: getattr(row, name) for name in columns}


class SQLPracticeStore(PracticeStore):
    """Practice store backed by SQLAlchemy async sessions."""

    def __init__(self, db_client: DatabaseClient):
        self.db = db_client

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.db.async_session_maker() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error(f"Database operation failed: {e}")
            raise TransportError(f"Database operation failed: {e}") from e

    # Customers

    async def _customer_history(
        self,
        session: AsyncSession,
        customer_ids: Optional[List[str]] = None,
    ) -> Dict[str, List[StatusHistoryEntry]]:
        query = select(CustomerStatusHistoryDB).order_by(
            CustomerStatusHistoryDB.customer_id, CustomerStatusHistoryDB.position
        )
        if customer_ids is not None:
            query = query.where(CustomerStatusHistoryDB.customer_id.in_(customer_ids))
        result = await session.execute(query)

        history: Dict[str, List[StatusHistoryEntry]] = defaultdict(list)
        for row in result.scalars():
            history[row.customer_id].append(
                StatusHistoryEntry(
                    status=row.status,
                    previous_status=row.previous_status,
                    date=row.date,
                    changed_by=row.changed_by,
                )
            )
        return history

    def _to_customer(self, row: CustomerDB, history: List[StatusHistoryEntry]) -> Customer:
        data = _row_dict(row, CUSTOMER_COLUMNS)
        data["status_history"] = history
        return Customer.model_validate(data)

    async def _load_customer(self, session: AsyncSession, customer_id: str) -> Customer:
        row = await session.get(CustomerDB, customer_id)
        if row is None:
            raise NotFoundError("Customer", customer_id)
        history = await self._customer_history(session, [customer_id])
        return self._to_customer(row, history.get(customer_id, []))

    async def _query_customers(self, status: Optional[CustomerStatus] = None) -> List[Customer]:
        async with self._transaction() as session:
            query = select(CustomerDB).order_by(CustomerDB.registered_at)
            if status is not None:
                query = query.where(CustomerDB.status == status)
            rows = list((await session.execute(query)).scalars())
            history = await self._customer_history(session, [r.customer_id for r in rows])
            return [self._to_customer(row, history.get(row.customer_id, [])) for row in rows]

    async def list_customers(self) -> List[Customer]:
        return await self._query_customers()

    async def list_confirmed_clients(self) -> List[Customer]:
        return await self._query_customers(CustomerStatus.CLIENT)

    async def get_customer(self, customer_id: str) -> Customer:
        async with self._transaction() as session:
            return await self._load_customer(session, customer_id)

    def _history_rows(
        self,
        customer_id: str,
        entries: List[StatusHistoryEntry],
        start: int,
    ) -> List[CustomerStatusHistoryDB]:
        return [
            CustomerStatusHistoryDB(
                customer_id=customer_id,
                position=start + offset,
                status=entry.status,
                previous_status=entry.previous_status,
                date=entry.date,
                changed_by=entry.changed_by,
            )
            for offset, entry in enumerate(entries)
        ]

    async def create_customer(self, customer: Customer) -> Customer:
        async with self._transaction() as session:
            if await session.get(CustomerDB, customer.customer_id) is not None:
                raise ValidationError(f"Customer {customer.customer_id} already exists", "customer_id")
            session.add(CustomerDB(**_customer_values(customer)))
            session.add_all(self._history_rows(customer.customer_id, customer.status_history, 0))
        logger.info(f"Stored customer {customer.customer_id}")
        return customer

    async def update_customer(
        self,
        customer_id: str,
        patch: Dict[str, Any],
        expected_version: int,
    ) -> Customer:
        async with self._transaction() as session:
            current = await self._load_customer(session, customer_id)
            if current.version != expected_version:
                raise ConflictError(customer_id, expected_version, current.version, current)

            updated = apply_patch(current, patch, expected_version + 1)
            stored = len(current.status_history)
            if len(updated.status_history) < stored:
                raise ValidationError("Status history is append-only", "status_history")

            values = _customer_values(updated)
            values.pop("customer_id")
            result = await session.execute(
                update(CustomerDB)
                .where(CustomerDB.customer_id == customer_id, CustomerDB.version == expected_version)
                .values(**values)
            )
            if result.rowcount == 0:
                raise ConflictError(customer_id, expected_version, None, None)

            session.add_all(self._history_rows(customer_id, updated.status_history[stored:], stored))
        return updated

    async def get_customer_history(self, customer_id: str) -> List[StatusHistoryEntry]:
        async with self._transaction() as session:
            if await session.get(CustomerDB, customer_id) is None:
                raise NotFoundError("Customer", customer_id)
            history = await self._customer_history(session, [customer_id])
            return history.get(customer_id, [])

    # Cases

    async def _case_history(self, session: AsyncSession, case_ids: List[str]) -> Dict[str, List[HistoryRecord]]:
        result = await session.execute(
            select(CaseHistoryDB)
            .where(CaseHistoryDB.case_id.in_(case_ids))
            .order_by(CaseHistoryDB.case_id, CaseHistoryDB.position)
        )
        history: Dict[str, List[HistoryRecord]] = defaultdict(list)
        for row in result.scalars():
            history[row.case_id].append(HistoryRecord.model_validate(row, from_attributes=True))
        return history

    def _to_case(self, row: CaseDB, history: List[HistoryRecord]) -> Case:
        data = _row_dict(row, CASE_COLUMNS)
        data["history"] = history
        return Case.model_validate(data)

    async def _load_case(self, session: AsyncSession, case_id: str) -> Case:
        row = await session.get(CaseDB, case_id)
        if row is None:
            raise NotFoundError("Case", case_id)
        history = await self._case_history(session, [case_id])
        return self._to_case(row, history.get(case_id, []))

    def _record_row(self, record: HistoryRecord, position: int) -> CaseHistoryDB:
        return CaseHistoryDB(position=position, **record.model_dump())

    async def list_cases(
        self,
        case_type: Optional[CaseType] = None,
        customer_id: Optional[str] = None,
    ) -> List[Case]:
        async with self._transaction() as session:
            query = select(CaseDB).order_by(CaseDB.last_state_change)
            if case_type is not None:
                query = query.where(CaseDB.case_type == case_type)
            if customer_id is not None:
                query = query.where(CaseDB.customer_id == customer_id)
            rows = list((await session.execute(query)).scalars())
            history = await self._case_history(session, [r.case_id for r in rows])
            return [self._to_case(row, history.get(row.case_id, [])) for row in rows]

    async def get_case(self, case_id: str) -> Case:
        async with self._transaction() as session:
            return await self._load_case(session, case_id)

    async def create_case(self, case: Case) -> Case:
        async with self._transaction() as session:
            if await session.get(CaseDB, case.case_id) is not None:
                raise ValidationError(f"Case {case.case_id} already exists", "case_id")
            session.add(CaseDB(**_case_values(case)))
            session.add_all([self._record_row(r, i) for i, r in enumerate(case.history)])
        logger.info(f"Stored case {case.case_id}")
        return case

    async def _write_case(self, session: AsyncSession, current: Case, updated: Case) -> None:
        values = _case_values(updated)
        values.pop("case_id")
        result = await session.execute(
            update(CaseDB)
            .where(CaseDB.case_id == current.case_id, CaseDB.version == current.version)
            .values(**values)
        )
        if result.rowcount == 0:
            raise ConflictError(current.case_id, current.version)

    async def change_case_state(self, case_id: str, new_state: CaseState, record: HistoryRecord) -> Case:
        async with self._transaction() as session:
            current = await self._load_case(session, case_id)
            updated = apply_patch(
                current,
                {
                    "state": new_state,
                    "last_state_change": record.date,
                    "history": [*current.history, record],
                },
                current.version + 1,
            )
            await self._write_case(session, current, updated)
            session.add(self._record_row(record, len(current.history)))
        return updated

    async def update_case(self, case_id: str, patch: Dict[str, Any]) -> Case:
        async with self._transaction() as session:
            current = await self._load_case(session, case_id)
            updated = apply_patch(current, patch, current.version + 1)
            await self._write_case(session, current, updated)
        return updated

    # Meetings and notifications

    async def list_meetings(self) -> List[Meeting]:
        async with self._transaction() as session:
            result = await session.execute(select(MeetingDB).order_by(MeetingDB.starts_at))
            return [Meeting.model_validate(row) for row in result.scalars()]

    async def get_customer_notifications(self) -> List[CustomerNotification]:
        async with self._transaction() as session:
            result = await session.execute(
                select(CustomerNotificationDB).order_by(CustomerNotificationDB.created_at)
            )
            return [CustomerNotification.model_validate(row) for row in result.scalars()]

    async def delete_customer_notification(self, notification_id: str) -> bool:
        async with self._transaction() as session:
            result = await session.execute(
                delete(CustomerNotificationDB).where(CustomerNotificationDB.notification_id == notification_id)
            )
            return result.rowcount > 0

    async def add_meeting(self, meeting: Meeting) -> None:
        async with self._transaction() as session:
            session.add(MeetingDB(**meeting.model_dump()))

    async def add_notification(self, notification: CustomerNotification) -> None:
        async with self._transaction() as session:
            session.add(CustomerNotificationDB(**notification.model_dump()))

    async def close(self) -> None:
        await self.db.close()
