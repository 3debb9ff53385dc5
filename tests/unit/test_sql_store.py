"""Unit tests for the SQL practice store on in-memory SQLite."""

from datetime import timedelta

import pytest

from builders import NOW, ROSTER, make_case, make_customer
from lifecycle_service.core.errors import ConflictError, NotFoundError, ValidationError
from lifecycle_service.core.history import append_status_entry, case_record_for
from lifecycle_service.core.practice_manager import PracticeManager
from lifecycle_service.core.transitions import Transition
from lifecycle_service.infrastructure.database import DatabaseClient
from lifecycle_service.infrastructure.persistence import SQLPracticeStore
from lifecycle_service.models import (
    CaseState,
    CaseType,
    CustomerNotification,
    CustomerStatus,
    Meeting,
    ServiceType,
)


@pytest.fixture
async def sql_store():
    client = DatabaseClient("sqlite+aiosqlite://")
    await client.create_tables()
    store = SQLPracticeStore(client)
    yield store
    await store.close()


def status_patch(customer, status, at):
    transition = Transition(customer.customer_id, customer.status, status, "kejdi", at)
    return {"status": status, "status_history": append_status_entry(customer.status_history, transition)}


@pytest.mark.unit
class TestSQLCustomers:

    async def test_create_and_read_back(self, sql_store):
        customer = make_customer(
            status=CustomerStatus.WAITING_APPROVAL,
            hours_in_status=5,
            services=[ServiceType.VISA_D],
            follow_up_date=NOW + timedelta(days=2),
        )
        await sql_store.create_customer(customer)

        loaded = await sql_store.get_customer("C1")

        assert loaded == customer
        assert loaded.last_status_change_at == NOW - timedelta(hours=5)
        assert loaded.services == [ServiceType.VISA_D]

    async def test_duplicate_create_rejected(self, sql_store):
        await sql_store.create_customer(make_customer())
        with pytest.raises(ValidationError):
            await sql_store.create_customer(make_customer())

    async def test_versioned_update_appends_history(self, sql_store):
        customer = make_customer(status=CustomerStatus.INTAKE, hours_in_status=3)
        await sql_store.create_customer(customer)

        updated = await sql_store.update_customer(
            "C1", status_patch(customer, CustomerStatus.SEND_PROPOSAL, NOW), expected_version=1
        )

        assert updated.version == 2
        history = await sql_store.get_customer_history("C1")
        assert [e.status for e in history] == [CustomerStatus.INTAKE, CustomerStatus.SEND_PROPOSAL]
        assert (await sql_store.get_customer("C1")).status == CustomerStatus.SEND_PROPOSAL

    async def test_stale_version_conflicts_without_writing(self, sql_store):
        customer = make_customer(status=CustomerStatus.INTAKE)
        await sql_store.create_customer(customer)
        await sql_store.update_customer("C1", {"notes": "first"}, expected_version=1)

        with pytest.raises(ConflictError) as exc_info:
            await sql_store.update_customer(
                "C1", status_patch(customer, CustomerStatus.ARCHIVED, NOW), expected_version=1
            )

        assert exc_info.value.actual_version == 2
        assert exc_info.value.latest.notes == "first"
        live = await sql_store.get_customer("C1")
        assert live.status == CustomerStatus.INTAKE
        assert len(live.status_history) == 1

    async def test_missing_customer(self, sql_store):
        with pytest.raises(NotFoundError):
            await sql_store.get_customer("NOPE")
        with pytest.raises(NotFoundError):
            await sql_store.get_customer_history("NOPE")

    async def test_list_confirmed_clients(self, sql_store):
        await sql_store.create_customer(make_customer("C1", status=CustomerStatus.CLIENT, assigned_to="Kejdi"))
        await sql_store.create_customer(make_customer("C2"))

        assert [c.customer_id for c in await sql_store.list_confirmed_clients()] == ["C1"]
        assert len(await sql_store.list_customers()) == 2


@pytest.mark.unit
class TestSQLCases:

    async def test_state_change_appends_record(self, sql_store):
        await sql_store.create_customer(make_customer())
        case = make_case(state=CaseState.NEW, hours_in_state=2)
        await sql_store.create_case(case)

        record = case_record_for(
            case.history, Transition("CASE7", CaseState.NEW, CaseState.IN_PROGRESS, "kejdi", NOW)
        )
        changed = await sql_store.change_case_state("CASE7", CaseState.IN_PROGRESS, record)

        assert changed.version == 2
        loaded = await sql_store.get_case("CASE7")
        assert loaded.state == CaseState.IN_PROGRESS
        assert [r.state_to for r in loaded.history] == [CaseState.NEW, CaseState.IN_PROGRESS]
        assert loaded.last_state_change == NOW

    async def test_update_case_and_filters(self, sql_store):
        await sql_store.create_customer(make_customer())
        await sql_store.create_case(make_case("CASE1", state=CaseState.IN_PROGRESS))
        await sql_store.create_case(make_case("CASE2", state=CaseState.INTAKE))

        updated = await sql_store.update_case("CASE1", {"ready_for_work": True})

        assert updated.ready_for_work is True
        assert (await sql_store.get_case("CASE1")).version == 2
        customer_cases = await sql_store.list_cases(case_type=CaseType.CUSTOMER)
        assert [c.case_id for c in customer_cases] == ["CASE2"]

    async def test_patch_cannot_touch_version(self, sql_store):
        await sql_store.create_customer(make_customer())
        await sql_store.create_case(make_case())

        with pytest.raises(ValidationError):
            await sql_store.update_case("CASE7", {"version": 9})


@pytest.mark.unit
class TestSQLCalendar:

    async def test_meetings_and_notifications(self, sql_store):
        await sql_store.add_meeting(Meeting(meeting_id="M1", starts_at=NOW, location="Office"))
        await sql_store.add_notification(CustomerNotification(notification_id="N1", customer_id="C1"))

        [meeting] = await sql_store.list_meetings()
        assert meeting.starts_at == NOW
        assert meeting.location == "Office"
        assert [n.notification_id for n in await sql_store.get_customer_notifications()] == ["N1"]

        assert await sql_store.delete_customer_notification("N1") is True
        assert await sql_store.delete_customer_notification("N1") is False


@pytest.mark.unit
class TestManagerOnSQL:

    async def test_guided_advance_through_sql(self, sql_store, dismissals, consultant):
        manager = PracticeManager(sql_store, dismissals, closer_roster=ROSTER, clock=lambda: NOW)
        await sql_store.create_customer(make_customer(status=CustomerStatus.SEND_RESPONSE, assigned_to="kejdi"))

        result = await manager.advance_customer("C1", consultant, expected_version=1)

        assert result.customer.status == CustomerStatus.CLIENT
        live = await sql_store.get_customer("C1")
        assert live.version == 2
        assert live.assigned_to == "Kejdi"
        assert live.status_history[-1].previous_status == CustomerStatus.SEND_RESPONSE
