"""Unit tests for the customer lifecycle (free edit and guided advance)."""

from datetime import timedelta

import pytest

from builders import NOW, make_customer
from lifecycle_service.core.errors import ConflictError, ValidationError
from lifecycle_service.models import Customer, CustomerStatus, StatusExtras


async def seed(store, customer):
    await store.create_customer(customer)
    return customer


@pytest.mark.unit
class TestCreateCustomer:

    async def test_create_writes_initial_entry_and_version_one(self, manager, consultant):
        customer = await manager.create_customer(Customer(name="Ana Kovac"), consultant)

        assert customer.status == CustomerStatus.INTAKE
        assert customer.version == 1
        assert len(customer.status_history) == 1
        assert customer.status_history[0].previous_status is None
        assert customer.status_history[0].changed_by == "kejdi"
        assert customer.created_by == "kejdi"

    async def test_create_as_client_requires_roster_assignee(self, manager, consultant):
        with pytest.raises(ValidationError):
            await manager.create_customer(
                Customer(name="Ana", status=CustomerStatus.CLIENT, assigned_to="Somebody"), consultant
            )

    async def test_create_as_client_stamps_confirmed_at(self, manager, consultant):
        customer = await manager.create_customer(
            Customer(name="Ana", status=CustomerStatus.CLIENT, assigned_to="Dr. Albert"), consultant
        )
        assert customer.assigned_to == "Albert"
        assert customer.confirmed_at is not None


@pytest.mark.unit
class TestAdvanceCustomer:

    async def test_advance_moves_one_step(self, manager, store, consultant):
        await seed(store, make_customer(status=CustomerStatus.INTAKE, hours_in_status=2))

        result = await manager.advance_customer("C1", consultant)

        assert result.advanced
        assert result.customer.status == CustomerStatus.SEND_PROPOSAL
        assert result.customer.version == 2
        assert result.customer.status_history[-1].previous_status == CustomerStatus.INTAKE

    async def test_advance_at_client_is_noop(self, manager, store, consultant):
        await seed(store, make_customer(status=CustomerStatus.CLIENT, assigned_to="Kejdi"))

        result = await manager.advance_customer("C1", consultant)

        assert not result.advanced
        assert result.reason == "no next step"
        stored = await store.get_customer("C1")
        assert stored.version == 1
        assert len(stored.status_history) == 2

    @pytest.mark.parametrize("status", [CustomerStatus.ON_HOLD, CustomerStatus.ARCHIVED,
                                        CustomerStatus.CONSULTATION_SCHEDULED])
    async def test_advance_off_sequence_is_noop(self, manager, store, consultant, status):
        await seed(store, make_customer(status=status, follow_up_date=NOW))

        result = await manager.advance_customer("C1", consultant)

        assert not result.advanced
        assert (await store.get_customer("C1")).version == 1

    async def test_advance_into_client_needs_closer(self, manager, store, consultant):
        await seed(store, make_customer(status=CustomerStatus.SEND_RESPONSE))

        with pytest.raises(ValidationError) as exc_info:
            await manager.advance_customer("C1", consultant)
        assert exc_info.value.field == "assigned_to"
        assert (await store.get_customer("C1")).status == CustomerStatus.SEND_RESPONSE

        result = await manager.advance_customer("C1", consultant, StatusExtras(assigned_to="kejdi"))
        assert result.customer.status == CustomerStatus.CLIENT
        assert result.customer.assigned_to == "Kejdi"
        assert result.customer.confirmed_at is not None

    async def test_stale_expected_version_conflicts(self, manager, store, consultant):
        await seed(store, make_customer(status=CustomerStatus.INTAKE))

        with pytest.raises(ConflictError) as exc_info:
            await manager.advance_customer("C1", consultant, expected_version=7)
        assert exc_info.value.latest.version == 1

    async def test_missing_version_checks_last_known_version(self, manager, store, consultant):
        await seed(store, make_customer(status=CustomerStatus.INTAKE))
        await manager.advance_customer("C1", consultant)
        await store.update_customer("C1", {"notes": "changed elsewhere"}, expected_version=2)

        with pytest.raises(ConflictError) as exc_info:
            await manager.set_customer_status("C1", CustomerStatus.ARCHIVED, consultant)

        assert exc_info.value.latest.notes == "changed elsewhere"
        assert (await store.get_customer("C1")).status == CustomerStatus.SEND_PROPOSAL

    async def test_timestamps_come_from_manager_clock(self, manager, store, admin):
        await seed(store, make_customer(status=CustomerStatus.SEND_RESPONSE, hours_in_status=2, assigned_to="Kejdi"))

        result = await manager.advance_customer("C1", admin)

        assert result.customer.status_history[-1].date == NOW
        assert result.customer.confirmed_at == NOW


@pytest.mark.unit
class TestSetCustomerStatus:

    async def test_free_edit_jumps_anywhere(self, manager, store, consultant):
        await seed(store, make_customer(status=CustomerStatus.INTAKE))

        customer = await manager.set_customer_status("C1", CustomerStatus.WAITING_ACCEPTANCE, consultant)

        assert customer.status == CustomerStatus.WAITING_ACCEPTANCE
        assert customer.status_history[-1].status == CustomerStatus.WAITING_ACCEPTANCE

    async def test_same_status_records_nothing(self, manager, store, consultant):
        await seed(store, make_customer(status=CustomerStatus.SEND_PROPOSAL))

        customer = await manager.set_customer_status("C1", CustomerStatus.SEND_PROPOSAL, consultant)

        assert customer.version == 1
        assert len(customer.status_history) == 2

    async def test_free_edit_to_client_enforces_roster(self, manager, store, consultant):
        await seed(store, make_customer(status=CustomerStatus.INTAKE))

        with pytest.raises(ValidationError):
            await manager.set_customer_status(
                "C1", CustomerStatus.CLIENT, consultant, StatusExtras(assigned_to="Mag. Weber")
            )

    async def test_admin_may_confirm_outside_roster(self, manager, store, admin):
        await seed(store, make_customer(status=CustomerStatus.INTAKE))

        customer = await manager.set_customer_status(
            "C1", CustomerStatus.CLIENT, admin, StatusExtras(assigned_to="Mag. Weber")
        )
        assert customer.assigned_to == "Weber"

    async def test_admin_still_needs_an_assignee(self, manager, store, admin):
        await seed(store, make_customer(status=CustomerStatus.INTAKE))

        with pytest.raises(ValidationError):
            await manager.set_customer_status("C1", CustomerStatus.CLIENT, admin)

    async def test_on_hold_requires_follow_up_date(self, manager, store, consultant):
        await seed(store, make_customer(status=CustomerStatus.INTAKE))

        with pytest.raises(ValidationError) as exc_info:
            await manager.set_customer_status("C1", CustomerStatus.ON_HOLD, consultant)
        assert exc_info.value.field == "follow_up_date"

        follow_up = NOW + timedelta(days=14)
        customer = await manager.set_customer_status(
            "C1", CustomerStatus.ON_HOLD, consultant, StatusExtras(follow_up_date=follow_up)
        )
        assert customer.follow_up_date == follow_up

    async def test_leaving_on_hold_clears_follow_up_date(self, manager, store, consultant):
        await seed(store, make_customer(status=CustomerStatus.ON_HOLD, follow_up_date=NOW))

        customer = await manager.set_customer_status("C1", CustomerStatus.SEND_PROPOSAL, consultant)

        assert customer.follow_up_date is None

    async def test_confirmed_at_only_set_on_first_entry(self, manager, store, admin):
        await seed(store, make_customer(status=CustomerStatus.INTAKE, assigned_to="Kejdi"))

        first = await manager.set_customer_status("C1", CustomerStatus.CLIENT, admin)
        await manager.set_customer_status("C1", CustomerStatus.ARCHIVED, admin)
        again = await manager.set_customer_status("C1", CustomerStatus.CLIENT, admin)

        assert again.confirmed_at == first.confirmed_at
        assert again.version == 4

    async def test_history_dates_never_decrease(self, manager, store, admin):
        await seed(store, make_customer(status=CustomerStatus.INTAKE, assigned_to="Kejdi"))
        for status in (CustomerStatus.SEND_PROPOSAL, CustomerStatus.ARCHIVED, CustomerStatus.INTAKE):
            await manager.set_customer_status("C1", status, admin)

        history = await manager.get_customer_history("C1", admin)
        dates = [entry.date for entry in history]
        assert dates == sorted(dates)
        assert history[-1].status == CustomerStatus.INTAKE
