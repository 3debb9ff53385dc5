"""Unit tests for the practice manager's listing and alert operations."""

from datetime import timedelta

import pytest

from builders import NOW, ROSTER, make_case, make_customer
from lifecycle_service.core.errors import NotFoundError, TransportError
from lifecycle_service.core.practice_manager import PracticeManager
from lifecycle_service.infrastructure.persistence import InMemoryPracticeStore
from lifecycle_service.models import CaseState, CaseType, CustomerNotification, CustomerStatus


def ids(alerts):
    return [a.id for a in alerts]


class NotificationDeleteFails(InMemoryPracticeStore):
    async def delete_customer_notification(self, notification_id):
        raise TransportError("backend down")


@pytest.mark.unit
class TestListing:

    async def test_consultant_lists_only_visible_customers(self, manager, store, admin, consultant):
        await store.create_customer(make_customer("C1", assigned_to="Kejdi"))
        await store.create_customer(make_customer("C2", assigned_to="Albert"))

        assert [c.customer_id for c in await manager.list_customers(consultant)] == ["C1"]
        assert len(await manager.list_customers(admin)) == 2

    async def test_status_filter(self, manager, store, admin):
        await store.create_customer(make_customer("C1", status=CustomerStatus.CLIENT, assigned_to="Kejdi"))
        await store.create_customer(make_customer("C2"))

        clients = await manager.list_customers(admin, CustomerStatus.CLIENT)

        assert [c.customer_id for c in clients] == ["C1"]

    async def test_case_filters(self, manager, store, admin):
        await store.create_case(make_case("CASE1", state=CaseState.NEW, customer_id="C1"))
        await store.create_case(make_case("CASE2", state=CaseState.INTAKE, customer_id="C2"))

        assert [c.case_id for c in await manager.list_cases(admin, case_type=CaseType.CUSTOMER)] == ["CASE2"]
        assert [c.case_id for c in await manager.list_cases(admin, customer_id="C1")] == ["CASE1"]

    async def test_history_hidden_from_other_consultants(self, manager, store, admin, consultant):
        await store.create_customer(make_customer("C2", assigned_to="Albert", created_by="kejdi"))

        with pytest.raises(NotFoundError):
            await manager.get_customer_history("C2", consultant)
        assert len(await manager.get_customer_history("C2", admin)) == 1


@pytest.mark.unit
class TestAlertOperations:

    async def test_dismissed_alert_returns_after_ttl(self, manager, store, admin):
        await store.create_customer(
            make_customer(status=CustomerStatus.ON_HOLD, follow_up_date=NOW - timedelta(days=1))
        )

        assert [a.id for a in await manager.compute_alerts(admin)] == ["C1-onhold-20260309"]

        await manager.dismiss_alert("C1-onhold-20260309", admin)
        assert await manager.compute_alerts(admin) == []
        assert await manager.compute_alerts(admin, now=NOW + timedelta(days=6)) == []

        later = NOW + timedelta(days=7, minutes=1)
        assert [a.id for a in await manager.compute_alerts(admin, now=later)] == ["C1-onhold-20260309"]

    async def test_dismissing_notification_alert_deletes_it(self, manager, store, admin):
        await store.create_customer(make_customer())
        store.add_notification(CustomerNotification(notification_id="N1", customer_id="C1"))

        await manager.dismiss_alert("C1-notification-N1", admin)

        assert await store.get_customer_notifications() == []
        assert manager.dismissals.for_viewer(admin).is_dismissed("C1-notification-N1", NOW)

    async def test_failed_notification_delete_keeps_local_dismissal(self, dismissals, admin):
        store = NotificationDeleteFails()
        manager = PracticeManager(store, dismissals, closer_roster=ROSTER, clock=lambda: NOW)
        store.add_notification(CustomerNotification(notification_id="N1", customer_id="C1"))

        await manager.dismiss_alert("C1-notification-N1", admin)

        assert dismissals.for_viewer(admin).is_dismissed("C1-notification-N1", NOW)
        assert len(await store.get_customer_notifications()) == 1

    async def test_mutation_refreshes_published_alerts(self, manager, store, admin):
        await store.create_customer(make_customer(status=CustomerStatus.SEND_PROPOSAL, hours_in_status=30))

        await manager.set_customer_status("C1", CustomerStatus.WAITING_APPROVAL, admin)

        assert manager.refresher.published_generation == 1
        assert manager.refresher.snapshot.customers[0].status == CustomerStatus.WAITING_APPROVAL
        assert await manager.compute_alerts(admin) == []

    async def test_dismissals_are_per_viewer(self, manager, store, admin):
        await store.create_customer(make_customer(status=CustomerStatus.WAITING_APPROVAL, hours_in_status=50))
        colleague = admin.model_copy(update={"identity": "Bob", "username": "bob"})

        await manager.dismiss_alert("C1-wait-48", admin)

        assert await manager.compute_alerts(admin) == []
        assert ids(await manager.compute_alerts(colleague)) == ["C1-wait-48"]

    async def test_dismissed_notification_does_not_return_as_on_hold_fallback(self, manager, store, admin):
        await store.create_customer(
            make_customer(status=CustomerStatus.ON_HOLD, follow_up_date=NOW - timedelta(days=1))
        )
        store.add_notification(CustomerNotification(notification_id="N1", customer_id="C1"))
        assert ids(await manager.compute_alerts(admin)) == ["C1-notification-N1"]

        await manager.dismiss_alert("C1-notification-N1", admin)

        assert await manager.compute_alerts(admin) == []
        later = NOW + timedelta(days=7, minutes=1)
        assert ids(await manager.compute_alerts(admin, now=later)) == ["C1-onhold-20260309"]

    async def test_alerts_read_published_snapshot(self, manager, store, admin):
        await store.create_customer(make_customer(status=CustomerStatus.SEND_PROPOSAL, hours_in_status=30))
        assert ids(await manager.compute_alerts(admin)) == ["C1-respond-24"]

        await store.create_customer(make_customer("C2", status=CustomerStatus.INTAKE, hours_in_status=30))
        assert ids(await manager.compute_alerts(admin)) == ["C1-respond-24"]

        await manager.refresher.refresh()
        assert ids(await manager.compute_alerts(admin)) == ["C2-intake-24", "C1-respond-24"]
