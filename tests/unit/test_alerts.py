"""Unit tests for the alert engine."""

from datetime import datetime, timedelta, timezone

import pytest

from builders import NOW, make_case, make_customer
from lifecycle_service.core.alerts import (
    AlertThresholds,
    PracticeSnapshot,
    compute_alerts,
    parse_tiers,
    pick_tier,
)
from lifecycle_service.models import (
    SYSTEM_VIEWER,
    AlertKind,
    AlertSeverity,
    CaseState,
    CustomerNotification,
    CustomerStatus,
    Meeting,
    MeetingStatus,
    ViewerContext,
    ViewerRole,
)


def alerts_for(viewer=SYSTEM_VIEWER, now=NOW, dismissed=(), thresholds=None, **snapshot):
    return compute_alerts(
        PracticeSnapshot(**snapshot), now, set(dismissed), viewer, thresholds or AlertThresholds()
    )


def ids(alerts):
    return [a.id for a in alerts]


@pytest.mark.unit
class TestThresholdTiers:

    def test_parse_sorts_ascending(self):
        tiers = parse_tiers("96:critical, 48:warn,72:critical")
        assert [t.hours for t in tiers] == [48, 72, 96]
        assert tiers[0].severity == AlertSeverity.WARN

    def test_pick_highest_reached(self):
        tiers = parse_tiers("48:warn,72:critical")
        assert pick_tier(tiers, 47.9) is None
        assert pick_tier(tiers, 48).hours == 48
        assert pick_tier(tiers, 500).hours == 72


@pytest.mark.unit
class TestDeadlineAlerts:

    def test_deadline_at_warning_boundary_is_warn(self):
        case = make_case(state=CaseState.IN_PROGRESS, deadline=NOW + timedelta(hours=48))
        [alert] = alerts_for(cases=[case])
        assert alert.id == "CASE7-deadline-48"
        assert alert.kind == AlertKind.DEADLINE
        assert alert.severity == AlertSeverity.WARN

    def test_deadline_just_passed_is_critical(self):
        case = make_case(state=CaseState.IN_PROGRESS, deadline=NOW - timedelta(microseconds=1))
        [alert] = alerts_for(cases=[case])
        assert alert.id == "CASE7-deadline-overdue"
        assert alert.severity == AlertSeverity.CRITICAL

    def test_distant_deadline_is_quiet(self):
        case = make_case(state=CaseState.IN_PROGRESS, deadline=NOW + timedelta(hours=49))
        assert alerts_for(cases=[case]) == []

    def test_finalized_case_never_alerts(self):
        case = make_case(state=CaseState.FINALIZED, hours_in_state=500, deadline=NOW - timedelta(days=3))
        assert alerts_for(cases=[case]) == []


@pytest.mark.unit
class TestStalenessAlerts:

    def test_customer_waiting_approval_50h_is_warn_follow(self):
        customer = make_customer(status=CustomerStatus.WAITING_APPROVAL, hours_in_status=50)
        [alert] = alerts_for(customers=[customer])
        assert alert.id == "C1-wait-48"
        assert alert.kind == AlertKind.FOLLOW
        assert alert.severity == AlertSeverity.WARN

    def test_customer_waiting_approval_75h_is_critical(self):
        customer = make_customer(status=CustomerStatus.WAITING_APPROVAL, hours_in_status=75)
        [alert] = alerts_for(customers=[customer])
        assert alert.id == "C1-wait-72"
        assert alert.severity == AlertSeverity.CRITICAL

    def test_customer_waiting_below_threshold_is_quiet(self):
        customer = make_customer(status=CustomerStatus.WAITING_ACCEPTANCE, hours_in_status=47)
        assert alerts_for(customers=[customer]) == []

    @pytest.mark.parametrize("hours,expected_id,severity", [
        (50, "CASE7-wait-48", AlertSeverity.WARN),
        (80, "CASE7-wait-72", AlertSeverity.CRITICAL),
        (200, "CASE7-wait-96", AlertSeverity.CRITICAL),
    ])
    def test_case_waiting_tiers(self, hours, expected_id, severity):
        case = make_case(state=CaseState.WAITING_AUTHORITIES, hours_in_state=hours)
        [alert] = alerts_for(cases=[case])
        assert alert.id == expected_id
        assert alert.kind == AlertKind.FOLLOW
        assert alert.severity == severity

    def test_case_respond_after_12h(self):
        assert alerts_for(cases=[make_case(state=CaseState.SEND_PROPOSAL, hours_in_state=11)]) == []

        [alert] = alerts_for(cases=[make_case(state=CaseState.SEND_PROPOSAL, hours_in_state=12)])
        assert alert.id == "CASE7-respond-12"
        assert alert.kind == AlertKind.RESPOND
        assert alert.severity == AlertSeverity.WARN

    def test_customer_intake_after_24h(self):
        [alert] = alerts_for(customers=[make_customer(status=CustomerStatus.INTAKE, hours_in_status=30)])
        assert alert.id == "C1-intake-24"
        assert alert.kind == AlertKind.FOLLOW

    def test_customer_respond_after_24h(self):
        [alert] = alerts_for(customers=[make_customer(status=CustomerStatus.SEND_CONTRACT, hours_in_status=24)])
        assert alert.id == "C1-respond-24"
        assert alert.kind == AlertKind.RESPOND

    def test_clients_and_parked_customers_have_no_staleness(self):
        customers = [
            make_customer("C1", status=CustomerStatus.CLIENT, hours_in_status=500),
            make_customer("C2", status=CustomerStatus.ARCHIVED, hours_in_status=500),
        ]
        assert alerts_for(customers=customers) == []

    def test_id_is_stable_while_condition_holds(self):
        early = alerts_for(customers=[make_customer(status=CustomerStatus.WAITING_APPROVAL, hours_in_status=50)])
        later = alerts_for(
            now=NOW + timedelta(hours=10),
            customers=[make_customer(status=CustomerStatus.WAITING_APPROVAL, hours_in_status=50)],
        )
        assert ids(early) == ids(later) == ["C1-wait-48"]


@pytest.mark.unit
class TestMeetingAlerts:

    def meeting(self, starts_at, status=MeetingStatus.SCHEDULED):
        return Meeting(meeting_id="M1", starts_at=starts_at, status=status)

    def test_later_today_is_warn(self):
        [alert] = alerts_for(meetings=[self.meeting(NOW + timedelta(hours=3))])
        assert alert.id == "M1-meeting-today"
        assert alert.severity == AlertSeverity.WARN

    def test_started_and_not_done_is_critical(self):
        [alert] = alerts_for(meetings=[self.meeting(NOW - timedelta(hours=1))])
        assert alert.id == "M1-meeting-missed"
        assert alert.severity == AlertSeverity.CRITICAL

    def test_done_or_tomorrow_is_quiet(self):
        meetings = [
            self.meeting(NOW - timedelta(hours=1), status=MeetingStatus.DONE),
            Meeting(meeting_id="M2", starts_at=NOW + timedelta(hours=13)),
        ]
        assert alerts_for(meetings=meetings) == []

    def test_today_uses_configured_timezone(self):
        # 23:30 UTC is already tomorrow in Vienna
        now = datetime(2026, 3, 10, 20, 0, tzinfo=timezone.utc)
        meeting = Meeting(meeting_id="M1", starts_at=datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc))
        assert ids(alerts_for(now=now, meetings=[meeting])) == ["M1-meeting-today"]
        assert alerts_for(now=now, meetings=[meeting], thresholds=AlertThresholds(timezone="Europe/Vienna")) == []


@pytest.mark.unit
class TestNotificationAlerts:

    def test_backend_notification_becomes_alert(self):
        customer = make_customer(assigned_to="Kejdi")
        notification = CustomerNotification(
            notification_id="N1", customer_id="C1", message="Call back", severity="critical"
        )
        [alert] = alerts_for(customers=[customer], notifications=[notification])
        assert alert.id == "C1-notification-N1"
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.notification_id == "N1"
        assert alert.assigned_to == "Kejdi"

    def test_on_hold_fallback_when_no_notification(self):
        customer = make_customer(
            status=CustomerStatus.ON_HOLD, follow_up_date=datetime(2026, 3, 9, 9, 0, tzinfo=timezone.utc)
        )
        [alert] = alerts_for(customers=[customer])
        assert alert.id == "C1-onhold-20260309"

    def test_on_hold_before_follow_up_date_is_quiet(self):
        customer = make_customer(status=CustomerStatus.ON_HOLD, follow_up_date=NOW + timedelta(days=1))
        assert alerts_for(customers=[customer]) == []

    def test_notification_suppresses_fallback(self):
        customer = make_customer(status=CustomerStatus.ON_HOLD, follow_up_date=NOW - timedelta(days=1))
        notification = CustomerNotification(notification_id="N1", customer_id="C1")
        assert ids(alerts_for(customers=[customer], notifications=[notification])) == ["C1-notification-N1"]


@pytest.mark.unit
class TestPostProcessing:

    def test_dismissed_ids_are_hidden(self):
        customer = make_customer(status=CustomerStatus.WAITING_APPROVAL, hours_in_status=50)
        assert alerts_for(customers=[customer], dismissed={"C1-wait-48"}) == []

    def test_consultant_sees_only_own_work(self, consultant):
        customers = [
            make_customer("C1", status=CustomerStatus.INTAKE, hours_in_status=30, assigned_to="Dr. Kejdi"),
            make_customer("C2", status=CustomerStatus.INTAKE, hours_in_status=30, assigned_to="Albert"),
            make_customer("C3", status=CustomerStatus.INTAKE, hours_in_status=30, assigned_to="Albert",
                          created_by="kejdi"),
        ]
        assert ids(alerts_for(viewer=consultant, customers=customers)) == ["C1-intake-24"]

    def test_meeting_visible_to_its_creator(self, consultant):
        meetings = [
            Meeting(meeting_id="M1", starts_at=NOW + timedelta(hours=2), assigned_to="Albert", created_by="kejdi"),
            Meeting(meeting_id="M2", starts_at=NOW + timedelta(hours=2), assigned_to="Albert", created_by="albert"),
        ]
        assert ids(alerts_for(viewer=consultant, meetings=meetings)) == ["M1-meeting-today"]

    def test_manager_sees_team(self):
        viewer = ViewerContext(role=ViewerRole.MANAGER, identity="Boss", username="boss", team=frozenset({"Albert"}))
        customers = [
            make_customer("C1", status=CustomerStatus.INTAKE, hours_in_status=30, assigned_to="Kejdi"),
            make_customer("C2", status=CustomerStatus.INTAKE, hours_in_status=30, assigned_to="Albert"),
        ]
        assert ids(alerts_for(viewer=viewer, customers=customers)) == ["C2-intake-24"]

    def test_case_type_filter(self, admin):
        viewer = admin.model_copy(update={"case_type": "client"})
        cases = [
            make_case("CASE1", state=CaseState.WAITING_CUSTOMER, hours_in_state=50),
            make_case("CASE2", state=CaseState.WAITING_RESPONSE_P, hours_in_state=50),
        ]
        assert ids(alerts_for(viewer=viewer, cases=cases)) == ["CASE1-wait-48"]

    def test_duplicates_collapse(self):
        customer = make_customer(status=CustomerStatus.WAITING_APPROVAL, hours_in_status=50)
        assert ids(alerts_for(customers=[customer, customer])) == ["C1-wait-48"]

    def test_ordering_critical_then_kind_then_id(self):
        snapshot = dict(
            customers=[
                make_customer("C1", status=CustomerStatus.WAITING_APPROVAL, hours_in_status=50),
                make_customer("C2", status=CustomerStatus.SEND_PROPOSAL, hours_in_status=30),
                make_customer("C3", status=CustomerStatus.WAITING_APPROVAL, hours_in_status=80),
            ],
            cases=[make_case("CASE9", state=CaseState.IN_PROGRESS, deadline=NOW - timedelta(hours=1))],
            meetings=[Meeting(meeting_id="M1", starts_at=NOW + timedelta(hours=2))],
        )
        assert ids(alerts_for(**snapshot)) == [
            "CASE9-deadline-overdue",
            "C3-wait-72",
            "C1-wait-48",
            "M1-meeting-today",
            "C2-respond-24",
        ]

    def test_same_inputs_same_output(self):
        snapshot = dict(
            customers=[make_customer(status=CustomerStatus.WAITING_APPROVAL, hours_in_status=75)],
            cases=[make_case(state=CaseState.WAITING_CUSTOMER, hours_in_state=100)],
        )
        assert alerts_for(**snapshot) == alerts_for(**snapshot)
