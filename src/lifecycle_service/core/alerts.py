"""Alert aggregation engine.

Alerts are derived, never stored: ``compute_alerts`` is a pure function of the
entity snapshot, the clock, the dismissed ids and the viewer. Running it twice
on the same inputs yields the same list in the same order.

Rules (thresholds are configurable through AlertThresholds):

- deadline: non-finalized case past its deadline (critical) or due within 48h (warn)
- follow:   case waiting on someone else 48/72/96h, customer waiting on approval
            or acceptance 48/72h, customer sitting in intake 24h, on-hold
            customer whose follow-up date has passed
- respond:  case or customer waiting on us 12h/24h
- meeting:  scheduled meeting later today (warn) or already started (critical)
"""

import logging
from datetime import datetime, timezone, tzinfo
from typing import Collection, Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from lifecycle_service.core.history import last_change_at
from lifecycle_service.models.alert import Alert, AlertKind, AlertSeverity, make_alert_id
from lifecycle_service.models.case import Case, CaseStage, CaseState
from lifecycle_service.models.customer import Customer, CustomerStatus
from lifecycle_service.models.meeting import CustomerNotification, Meeting
from lifecycle_service.models.viewer import ViewerContext
from lifecycle_service.utils.time import ensure_utc, hours_between

logger = logging.getLogger(__name__)

CASE_RESPOND_STATES = frozenset({CaseState.SEND_PROPOSAL, CaseState.DISCUSSING_Q, CaseState.SEND_CONTRACT})
CUSTOMER_WAITING_STATES = frozenset({CustomerStatus.WAITING_APPROVAL, CustomerStatus.WAITING_ACCEPTANCE})
CUSTOMER_RESPOND_STATES = frozenset({
    CustomerStatus.SEND_PROPOSAL,
    CustomerStatus.SEND_CONTRACT,
    CustomerStatus.SEND_RESPONSE,
})


class ThresholdTier(BaseModel):
    """Elapsed hours at which an alert reaches ``severity``."""

    hours: float = Field(ge=0)
    severity: AlertSeverity

    class Config:
        frozen = True


def parse_tiers(spec: str) -> Tuple[ThresholdTier, ...]:
    """Parse ``"48:warn,72:critical"`` into ascending tiers.

    >>> [t.hours for t in parse_tiers("72:critical,48:warn")]
    [48.0, 72.0]
    """
    tiers = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        hours, _, severity = part.partition(":")
        tiers.append(ThresholdTier(hours=float(hours), severity=AlertSeverity(severity.strip() or "warn")))
    return tuple(sorted(tiers, key=lambda t: t.hours))


def pick_tier(tiers: Iterable[ThresholdTier], elapsed_hours: float) -> Optional[ThresholdTier]:
    """The highest tier reached; the top tier is open-ended."""
    reached = None
    for tier in tiers:
        if elapsed_hours >= tier.hours:
            reached = tier
    return reached


class AlertThresholds(BaseModel):
    """Alert engine configuration."""

    deadline_warning_hours: float = 48.0
    case_waiting_tiers: Tuple[ThresholdTier, ...] = parse_tiers("48:warn,72:critical,96:critical")
    case_respond_hours: float = 12.0
    customer_waiting_tiers: Tuple[ThresholdTier, ...] = parse_tiers("48:warn,72:critical")
    customer_intake_follow_hours: float = 24.0
    customer_respond_hours: float = 24.0
    timezone: str = "UTC"

    class Config:
        frozen = True

    @classmethod
    def from_settings(cls, settings) -> "AlertThresholds":
        return cls(
            deadline_warning_hours=settings.deadline_warning_hours,
            case_waiting_tiers=parse_tiers(settings.case_waiting_tiers),
            case_respond_hours=settings.case_respond_hours,
            customer_waiting_tiers=parse_tiers(settings.customer_waiting_tiers),
            customer_intake_follow_hours=settings.customer_intake_follow_hours,
            customer_respond_hours=settings.customer_respond_hours,
            timezone=settings.alert_timezone,
        )

    def tzinfo(self) -> tzinfo:
        if self.timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)


DEFAULT_THRESHOLDS = AlertThresholds()


class PracticeSnapshot(BaseModel):
    """Everything the alert engine reads, loaded in one pass."""

    customers: List[Customer] = Field(default_factory=list)
    cases: List[Case] = Field(default_factory=list)
    meetings: List[Meeting] = Field(default_factory=list)
    notifications: List[CustomerNotification] = Field(default_factory=list)


# ============================================================
# Rules
# ============================================================

def _case_label(case: Case) -> str:
    return case.title or case.case_id


def _case_alert(case: Case, tag: str, bucket, kind: AlertKind, severity: AlertSeverity, message: str) -> Alert:
    return Alert(
        id=make_alert_id(case.case_id, tag, bucket),
        subject_id=case.case_id,
        kind=kind,
        severity=severity,
        message=message,
        customer_id=case.customer_id,
        case_id=case.case_id,
        assigned_to=case.assigned_to,
        case_type=case.case_type.value,
    )


def _customer_alert(
    customer: Customer,
    tag: str,
    bucket,
    kind: AlertKind,
    severity: AlertSeverity,
    message: str,
) -> Alert:
    return Alert(
        id=make_alert_id(customer.customer_id, tag, bucket),
        subject_id=customer.customer_id,
        kind=kind,
        severity=severity,
        message=message,
        customer_id=customer.customer_id,
        assigned_to=customer.assigned_to,
    )


def deadline_alert(case: Case, now: datetime, thresholds: AlertThresholds) -> Optional[Alert]:
    if case.deadline is None or case.is_finalized:
        return None
    if case.deadline < now:
        return _case_alert(
            case, "deadline", "overdue", AlertKind.DEADLINE, AlertSeverity.CRITICAL,
            f"Deadline for {_case_label(case)} has passed",
        )
    hours_until = hours_between(now, case.deadline)
    if hours_until <= thresholds.deadline_warning_hours:
        return _case_alert(
            case, "deadline", thresholds.deadline_warning_hours, AlertKind.DEADLINE, AlertSeverity.WARN,
            f"Deadline for {_case_label(case)} is in {hours_until:.0f}h",
        )
    return None


def case_staleness_alert(case: Case, now: datetime, thresholds: AlertThresholds) -> Optional[Alert]:
    elapsed = hours_between(last_change_at(case), now)
    if case.stage == CaseStage.AWAITING:
        tier = pick_tier(thresholds.case_waiting_tiers, elapsed)
        if tier is None:
            return None
        return _case_alert(
            case, "wait", tier.hours, AlertKind.FOLLOW, tier.severity,
            f"{_case_label(case)} has been waiting in {case.state.value} for {elapsed:.0f}h",
        )
    if case.state in CASE_RESPOND_STATES and elapsed >= thresholds.case_respond_hours:
        return _case_alert(
            case, "respond", thresholds.case_respond_hours, AlertKind.RESPOND, AlertSeverity.WARN,
            f"{_case_label(case)} needs a response ({case.state.value} for {elapsed:.0f}h)",
        )
    return None


def customer_staleness_alert(customer: Customer, now: datetime, thresholds: AlertThresholds) -> Optional[Alert]:
    elapsed = hours_between(last_change_at(customer), now)
    status = customer.status
    if status in CUSTOMER_WAITING_STATES:
        tier = pick_tier(thresholds.customer_waiting_tiers, elapsed)
        if tier is None:
            return None
        return _customer_alert(
            customer, "wait", tier.hours, AlertKind.FOLLOW, tier.severity,
            f"Follow up with {customer.name}: {status.label} for {elapsed:.0f}h",
        )
    if status == CustomerStatus.INTAKE and elapsed >= thresholds.customer_intake_follow_hours:
        return _customer_alert(
            customer, "intake", thresholds.customer_intake_follow_hours, AlertKind.FOLLOW, AlertSeverity.WARN,
            f"New lead {customer.name} has not been contacted for {elapsed:.0f}h",
        )
    if status in CUSTOMER_RESPOND_STATES and elapsed >= thresholds.customer_respond_hours:
        return _customer_alert(
            customer, "respond", thresholds.customer_respond_hours, AlertKind.RESPOND, AlertSeverity.WARN,
            f"{customer.name} is waiting on us: {status.label} for {elapsed:.0f}h",
        )
    return None


def meeting_alert(meeting: Meeting, now: datetime, tz: tzinfo) -> Optional[Alert]:
    if not meeting.is_open:
        return None
    if meeting.starts_at < now:
        tag, severity = "missed", AlertSeverity.CRITICAL
        message = f"{meeting.title} at {meeting.starts_at.astimezone(tz):%H:%M} was not marked done"
    elif meeting.starts_at.astimezone(tz).date() == now.astimezone(tz).date():
        tag, severity = "today", AlertSeverity.WARN
        message = f"{meeting.title} today at {meeting.starts_at.astimezone(tz):%H:%M}"
    else:
        return None
    return Alert(
        id=make_alert_id(meeting.meeting_id, "meeting", tag),
        subject_id=meeting.meeting_id,
        kind=AlertKind.MEETING,
        severity=severity,
        message=message,
        customer_id=meeting.customer_id,
        meeting_id=meeting.meeting_id,
        assigned_to=meeting.assigned_to,
        created_by=meeting.created_by,
    )


def _coerce(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def notification_alert(notification: CustomerNotification, customer: Optional[Customer]) -> Alert:
    kind = _coerce(AlertKind, notification.kind, AlertKind.FOLLOW)
    severity = _coerce(AlertSeverity, notification.severity, AlertSeverity.WARN)
    return Alert(
        id=make_alert_id(notification.customer_id, "notification", notification.notification_id),
        subject_id=notification.customer_id,
        kind=kind,
        severity=severity,
        message=notification.message or f"Follow up with {customer.name if customer else notification.customer_id}",
        customer_id=notification.customer_id,
        notification_id=notification.notification_id,
        assigned_to=customer.assigned_to if customer else "",
    )


def on_hold_alert_id(customer: Customer) -> Optional[str]:
    """Id of the fallback alert for an on-hold customer, None when not on hold."""
    if customer.status != CustomerStatus.ON_HOLD or customer.follow_up_date is None:
        return None
    return make_alert_id(customer.customer_id, "onhold", f"{customer.follow_up_date:%Y%m%d}")


def on_hold_fallback_alert(customer: Customer, now: datetime) -> Optional[Alert]:
    if on_hold_alert_id(customer) is None or customer.follow_up_date > now:
        return None
    return _customer_alert(
        customer, "onhold", f"{customer.follow_up_date:%Y%m%d}", AlertKind.FOLLOW, AlertSeverity.WARN,
        f"Follow-up date for {customer.name} (on hold) has passed",
    )


# ============================================================
# Engine
# ============================================================

def generate_alerts(snapshot: PracticeSnapshot, now: datetime, thresholds: AlertThresholds) -> List[Alert]:
    """All alerts the rules produce, before dismissal and visibility filtering."""
    alerts: List[Alert] = []

    for case in snapshot.cases:
        for alert in (deadline_alert(case, now, thresholds), case_staleness_alert(case, now, thresholds)):
            if alert is not None:
                alerts.append(alert)

    customers: Dict[str, Customer] = {c.customer_id: c for c in snapshot.customers}
    for customer in snapshot.customers:
        alert = customer_staleness_alert(customer, now, thresholds)
        if alert is not None:
            alerts.append(alert)

    tz = thresholds.tzinfo()
    for meeting in snapshot.meetings:
        alert = meeting_alert(meeting, now, tz)
        if alert is not None:
            alerts.append(alert)

    notified = set()
    for notification in snapshot.notifications:
        notified.add(notification.customer_id)
        alerts.append(notification_alert(notification, customers.get(notification.customer_id)))

    for customer in snapshot.customers:
        if customer.customer_id in notified:
            continue
        alert = on_hold_fallback_alert(customer, now)
        if alert is not None:
            alerts.append(alert)

    return alerts


def sort_key(alert: Alert) -> Tuple[int, str, str]:
    return (alert.severity.rank, alert.kind.value, alert.id)


def compute_alerts(
    snapshot: PracticeSnapshot,
    now: datetime,
    dismissed: Collection[str],
    viewer: ViewerContext,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> List[Alert]:
    """
    Derive the visible alert list.

    Args:
        snapshot: Latest customers, cases, meetings and backend notifications
        now: Evaluation time
        dismissed: Alert ids currently dismissed (already TTL-filtered)
        viewer: Who is looking

    Returns:
        Alerts without dismissed or invisible entries, deduplicated by id,
        ordered by severity (critical first), kind, then id
    """
    now = ensure_utc(now)
    seen = set()
    result = []
    for alert in generate_alerts(snapshot, now, thresholds):
        if alert.id in dismissed:
            continue
        if not (viewer.can_see(alert.assigned_to, alert.case_type) or viewer.is_creator(alert.created_by)):
            continue
        if alert.id in seen:
            continue
        seen.add(alert.id)
        result.append(alert)

    result.sort(key=sort_key)
    return result
