"""Escalation policy for unattended booking requests.

``decide`` is a pure function: it looks only at the timestamps it is given and
at the set of lifecycle event types that were already written for a request,
and returns every escalation step that is due but has not fired yet. Returning
all due steps (instead of only the next one) lets a single reconciliation pass
catch up after a long scheduler outage.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable

from ..core.exceptions import ConfigurationError
from ..db.models.lifecycle_event import LifecycleEventType


class TimeoutAction(str, Enum):
    admin_reminder = "admin_reminder"
    customer_delay_notice = "customer_delay_notice"
    auto_reject = "auto_reject"
    payment_cleanup = "payment_cleanup"

    @property
    def event_type(self) -> LifecycleEventType:
        return ACTION_EVENT_TYPES[self]


ACTION_EVENT_TYPES: dict[TimeoutAction, LifecycleEventType] = {
    TimeoutAction.admin_reminder: LifecycleEventType.admin_reminder_sent,
    TimeoutAction.customer_delay_notice: LifecycleEventType.customer_delay_notified,
    TimeoutAction.auto_reject: LifecycleEventType.auto_rejected,
    TimeoutAction.payment_cleanup: LifecycleEventType.payment_method_cleaned,
}


@dataclass(frozen=True, slots=True)
class TimeoutThresholds:
    admin_reminder: timedelta = timedelta(hours=12)
    customer_delay_notice: timedelta = timedelta(hours=24)
    auto_reject: timedelta = timedelta(hours=48)
    payment_cleanup: timedelta = timedelta(hours=72)

    @classmethod
    def from_hours(
        cls,
        *,
        admin_reminder: float,
        customer_delay_notice: float,
        auto_reject: float,
        payment_cleanup: float,
    ) -> "TimeoutThresholds":
        thresholds = cls(
            admin_reminder=timedelta(hours=admin_reminder),
            customer_delay_notice=timedelta(hours=customer_delay_notice),
            auto_reject=timedelta(hours=auto_reject),
            payment_cleanup=timedelta(hours=payment_cleanup),
        )
        thresholds.validate()
        return thresholds

    def validate(self) -> None:
        values = {
            "admin_reminder": self.admin_reminder,
            "customer_delay_notice": self.customer_delay_notice,
            "auto_reject": self.auto_reject,
            "payment_cleanup": self.payment_cleanup,
        }
        for name, value in values.items():
            if value <= timedelta(0):
                raise ConfigurationError(f"Timeout threshold {name} must be positive, got {value}")
        if not self.admin_reminder < self.customer_delay_notice < self.auto_reject:
            raise ConfigurationError(
                "Timeout thresholds must satisfy admin_reminder < customer_delay_notice < auto_reject"
            )

    def pending_steps(self) -> tuple[tuple[TimeoutAction, timedelta], ...]:
        return (
            (TimeoutAction.admin_reminder, self.admin_reminder),
            (TimeoutAction.customer_delay_notice, self.customer_delay_notice),
            (TimeoutAction.auto_reject, self.auto_reject),
        )


DEFAULT_THRESHOLDS = TimeoutThresholds()


class TimeoutStatus(str, Enum):
    on_time = "ON_TIME"
    overdue_admin_reminder = "OVERDUE_ADMIN_REMINDER"
    overdue_customer_notification = "OVERDUE_CUSTOMER_NOTIFICATION"
    overdue_auto_reject = "OVERDUE_AUTO_REJECT"


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def decide(
    submitted_at: datetime,
    reviewed_at: datetime | None,
    now: datetime,
    fired_event_types: Iterable[LifecycleEventType | str],
    thresholds: TimeoutThresholds = DEFAULT_THRESHOLDS,
) -> list[TimeoutAction]:
    fired = {LifecycleEventType(event_type) for event_type in fired_event_types}
    now = as_utc(now)

    if reviewed_at is None:
        age = now - as_utc(submitted_at)
        return [
            action
            for action, threshold in thresholds.pending_steps()
            if age >= threshold and action.event_type not in fired
        ]

    if LifecycleEventType.payment_method_cleaned in fired:
        return []
    if now - as_utc(reviewed_at) >= thresholds.payment_cleanup:
        return [TimeoutAction.payment_cleanup]
    return []


def timeout_status(
    submitted_at: datetime,
    now: datetime,
    thresholds: TimeoutThresholds = DEFAULT_THRESHOLDS,
) -> TimeoutStatus:
    age = as_utc(now) - as_utc(submitted_at)
    if age >= thresholds.auto_reject:
        return TimeoutStatus.overdue_auto_reject
    if age >= thresholds.customer_delay_notice:
        return TimeoutStatus.overdue_customer_notification
    if age >= thresholds.admin_reminder:
        return TimeoutStatus.overdue_admin_reminder
    return TimeoutStatus.on_time


def cutoff_for(action: TimeoutAction, now: datetime, thresholds: TimeoutThresholds) -> datetime:
    delays = {
        TimeoutAction.admin_reminder: thresholds.admin_reminder,
        TimeoutAction.customer_delay_notice: thresholds.customer_delay_notice,
        TimeoutAction.auto_reject: thresholds.auto_reject,
        TimeoutAction.payment_cleanup: thresholds.payment_cleanup,
    }
    return as_utc(now) - delays[action]


def thresholds_from_settings(settings) -> TimeoutThresholds:
    return TimeoutThresholds.from_hours(
        admin_reminder=settings.admin_reminder_hours,
        customer_delay_notice=settings.customer_delay_hours,
        auto_reject=settings.auto_reject_hours,
        payment_cleanup=settings.payment_cleanup_hours,
    )
