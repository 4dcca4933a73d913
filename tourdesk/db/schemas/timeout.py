from datetime import datetime
from typing import Any, Literal
from pydantic import BaseModel

TimeoutActionName = Literal[
    "process_all",
    "send_admin_reminders",
    "send_customer_notifications",
    "auto_reject_expired",
    "cleanup_payment_methods",
]


class TimeoutRunRequest(BaseModel):
    action: TimeoutActionName = "process_all"


class ActionSummary(BaseModel):
    action_type: str
    processed_count: int
    details: dict[str, Any]


class TimeoutMonitoringEntry(BaseModel):
    id: int
    customer_name: str
    customer_email: str
    tour_name: str | None = None
    submitted_at: datetime
    hours_pending: float
    timeout_status: str
    admin_reminder_sent: bool
    customer_notification_sent: bool


class ConflictResolution(BaseModel):
    policy: str
    resource_key: list[Any]
    canonical_id: int
    resolved_id: int
