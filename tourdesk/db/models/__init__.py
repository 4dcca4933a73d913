from .booking_request import BookingRequest, BookingRequestStatus, TERMINAL_STATUSES
from .lifecycle_event import (
    LifecycleEvent,
    LifecycleEventType,
    IDEMPOTENT_EVENT_TYPES,
    TERMINAL_EVENT_TYPES,
)
from .timesheet import Timesheet
from .admin_user import AdminUser, AdminRole, READ_ROLES, REVIEW_ROLES
from .audit_log import AuditLog, ActorType
