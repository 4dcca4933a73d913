from . import (
    booking_request_service,
    booking_request_store,
    conflict_resolver,
    lifecycle_event_store,
    review_service,
    timesheet_service,
    timeout_policy,
    timeout_processor,
)

__all__ = [
    "booking_request_service",
    "booking_request_store",
    "conflict_resolver",
    "lifecycle_event_store",
    "review_service",
    "timesheet_service",
    "timeout_policy",
    "timeout_processor",
]
