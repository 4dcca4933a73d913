from .booking_request import (
    BookingRequest,
    BookingRequestCreate,
    BookingRequestReject,
    LifecycleEvent,
)
from .timeout import (
    ActionSummary,
    ConflictResolution,
    TimeoutMonitoringEntry,
    TimeoutRunRequest,
)
