from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ...db import models
from .dispatcher import BaseNotificationDispatcher, StatusAction

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SentNotification:
    kind: str
    booking_request_id: int
    data: dict = field(default_factory=dict)


class StubDispatcher(BaseNotificationDispatcher):
    """Dispatcher that only logs and remembers what it would have sent."""

    def __init__(self, settings) -> None:
        super().__init__(settings)
        self.sent: list[SentNotification] = []

    def _record(self, kind: str, request: models.BookingRequest, **data) -> None:
        logger.info(
            "Stub notification",
            extra={"kind": kind, "booking_request_id": request.id},
        )
        self.sent.append(SentNotification(kind=kind, booking_request_id=request.id, data=data))

    def send_admin_reminder(self, request, hours_pending):
        self._record("admin_reminder", request, hours_pending=hours_pending)

    def send_customer_delay_notice(self, request, hours_pending):
        self._record("customer_delay_notice", request, hours_pending=hours_pending)

    def send_auto_rejection(self, request, hours_pending):
        self._record("auto_rejection", request, hours_pending=hours_pending)

    def send_status_update(self, request, action: StatusAction, detail=None):
        self._record(f"status_{action}", request, detail=detail)
