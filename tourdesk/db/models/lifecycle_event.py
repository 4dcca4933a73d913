from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import DateTime, Enum, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class LifecycleEventType(str, PyEnum):
    submitted = "submitted"
    admin_reminder_sent = "admin_reminder_sent"
    customer_delay_notified = "customer_delay_notified"
    approved = "approved"
    rejected = "rejected"
    auto_rejected = "auto_rejected"
    payment_method_cleaned = "payment_method_cleaned"
    payment_captured = "payment_captured"
    payment_failed = "payment_failed"
    notification_failed = "notification_failed"
    duplicate_auto_resolved = "duplicate_auto_resolved"


# At most one row per (request, type); the rest are free-form audit entries.
IDEMPOTENT_EVENT_TYPES = frozenset(
    {
        LifecycleEventType.submitted,
        LifecycleEventType.admin_reminder_sent,
        LifecycleEventType.customer_delay_notified,
        LifecycleEventType.approved,
        LifecycleEventType.rejected,
        LifecycleEventType.auto_rejected,
        LifecycleEventType.payment_method_cleaned,
        LifecycleEventType.payment_captured,
        LifecycleEventType.duplicate_auto_resolved,
    }
)

TERMINAL_EVENT_TYPES = frozenset(
    {
        LifecycleEventType.approved,
        LifecycleEventType.rejected,
        LifecycleEventType.auto_rejected,
        LifecycleEventType.duplicate_auto_resolved,
    }
)


class LifecycleEvent(Base):
    __tablename__ = "booking_request_events"
    __table_args__ = (
        UniqueConstraint(
            "booking_request_id",
            "idempotency_key",
            name="uq_booking_request_event_idempotency",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    booking_request_id: Mapped[int] = mapped_column(
        ForeignKey("booking_requests.id", ondelete="CASCADE"), index=True
    )
    event_type: Mapped[LifecycleEventType] = mapped_column(Enum(LifecycleEventType), index=True)
    payload: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    created_by: Mapped[str] = mapped_column(String(64))
    idempotency_key: Mapped[str | None] = mapped_column(String(64))

    booking_request = relationship("BookingRequest", back_populates="events")
