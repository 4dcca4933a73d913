from datetime import date, datetime
from enum import Enum as PyEnum
from sqlalchemy import Date, DateTime, Enum, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class BookingRequestStatus(str, PyEnum):
    pending_confirmation = "pending_confirmation"
    confirmed = "confirmed"
    rejected = "rejected"


TERMINAL_STATUSES = (BookingRequestStatus.confirmed, BookingRequestStatus.rejected)


class BookingRequest(Base):
    __tablename__ = "booking_requests"
    __table_args__ = (
        Index("ix_booking_requests_timeout_lookup", "status", "submitted_at", "reviewed_at"),
        Index(
            "ix_booking_requests_resource_key",
            "customer_email",
            "tour_type",
            "booking_date",
            "booking_time",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_name: Mapped[str] = mapped_column(String(255))
    customer_email: Mapped[str] = mapped_column(String(255))
    customer_phone: Mapped[str | None] = mapped_column(String(32))
    tour_type: Mapped[str] = mapped_column(String(64))
    tour_name: Mapped[str | None] = mapped_column(String(255))
    booking_date: Mapped[date] = mapped_column(Date)
    booking_time: Mapped[str] = mapped_column(String(16))
    adults: Mapped[int] = mapped_column(Integer, default=1)
    children: Mapped[int] = mapped_column(Integer, default=0)
    infants: Mapped[int] = mapped_column(Integer, default=0)
    total_amount: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    special_requests: Mapped[str | None] = mapped_column(Text)
    payment_method_token: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[BookingRequestStatus] = mapped_column(
        Enum(BookingRequestStatus), default=BookingRequestStatus.pending_confirmation
    )
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reviewed_by: Mapped[str | None] = mapped_column(String(64))
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    events = relationship(
        "LifecycleEvent",
        back_populates="booking_request",
        order_by="LifecycleEvent.id",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def has_payment_method(self) -> bool:
        return bool(self.payment_method_token)
