"""Current-state access for booking requests.

Every write here is a compare-and-set ``UPDATE ... WHERE`` statement. The
return value is whether this caller's update matched the row; ``False`` means
another actor (a concurrent reconciliation pass or an admin) got there first.
"""

from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from ..db import models
from ..db.models.booking_request import BookingRequestStatus, TERMINAL_STATUSES


def get_request(db: Session, booking_request_id: int) -> models.BookingRequest | None:
    return db.get(models.BookingRequest, booking_request_id, populate_existing=True)


def list_requests(
    db: Session, status: BookingRequestStatus | None = None
) -> list[models.BookingRequest]:
    stmt = select(models.BookingRequest).order_by(models.BookingRequest.submitted_at.desc())
    if status:
        stmt = stmt.where(models.BookingRequest.status == status)
    return list(db.execute(stmt).scalars())


def list_pending(db: Session) -> list[models.BookingRequest]:
    return list(
        db.execute(
            select(models.BookingRequest)
            .where(models.BookingRequest.status == BookingRequestStatus.pending_confirmation)
            .order_by(models.BookingRequest.submitted_at)
        ).scalars()
    )


def list_timeout_candidates(db: Session, limit: int, cleanup_before: datetime) -> list[int]:
    """Ids of pending requests and terminal requests whose token is due for cleanup."""
    stmt = (
        select(models.BookingRequest.id)
        .where(
            or_(
                models.BookingRequest.status == BookingRequestStatus.pending_confirmation,
                models.BookingRequest.status.in_(TERMINAL_STATUSES)
                & models.BookingRequest.payment_method_token.is_not(None)
                & (models.BookingRequest.reviewed_at <= cleanup_before),
            )
        )
        .order_by(models.BookingRequest.submitted_at, models.BookingRequest.id)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def claim_pending(db: Session, booking_request_id: int) -> bool:
    """Lock the row while it is still pending; ``False`` once it has been reviewed."""
    stmt = (
        update(models.BookingRequest)
        .where(
            models.BookingRequest.id == booking_request_id,
            models.BookingRequest.status == BookingRequestStatus.pending_confirmation,
        )
        .values(status=BookingRequestStatus.pending_confirmation)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def transition_from_pending(
    db: Session,
    booking_request_id: int,
    *,
    to_status: BookingRequestStatus,
    reviewed_at: datetime,
    reviewed_by: str,
    rejection_reason: str | None = None,
    submitted_before: datetime | None = None,
) -> bool:
    if to_status not in TERMINAL_STATUSES:
        raise ValueError(f"{to_status} is not a terminal status")
    stmt = (
        update(models.BookingRequest)
        .where(
            models.BookingRequest.id == booking_request_id,
            models.BookingRequest.status == BookingRequestStatus.pending_confirmation,
        )
        .values(
            status=to_status,
            reviewed_at=reviewed_at,
            reviewed_by=reviewed_by,
            rejection_reason=rejection_reason,
        )
        .execution_options(synchronize_session=False)
    )
    if submitted_before is not None:
        stmt = stmt.where(models.BookingRequest.submitted_at <= submitted_before)
    return db.execute(stmt).rowcount == 1


def clear_payment_token(
    db: Session, booking_request_id: int, *, reviewed_before: datetime
) -> bool:
    stmt = (
        update(models.BookingRequest)
        .where(
            models.BookingRequest.id == booking_request_id,
            models.BookingRequest.status.in_(TERMINAL_STATUSES),
            models.BookingRequest.payment_method_token.is_not(None),
            models.BookingRequest.reviewed_at <= reviewed_before,
        )
        .values(payment_method_token=None)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1
