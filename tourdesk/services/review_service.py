"""Admin approve/reject of pending booking requests.

Both actions race against the reconciliation pass (which may auto-reject the
same request), so the transition itself is a compare-and-set update out of
``pending_confirmation``. Whoever loses gets ``ConflictError``; state is never
overwritten.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.constants import DEFAULT_REJECTION_REASON, MAX_REJECTION_REASON_LENGTH
from ..core.exceptions import (
    CollaboratorError,
    ConflictError,
    NotFoundError,
    PolicyViolation,
    TransientIOError,
)
from ..db import models
from ..db.models.booking_request import BookingRequestStatus
from ..db.models.lifecycle_event import LifecycleEventType
from . import booking_request_store, collaborators, lifecycle_event_store
from .notifications import BaseNotificationDispatcher, get_dispatcher
from .payments import BasePaymentGateway, get_gateway

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _load_pending(db: Session, booking_request_id: int) -> models.BookingRequest:
    request = booking_request_store.get_request(db, booking_request_id)
    if request is None:
        raise NotFoundError(f"Booking request {booking_request_id} not found")
    if request.is_terminal:
        # Covers overturning an auto-rejection: no business rule allows it.
        raise PolicyViolation(
            f"Booking request {booking_request_id} was already reviewed "
            f"(status: {request.status.value})"
        )
    return request


def _commit_transition(
    db: Session,
    request: models.BookingRequest,
    *,
    to_status: BookingRequestStatus,
    event_type: LifecycleEventType,
    admin_id: str,
    now: datetime,
    rejection_reason: str | None,
    payload: dict,
) -> None:
    try:
        won = booking_request_store.transition_from_pending(
            db,
            request.id,
            to_status=to_status,
            reviewed_at=now,
            reviewed_by=admin_id,
            rejection_reason=rejection_reason,
        )
        if not won:
            raise ConflictError(f"Booking request {request.id} was already reviewed")
        event = lifecycle_event_store.append_event(
            db,
            request.id,
            event_type,
            created_by=admin_id,
            created_at=now,
            payload=payload,
        )
        if event is None:
            raise ConflictError(f"Booking request {request.id} was already reviewed")
        db.commit()
    except ConflictError:
        db.rollback()
        logger.info(
            "Review lost the race",
            extra={"booking_request_id": request.id, "action": event_type.value},
        )
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        raise TransientIOError(f"Could not review booking request {request.id}") from exc
    db.refresh(request)


def approve(
    db: Session,
    booking_request_id: int,
    admin_id: str,
    *,
    gateway: BasePaymentGateway | None = None,
    dispatcher: BaseNotificationDispatcher | None = None,
    now: datetime | None = None,
) -> models.BookingRequest:
    settings = get_settings()
    gateway = gateway or get_gateway(settings)
    dispatcher = dispatcher or get_dispatcher(settings)
    now = now or _utc_now()

    request = _load_pending(db, booking_request_id)
    if not request.payment_method_token:
        raise PolicyViolation(f"Booking request {booking_request_id} has no stored payment method")
    token = request.payment_method_token

    _commit_transition(
        db,
        request,
        to_status=BookingRequestStatus.confirmed,
        event_type=LifecycleEventType.approved,
        admin_id=admin_id,
        now=now,
        rejection_reason=None,
        payload={"admin_id": admin_id, "total_amount": float(request.total_amount)},
    )
    logger.info("Booking request approved", extra={"booking_request_id": request.id})

    capture_error = _capture_payment(db, request, token, gateway, admin_id, settings.payment_currency, now)
    if capture_error:
        collaborators.notify(
            db,
            request.id,
            "status_payment_failed",
            lambda: dispatcher.send_status_update(request, "payment_failed", capture_error),
            now,
        )
    else:
        collaborators.notify(
            db,
            request.id,
            "status_approve",
            lambda: dispatcher.send_status_update(request, "approve"),
            now,
        )
    return request


def _capture_payment(
    db: Session,
    request: models.BookingRequest,
    token: str,
    gateway: BasePaymentGateway,
    admin_id: str,
    currency: str,
    now: datetime,
) -> str | None:
    amount = float(request.total_amount)
    try:
        result = gateway.capture(token, amount, currency, str(request.id))
    except CollaboratorError as exc:
        error = str(exc)
    else:
        if result.get("status") == "succeeded":
            try:
                lifecycle_event_store.append_event(
                    db,
                    request.id,
                    LifecycleEventType.payment_captured,
                    created_by=admin_id,
                    created_at=now,
                    payload={"payment_id": result.get("id"), "amount": amount, "currency": currency},
                )
                db.commit()
            except (ConflictError, SQLAlchemyError):
                db.rollback()
                logger.exception(
                    "Could not record payment capture",
                    extra={"booking_request_id": request.id},
                )
            return None
        error = f"Payment not completed. Status: {result.get('status')}"

    logger.error(
        "Payment capture failed",
        extra={"booking_request_id": request.id, "error": error},
    )
    collaborators.record_failure(
        db,
        request.id,
        LifecycleEventType.payment_failed,
        {"admin_id": admin_id, "payment_error": error, "total_amount": amount},
        now,
        created_by=admin_id,
    )
    return error


def reject(
    db: Session,
    booking_request_id: int,
    admin_id: str,
    reason: str | None = None,
    *,
    dispatcher: BaseNotificationDispatcher | None = None,
    now: datetime | None = None,
) -> models.BookingRequest:
    dispatcher = dispatcher or get_dispatcher(get_settings())
    now = now or _utc_now()
    reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
    if len(reason) > MAX_REJECTION_REASON_LENGTH:
        raise PolicyViolation(
            f"Rejection reason exceeds {MAX_REJECTION_REASON_LENGTH} characters"
        )

    request = _load_pending(db, booking_request_id)
    _commit_transition(
        db,
        request,
        to_status=BookingRequestStatus.rejected,
        event_type=LifecycleEventType.rejected,
        admin_id=admin_id,
        now=now,
        rejection_reason=reason,
        payload={"admin_id": admin_id, "rejection_reason": reason},
    )
    logger.info("Booking request rejected", extra={"booking_request_id": request.id})

    collaborators.notify(
        db,
        request.id,
        "status_reject",
        lambda: dispatcher.send_status_update(request, "reject", reason),
        now,
    )
    return request
