from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from ...api import deps
from ...core.exceptions import ConflictError, NotFoundError, TransientIOError
from ...db.session import get_db
from ...db import models, schemas
from ...db.models.booking_request import BookingRequestStatus
from ...services import booking_request_store, lifecycle_event_store, review_service

router = APIRouter(prefix="/booking-requests", tags=["booking-requests"])


def _get_or_404(db: Session, booking_request_id: int) -> models.BookingRequest:
    request = booking_request_store.get_request(db, booking_request_id)
    if request is None:
        raise HTTPException(status_code=404, detail="Booking request not found")
    return request


def _review_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


@router.get("", response_model=list[schemas.BookingRequest])
def list_booking_requests(
    status_filter: BookingRequestStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles(*models.READ_ROLES)),
):
    return booking_request_store.list_requests(db, status_filter)


@router.get("/{booking_request_id}", response_model=schemas.BookingRequest)
def get_booking_request(
    booking_request_id: int,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles(*models.READ_ROLES)),
):
    return _get_or_404(db, booking_request_id)


@router.get("/{booking_request_id}/events", response_model=list[schemas.LifecycleEvent])
def list_booking_request_events(
    booking_request_id: int,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles(*models.READ_ROLES)),
):
    _get_or_404(db, booking_request_id)
    return lifecycle_event_store.list_events(db, booking_request_id)


@router.post("/{booking_request_id}/approve", response_model=schemas.BookingRequest)
def approve_booking_request(
    booking_request_id: int,
    db: Session = Depends(get_db),
    admin: models.AdminUser = Depends(deps.require_roles(*models.REVIEW_ROLES)),
):
    try:
        return review_service.approve(db, booking_request_id, admin.login)
    except (NotFoundError, ConflictError, TransientIOError) as exc:
        raise _review_error(exc) from exc


@router.post("/{booking_request_id}/reject", response_model=schemas.BookingRequest)
def reject_booking_request(
    booking_request_id: int,
    payload: schemas.BookingRequestReject,
    db: Session = Depends(get_db),
    admin: models.AdminUser = Depends(deps.require_roles(*models.REVIEW_ROLES)),
):
    try:
        return review_service.reject(db, booking_request_id, admin.login, payload.reason)
    except (NotFoundError, ConflictError, TransientIOError) as exc:
        raise _review_error(exc) from exc
