from datetime import datetime, timezone

from sqlalchemy.orm import Session

from ..core.exceptions import ConflictError
from ..db import models, schemas
from ..db.models.booking_request import BookingRequestStatus
from ..db.models.lifecycle_event import LifecycleEventType
from . import lifecycle_event_store
from .conflict_resolver import booking_request_resolver


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def submit_booking_request(
    db: Session,
    payload: schemas.BookingRequestCreate,
    now: datetime | None = None,
) -> models.BookingRequest:
    now = now or _utc_now()
    request = models.BookingRequest(
        **payload.model_dump(),
        status=BookingRequestStatus.pending_confirmation,
        submitted_at=now,
    )
    db.add(request)
    try:
        db.flush()
        lifecycle_event_store.append_event(
            db,
            request.id,
            LifecycleEventType.submitted,
            created_by=payload.customer_email,
            created_at=now,
            payload={"tour_type": payload.tour_type, "total_amount": payload.total_amount},
        )
        db.commit()
    except ConflictError:
        db.rollback()
        raise
    db.refresh(request)
    booking_request_resolver.resolve_for(db, request, now)
    db.refresh(request)
    return request
