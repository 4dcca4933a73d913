from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import ConflictError
from ..db import models
from ..db.models.lifecycle_event import IDEMPOTENT_EVENT_TYPES, LifecycleEventType


def fired_event_types(db: Session, booking_request_id: int) -> set[LifecycleEventType]:
    rows = db.execute(
        select(models.LifecycleEvent.event_type).where(
            models.LifecycleEvent.booking_request_id == booking_request_id
        )
    ).scalars()
    return {LifecycleEventType(row) for row in rows}


def has_event(db: Session, booking_request_id: int, event_type: LifecycleEventType) -> bool:
    return (
        db.execute(
            select(models.LifecycleEvent.id)
            .where(
                models.LifecycleEvent.booking_request_id == booking_request_id,
                models.LifecycleEvent.event_type == event_type,
            )
            .limit(1)
        ).first()
        is not None
    )


def list_events(db: Session, booking_request_id: int) -> list[models.LifecycleEvent]:
    return list(
        db.execute(
            select(models.LifecycleEvent)
            .where(models.LifecycleEvent.booking_request_id == booking_request_id)
            .order_by(models.LifecycleEvent.created_at, models.LifecycleEvent.id)
        ).scalars()
    )


def append_event(
    db: Session,
    booking_request_id: int,
    event_type: LifecycleEventType,
    *,
    created_by: str,
    created_at: datetime,
    payload: dict[str, Any] | None = None,
) -> models.LifecycleEvent | None:
    """Append an event inside the caller's transaction.

    Returns ``None`` when an idempotent event of the same type already exists.
    A concurrent writer that slipped in between the check and the flush is
    caught by the unique constraint and surfaces as ``ConflictError``; the
    session must then be rolled back by the caller, which owns the unit of
    work.
    """
    idempotent = event_type in IDEMPOTENT_EVENT_TYPES
    if idempotent and has_event(db, booking_request_id, event_type):
        return None
    event = models.LifecycleEvent(
        booking_request_id=booking_request_id,
        event_type=event_type,
        payload=payload or {},
        created_at=created_at,
        created_by=created_by,
        idempotency_key=event_type.value if idempotent else None,
    )
    db.add(event)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            f"{event_type.value} already recorded for booking request {booking_request_id}"
        ) from exc
    return event
