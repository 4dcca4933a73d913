"""Best-effort calls to notification and payment providers.

These run after the authoritative state change has been committed. A failure
is logged and written to the lifecycle log as a non-fatal event; it never
undoes the transition and is not retried here.
"""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import SYSTEM_ACTOR
from ..core.exceptions import CollaboratorError
from ..db.models.lifecycle_event import LifecycleEventType
from . import lifecycle_event_store

logger = logging.getLogger(__name__)


def record_failure(
    db: Session,
    booking_request_id: int,
    event_type: LifecycleEventType,
    payload: dict,
    now: datetime,
    created_by: str = SYSTEM_ACTOR,
) -> None:
    try:
        lifecycle_event_store.append_event(
            db,
            booking_request_id,
            event_type,
            created_by=created_by,
            created_at=now,
            payload=payload,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Could not record collaborator failure",
            extra={"booking_request_id": booking_request_id, "event_type": event_type.value},
        )


def notify(
    db: Session,
    booking_request_id: int,
    kind: str,
    send: Callable[[], None],
    now: datetime,
) -> str | None:
    """Run ``send``; return the error text when it failed, ``None`` otherwise."""
    try:
        send()
    except CollaboratorError as exc:
        logger.warning(
            "Notification failed",
            extra={"booking_request_id": booking_request_id, "kind": kind, "error": str(exc)},
        )
        record_failure(
            db,
            booking_request_id,
            LifecycleEventType.notification_failed,
            {"kind": kind, "error": str(exc), "failed_at": now.isoformat()},
            now,
        )
        return str(exc)
    return None
