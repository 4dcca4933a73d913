from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from ...api import deps
from ...config import get_settings
from ...core.exceptions import ConfigurationError, TransientIOError
from ...db.session import SessionLocal, get_db
from ...db import models, schemas
from ...db.models.lifecycle_event import LifecycleEventType
from ...services import booking_request_store, lifecycle_event_store
from ...services.timeout_policy import as_utc, thresholds_from_settings, timeout_status
from ...services.timeout_processor import ACTION_FILTERS, TimeoutProcessor

router = APIRouter(prefix="/timeouts", tags=["timeouts"])


def get_timeout_processor() -> TimeoutProcessor:
    return TimeoutProcessor(SessionLocal, get_settings())


@router.post("/process", response_model=list[schemas.ActionSummary])
def process_timeouts(
    payload: schemas.TimeoutRunRequest,
    processor: TimeoutProcessor = Depends(get_timeout_processor),
    _: models.AdminUser = Depends(deps.require_roles(*models.REVIEW_ROLES)),
):
    try:
        return processor.process_all(actions=ACTION_FILTERS[payload.action])
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    except TransientIOError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc


@router.get("/monitoring", response_model=list[schemas.TimeoutMonitoringEntry])
def timeout_monitoring(
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles(*models.READ_ROLES)),
):
    try:
        thresholds = thresholds_from_settings(get_settings())
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    now = datetime.now(timezone.utc)
    entries = []
    for request in booking_request_store.list_pending(db):
        fired = lifecycle_event_store.fired_event_types(db, request.id)
        age = now - as_utc(request.submitted_at)
        entries.append(
            schemas.TimeoutMonitoringEntry(
                id=request.id,
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                tour_name=request.tour_name,
                submitted_at=request.submitted_at,
                hours_pending=round(age.total_seconds() / 3600, 2),
                timeout_status=timeout_status(request.submitted_at, now, thresholds).value,
                admin_reminder_sent=LifecycleEventType.admin_reminder_sent in fired,
                customer_notification_sent=LifecycleEventType.customer_delay_notified in fired,
            )
        )
    return entries
