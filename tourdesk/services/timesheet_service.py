from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.exceptions import ConflictError, NotFoundError
from ..db import models
from .conflict_resolver import timesheet_resolver


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def active_timesheet(db: Session, employee_id: str) -> models.Timesheet | None:
    return db.execute(
        select(models.Timesheet)
        .where(models.Timesheet.employee_id == employee_id, models.Timesheet.clock_out.is_(None))
        .order_by(models.Timesheet.clock_in, models.Timesheet.id)
        .limit(1)
    ).scalar_one_or_none()


def clock_in(
    db: Session,
    employee_id: str,
    todo: str | None = None,
    now: datetime | None = None,
) -> models.Timesheet:
    now = now or _utc_now()
    if active_timesheet(db, employee_id) is not None:
        raise ConflictError(f"Employee {employee_id} is already clocked in")
    timesheet = models.Timesheet(employee_id=employee_id, clock_in=now, todo=todo, created_at=now)
    db.add(timesheet)
    db.commit()
    db.refresh(timesheet)
    # Two clock-ins racing past the check above both commit; keep the oldest.
    timesheet_resolver.resolve_for(db, timesheet, now)
    db.refresh(timesheet)
    return timesheet


def clock_out(
    db: Session,
    employee_id: str,
    note: str | None = None,
    now: datetime | None = None,
) -> models.Timesheet:
    now = now or _utc_now()
    timesheet = active_timesheet(db, employee_id)
    if timesheet is None:
        raise NotFoundError(f"Employee {employee_id} is not clocked in")
    timesheet.clock_out = now
    timesheet.updated_at = now
    if note:
        timesheet.note = note
    db.commit()
    db.refresh(timesheet)
    return timesheet
