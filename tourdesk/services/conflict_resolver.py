"""Healing of duplicate "active" records sharing one resource key.

A policy describes the resource: which columns form the key, what makes a row
active, how a duplicate is terminated and how the resolution is logged. The
earliest-created active row is canonical; every other active row is
terminated with a compare-and-set update that still requires it to be active,
so a concurrent sweep or a user action that already closed it wins quietly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import (
    CONFLICT_RESOLVER_ACTOR,
    DUPLICATE_REQUEST_REASON,
    DUPLICATE_TIMESHEET_NOTE,
    STALE_TIMESHEET_NOTE,
)
from ..core.exceptions import ConflictError, TransientIOError
from ..db import models
from ..db.models.booking_request import BookingRequestStatus
from ..db.models.lifecycle_event import LifecycleEventType
from . import lifecycle_event_store

logger = logging.getLogger(__name__)

STALE_TIMESHEET_AGE = timedelta(hours=24)
STALE_TIMESHEET_ASSUMED_SHIFT = timedelta(hours=8)


@dataclass(frozen=True)
class ConflictPolicy:
    name: str
    model: type
    key_columns: tuple[str, ...]
    is_active: Callable[[], Any]
    created_column: str
    terminate_values: Callable[[Any, datetime], dict[str, Any]]
    record_resolution: Callable[[Session, Any, Any, datetime], None]

    def key_for(self, record) -> tuple:
        return tuple(getattr(record, column) for column in self.key_columns)


def _append_note(note: str | None, annotation: str) -> str:
    return f"{note} {annotation}" if note else annotation


def _reject_duplicate_request(request: models.BookingRequest, now: datetime) -> dict[str, Any]:
    return {
        "status": BookingRequestStatus.rejected,
        "reviewed_at": now,
        "reviewed_by": CONFLICT_RESOLVER_ACTOR,
        "rejection_reason": DUPLICATE_REQUEST_REASON,
    }


def _log_duplicate_request(
    db: Session,
    duplicate: models.BookingRequest,
    canonical: models.BookingRequest,
    now: datetime,
) -> None:
    lifecycle_event_store.append_event(
        db,
        duplicate.id,
        LifecycleEventType.duplicate_auto_resolved,
        created_by=CONFLICT_RESOLVER_ACTOR,
        created_at=now,
        payload={"canonical_id": canonical.id, "reason": DUPLICATE_REQUEST_REASON},
    )


def _close_duplicate_timesheet(timesheet: models.Timesheet, now: datetime) -> dict[str, Any]:
    return {
        "clock_out": timesheet.clock_in + timedelta(minutes=1),
        "note": _append_note(timesheet.note, DUPLICATE_TIMESHEET_NOTE),
        "updated_at": now,
    }


def _log_duplicate_timesheet(
    db: Session,
    duplicate: models.Timesheet,
    canonical: models.Timesheet,
    now: datetime,
) -> None:
    db.add(
        models.AuditLog(
            actor_type=models.ActorType.system,
            actor_id=CONFLICT_RESOLVER_ACTOR,
            action="timesheet_conflict_auto_resolved",
            subject_id=duplicate.id,
            payload={
                "employee_id": duplicate.employee_id,
                "canonical_id": canonical.id,
                "resolved_id": duplicate.id,
            },
            created_at=now,
        )
    )


BOOKING_REQUEST_POLICY = ConflictPolicy(
    name="booking_request",
    model=models.BookingRequest,
    key_columns=("customer_email", "tour_type", "booking_date", "booking_time"),
    is_active=lambda: models.BookingRequest.status == BookingRequestStatus.pending_confirmation,
    created_column="submitted_at",
    terminate_values=_reject_duplicate_request,
    record_resolution=_log_duplicate_request,
)

TIMESHEET_POLICY = ConflictPolicy(
    name="timesheet",
    model=models.Timesheet,
    key_columns=("employee_id",),
    is_active=lambda: models.Timesheet.clock_out.is_(None),
    created_column="clock_in",
    terminate_values=_close_duplicate_timesheet,
    record_resolution=_log_duplicate_timesheet,
)


class ConflictResolver:
    def __init__(self, policy: ConflictPolicy) -> None:
        self.policy = policy

    def _key_clause(self, key: tuple) -> list:
        model = self.policy.model
        return [
            getattr(model, column) == value
            for column, value in zip(self.policy.key_columns, key)
        ]

    def resolve(self, db: Session, key: tuple, now: datetime) -> list[dict[str, Any]]:
        policy = self.policy
        model = policy.model
        records = list(
            db.execute(
                select(model)
                .where(*self._key_clause(key), policy.is_active())
                .order_by(getattr(model, policy.created_column), model.id)
            ).scalars()
        )
        if len(records) < 2:
            return []

        canonical, duplicates = records[0], records[1:]
        planned = [(duplicate, policy.terminate_values(duplicate, now)) for duplicate in duplicates]
        resolutions = []
        for duplicate, values in planned:
            duplicate_id = duplicate.id
            try:
                result = db.execute(
                    update(model)
                    .where(model.id == duplicate_id, policy.is_active())
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    db.rollback()
                    continue
                policy.record_resolution(db, duplicate, canonical, now)
                db.commit()
            except ConflictError:
                db.rollback()
                continue
            except SQLAlchemyError as exc:
                db.rollback()
                raise TransientIOError(
                    f"Could not resolve {policy.name} duplicate {duplicate_id}"
                ) from exc
            resolutions.append(
                {
                    "policy": policy.name,
                    "resource_key": [str(value) for value in key],
                    "canonical_id": canonical.id,
                    "resolved_id": duplicate_id,
                }
            )
            logger.warning(
                "Auto-resolved duplicate active record",
                extra={
                    "policy": policy.name,
                    "canonical_id": canonical.id,
                    "resolved_id": duplicate_id,
                },
            )
        return resolutions

    def resolve_for(self, db: Session, record, now: datetime) -> list[dict[str, Any]]:
        return self.resolve(db, self.policy.key_for(record), now)

    def sweep(self, db: Session, now: datetime) -> list[dict[str, Any]]:
        policy = self.policy
        columns = [getattr(policy.model, column) for column in policy.key_columns]
        keys = db.execute(
            select(*columns)
            .where(policy.is_active())
            .group_by(*columns)
            .having(func.count() > 1)
        ).all()
        resolutions = []
        for key in keys:
            resolutions.extend(self.resolve(db, tuple(key), now))
        return resolutions


booking_request_resolver = ConflictResolver(BOOKING_REQUEST_POLICY)
timesheet_resolver = ConflictResolver(TIMESHEET_POLICY)


def close_stale_timesheets(db: Session, now: datetime) -> list[int]:
    """Close shifts left open for over a day, assuming a standard shift length."""
    stale = list(
        db.execute(
            select(models.Timesheet)
            .where(
                models.Timesheet.clock_out.is_(None),
                models.Timesheet.clock_in < now - STALE_TIMESHEET_AGE,
            )
            .order_by(models.Timesheet.clock_in)
        ).scalars()
    )
    planned = [
        (
            timesheet.id,
            timesheet.employee_id,
            {
                "clock_out": timesheet.clock_in + STALE_TIMESHEET_ASSUMED_SHIFT,
                "note": _append_note(timesheet.note, STALE_TIMESHEET_NOTE),
                "updated_at": now,
            },
        )
        for timesheet in stale
    ]
    closed = []
    for timesheet_id, employee_id, values in planned:
        result = db.execute(
            update(models.Timesheet)
            .where(models.Timesheet.id == timesheet_id, models.Timesheet.clock_out.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            continue
        db.add(
            models.AuditLog(
                actor_type=models.ActorType.system,
                actor_id=CONFLICT_RESOLVER_ACTOR,
                action="timesheet_stale_auto_closed",
                subject_id=timesheet_id,
                payload={"employee_id": employee_id},
                created_at=now,
            )
        )
        db.commit()
        closed.append(timesheet_id)
        logger.warning(
            "Closed stale timesheet",
            extra={"timesheet_id": timesheet_id, "employee_id": employee_id},
        )
    return closed


def sweep_all(db: Session, now: datetime) -> list[dict[str, Any]]:
    resolutions = booking_request_resolver.sweep(db, now)
    resolutions.extend(timesheet_resolver.sweep(db, now))
    return resolutions
