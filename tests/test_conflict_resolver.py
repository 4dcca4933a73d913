from datetime import date, datetime, timedelta, timezone

import pytest

from tourdesk.core.constants import (
    CONFLICT_RESOLVER_ACTOR,
    DUPLICATE_REQUEST_REASON,
    DUPLICATE_TIMESHEET_NOTE,
    STALE_TIMESHEET_NOTE,
)
from tourdesk.core.exceptions import ConflictError, NotFoundError
from tourdesk.db import models, schemas
from tourdesk.db.models import BookingRequestStatus, LifecycleEventType
from tourdesk.services import (
    booking_request_service,
    booking_request_store,
    conflict_resolver,
    lifecycle_event_store,
    timesheet_service,
)
from tourdesk.services.timeout_policy import as_utc

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def submission(**overrides):
    values = dict(
        customer_name="Kenji Sato",
        customer_email="kenji@example.com",
        tour_type="MORNING_TOUR",
        tour_name="Fushimi Inari Sunrise",
        booking_date=date(2026, 4, 2),
        booking_time="07:30",
        adults=2,
        total_amount=11000,
        payment_method_token="pm_card_mastercard",
    )
    values.update(overrides)
    return schemas.BookingRequestCreate(**values)


def test_duplicate_submission_keeps_the_earliest(db_session):
    first = booking_request_service.submit_booking_request(db_session, submission(), now=T0)
    second = booking_request_service.submit_booking_request(
        db_session, submission(), now=T0 + timedelta(minutes=1)
    )

    canonical = booking_request_store.get_request(db_session, first.id)
    duplicate = booking_request_store.get_request(db_session, second.id)
    assert canonical.status == BookingRequestStatus.pending_confirmation
    assert duplicate.status == BookingRequestStatus.rejected
    assert duplicate.reviewed_by == CONFLICT_RESOLVER_ACTOR
    assert duplicate.rejection_reason == DUPLICATE_REQUEST_REASON
    (event,) = [
        event
        for event in lifecycle_event_store.list_events(db_session, second.id)
        if event.event_type == LifecycleEventType.duplicate_auto_resolved
    ]
    assert event.payload["canonical_id"] == first.id


def test_submission_records_submitted_event(db_session):
    request = booking_request_service.submit_booking_request(db_session, submission(), now=T0)

    assert request.status == BookingRequestStatus.pending_confirmation
    assert lifecycle_event_store.fired_event_types(db_session, request.id) == {
        LifecycleEventType.submitted
    }


def test_different_slots_are_not_duplicates(db_session):
    booking_request_service.submit_booking_request(db_session, submission(), now=T0)
    other = booking_request_service.submit_booking_request(
        db_session, submission(booking_time="09:00"), now=T0 + timedelta(minutes=1)
    )

    assert booking_request_store.get_request(db_session, other.id).status == (
        BookingRequestStatus.pending_confirmation
    )


def test_reviewed_requests_do_not_count_as_active(db_session, make_request):
    make_request(status=BookingRequestStatus.confirmed, reviewed_at=T0, reviewed_by="admin")
    pending = make_request(submitted_at=T0 + timedelta(hours=1))

    assert conflict_resolver.booking_request_resolver.resolve_for(db_session, pending, T0) == []


def test_sweep_heals_existing_duplicates_once(db_session, make_request):
    canonical = make_request()
    duplicate = make_request(submitted_at=T0 + timedelta(minutes=5))
    make_request(customer_email="someone@example.com")

    resolutions = conflict_resolver.booking_request_resolver.sweep(db_session, T0 + timedelta(hours=1))

    assert resolutions == [
        {
            "policy": "booking_request",
            "resource_key": ["aiko@example.com", "NIGHT_TOUR", "2026-03-10", "18:00"],
            "canonical_id": canonical.id,
            "resolved_id": duplicate.id,
        }
    ]
    assert conflict_resolver.booking_request_resolver.sweep(db_session, T0 + timedelta(hours=2)) == []


def test_concurrent_clock_ins_are_resolved(db_session):
    first = models.Timesheet(employee_id="guide-7", clock_in=T0, note="Morning shift")
    second = models.Timesheet(employee_id="guide-7", clock_in=T0 + timedelta(seconds=3))
    db_session.add_all([first, second])
    db_session.commit()

    resolutions = conflict_resolver.timesheet_resolver.resolve_for(db_session, first, T0 + timedelta(minutes=1))

    assert [item["resolved_id"] for item in resolutions] == [second.id]
    db_session.expire_all()
    closed = db_session.get(models.Timesheet, second.id)
    assert as_utc(closed.clock_out) == T0 + timedelta(seconds=3, minutes=1)
    assert closed.note == DUPLICATE_TIMESHEET_NOTE
    assert db_session.get(models.Timesheet, first.id).clock_out is None
    audit = db_session.query(models.AuditLog).filter_by(action="timesheet_conflict_auto_resolved").one()
    assert audit.subject_id == second.id
    assert audit.payload["canonical_id"] == first.id


def test_clock_in_and_out(db_session):
    timesheet = timesheet_service.clock_in(db_session, "guide-3", todo="Gion walk", now=T0)

    with pytest.raises(ConflictError):
        timesheet_service.clock_in(db_session, "guide-3", now=T0 + timedelta(minutes=5))

    closed = timesheet_service.clock_out(db_session, "guide-3", now=T0 + timedelta(hours=4))
    assert closed.id == timesheet.id
    assert as_utc(closed.clock_out) == T0 + timedelta(hours=4)

    with pytest.raises(NotFoundError):
        timesheet_service.clock_out(db_session, "guide-3")


def test_stale_timesheets_are_closed_with_assumed_shift(db_session):
    stale = models.Timesheet(employee_id="guide-1", clock_in=T0)
    recent = models.Timesheet(employee_id="guide-2", clock_in=T0 + timedelta(hours=20))
    db_session.add_all([stale, recent])
    db_session.commit()

    closed = conflict_resolver.close_stale_timesheets(db_session, T0 + timedelta(hours=30))

    assert closed == [stale.id]
    db_session.expire_all()
    healed = db_session.get(models.Timesheet, stale.id)
    assert as_utc(healed.clock_out) == T0 + timedelta(hours=8)
    assert healed.note == STALE_TIMESHEET_NOTE
    assert db_session.get(models.Timesheet, recent.id).clock_out is None
