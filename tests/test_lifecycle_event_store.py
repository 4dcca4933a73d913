from datetime import datetime, timezone

import pytest

from tourdesk.core.exceptions import ConflictError
from tourdesk.db.models import LifecycleEventType
from tourdesk.services import lifecycle_event_store

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_idempotent_event_is_written_once(db_session, make_request):
    request = make_request()

    first = lifecycle_event_store.append_event(
        db_session, request.id, LifecycleEventType.admin_reminder_sent, created_by="system", created_at=T0
    )
    db_session.commit()
    second = lifecycle_event_store.append_event(
        db_session, request.id, LifecycleEventType.admin_reminder_sent, created_by="system", created_at=T0
    )
    db_session.commit()

    assert first is not None
    assert first.idempotency_key == "admin_reminder_sent"
    assert second is None
    assert len(lifecycle_event_store.list_events(db_session, request.id)) == 1


def test_non_idempotent_events_may_repeat(db_session, make_request):
    request = make_request()

    for _ in range(2):
        event = lifecycle_event_store.append_event(
            db_session,
            request.id,
            LifecycleEventType.notification_failed,
            created_by="system",
            created_at=T0,
            payload={"kind": "admin_reminder"},
        )
        assert event.idempotency_key is None
    db_session.commit()

    assert len(lifecycle_event_store.list_events(db_session, request.id)) == 2
    assert lifecycle_event_store.fired_event_types(db_session, request.id) == {
        LifecycleEventType.notification_failed
    }


def test_unique_constraint_catches_writer_that_skipped_the_check(db_session, make_request, monkeypatch):
    request = make_request()
    lifecycle_event_store.append_event(
        db_session, request.id, LifecycleEventType.auto_rejected, created_by="system", created_at=T0
    )
    db_session.commit()

    monkeypatch.setattr(lifecycle_event_store, "has_event", lambda *args: False)
    with pytest.raises(ConflictError):
        lifecycle_event_store.append_event(
            db_session, request.id, LifecycleEventType.auto_rejected, created_by="system", created_at=T0
        )
    db_session.rollback()

    monkeypatch.undo()
    assert len(lifecycle_event_store.list_events(db_session, request.id)) == 1
