from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tourdesk.api import deps
from tourdesk.api.routes import booking_requests, conflicts, timeouts
from tourdesk.db import models
from tourdesk.db.models import AdminRole, BookingRequestStatus
from tourdesk.db.session import get_db
from tourdesk.services.timeout_processor import TimeoutProcessor


@pytest.fixture()
def current_admin():
    return {"user": models.AdminUser(id=1, login="admin", role=AdminRole.admin)}


@pytest.fixture()
def api_client(session_factory, settings, dispatcher, gateway, current_admin):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    test_app = FastAPI()
    test_app.include_router(booking_requests.router, prefix="/api/v1")
    test_app.include_router(timeouts.router, prefix="/api/v1")
    test_app.include_router(conflicts.router, prefix="/api/v1")

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[deps.get_current_admin] = lambda: current_admin["user"]
    test_app.dependency_overrides[timeouts.get_timeout_processor] = lambda: TimeoutProcessor(
        session_factory, settings, dispatcher=dispatcher, gateway=gateway
    )

    with TestClient(test_app) as client:
        yield client

    test_app.dependency_overrides.clear()


def test_list_filters_by_status(api_client, make_request):
    pending = make_request()
    make_request(
        customer_email="done@example.com",
        status=BookingRequestStatus.confirmed,
        reviewed_at=datetime.now(timezone.utc),
        reviewed_by="admin",
    )

    response = api_client.get("/api/v1/booking-requests", params={"status": "pending_confirmation"})

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [pending.id]
    assert response.json()[0]["has_payment_method"] is True


def test_approve_then_second_approve_conflicts(api_client, make_request):
    request = make_request()

    first = api_client.post(f"/api/v1/booking-requests/{request.id}/approve")
    second = api_client.post(f"/api/v1/booking-requests/{request.id}/approve")

    assert first.status_code == 200
    assert first.json()["status"] == "confirmed"
    assert first.json()["reviewed_by"] == "admin"
    assert second.status_code == 409


def test_reject_unknown_request_returns_not_found(api_client):
    response = api_client.post("/api/v1/booking-requests/999/reject", json={"reason": "Closed"})

    assert response.status_code == 404


def test_reject_records_reason_and_events(api_client, make_request):
    request = make_request()

    response = api_client.post(
        f"/api/v1/booking-requests/{request.id}/reject", json={"reason": "Guide unavailable"}
    )
    events = api_client.get(f"/api/v1/booking-requests/{request.id}/events")

    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "Guide unavailable"
    assert [event["event_type"] for event in events.json()] == ["rejected"]


def test_viewer_cannot_review(api_client, make_request, current_admin):
    request = make_request()
    current_admin["user"] = models.AdminUser(id=2, login="viewer", role=AdminRole.viewer)

    response = api_client.post(f"/api/v1/booking-requests/{request.id}/approve")

    assert response.status_code == 403


def test_reviewer_can_review_and_viewer_only_reads(api_client, make_request, current_admin):
    request = make_request()
    current_admin["user"] = models.AdminUser(id=3, login="reviewer", role=AdminRole.reviewer)

    reviewed = api_client.post(f"/api/v1/booking-requests/{request.id}/reject", json={})

    assert reviewed.status_code == 200
    assert reviewed.json()["reviewed_by"] == "reviewer"

    current_admin["user"] = models.AdminUser(id=2, login="viewer", role=AdminRole.viewer)

    assert api_client.get("/api/v1/timeouts/monitoring").status_code == 200
    assert api_client.get(f"/api/v1/booking-requests/{request.id}").status_code == 200
    assert api_client.post("/api/v1/timeouts/process", json={"action": "process_all"}).status_code == 403


def test_process_timeouts_endpoint(api_client, make_request):
    request = make_request(submitted_at=datetime.now(timezone.utc) - timedelta(hours=49))

    response = api_client.post("/api/v1/timeouts/process", json={"action": "process_all"})

    assert response.status_code == 200
    summary = {item["action_type"]: item["processed_count"] for item in response.json()}
    assert summary["auto_rejections"] == 1
    detail = api_client.get(f"/api/v1/booking-requests/{request.id}").json()
    assert detail["status"] == "rejected"


def test_unknown_timeout_action_is_rejected(api_client):
    response = api_client.post("/api/v1/timeouts/process", json={"action": "delete_everything"})

    assert response.status_code == 422


def test_monitoring_reports_overdue_requests(api_client, make_request):
    request = make_request(submitted_at=datetime.now(timezone.utc) - timedelta(hours=13))

    response = api_client.get("/api/v1/timeouts/monitoring")

    assert response.status_code == 200
    (entry,) = response.json()
    assert entry["id"] == request.id
    assert entry["timeout_status"] == "OVERDUE_ADMIN_REMINDER"
    assert entry["admin_reminder_sent"] is False


def test_conflict_sweep_endpoint(api_client, make_request):
    make_request()
    duplicate = make_request(submitted_at=datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc))

    response = api_client.post("/api/v1/conflicts/sweep")

    assert response.status_code == 200
    assert [item["resolved_id"] for item in response.json()] == [duplicate.id]
