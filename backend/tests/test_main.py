from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from timeharbor import __version__
from timeharbor.api.deps import get_clock_engine
from timeharbor.exceptions import RETRY_MESSAGE, ConcurrencyConflict, StoreUnavailable
from timeharbor.main import app, health_check
from timeharbor.models.audit_log import AuditLog
from timeharbor.services.clock_engine import ClockEngine
from timeharbor.services.notifications import NotificationTrigger


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


def test_root(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "TimeHarbor Clock Engine API"


@pytest.mark.parametrize("method,path", [
    ("post", "/api/v1/clock/team-a/start"),
    ("post", "/api/v1/clock/team-a/stop"),
    ("get", "/api/v1/clock/team-a/active"),
    ("get", "/api/v1/reports/rollup"),
])
def test_requires_token(client: TestClient, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_invalid_token(client: TestClient):
    response = client.post("/api/v1/clock/team-a/start", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_clock_in_and_out(client: TestClient, auth_headers, db, notifier):
    headers = auth_headers()

    response = client.post("/api/v1/clock/team-a/start", headers=headers)
    assert response.status_code == 201
    session = response.json()
    assert session["user_id"] == "user-1"
    assert session["team_id"] == "team-a"
    assert session["end_timestamp"] is None

    response = client.get("/api/v1/clock/team-a/active", headers=headers)
    assert response.status_code == 200
    assert response.json()["is_active"] is True
    assert response.json()["session"]["id"] == session["id"]

    response = client.post("/api/v1/clock/team-a/stop", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "stopped"
    assert data["session"]["end_timestamp"] is not None

    response = client.post("/api/v1/clock/team-a/stop", headers=headers)
    assert response.json() == {"status": "noop", "session": None, "timer": None}

    actions = [a.action for a in db.query(AuditLog).order_by(AuditLog.id).all()]
    assert actions == ["clock_in", "clock_out"]
    assert notifier.types() == ["clock-in", "clock-out"]


def test_ticket_start_and_stop(client: TestClient, auth_headers, make_ticket):
    ticket = make_ticket("T1")
    headers = auth_headers()

    response = client.post(f"/api/v1/tickets/{ticket.id}/start", json={"team_id": "team-a"}, headers=headers)
    assert response.status_code == 200
    timer = response.json()
    assert timer["ticket_id"] == ticket.id
    assert timer["start_timestamp"] is not None

    response = client.get("/api/v1/clock/team-a/active", headers=headers)
    assert response.json()["is_active"] is True

    response = client.post(f"/api/v1/tickets/{ticket.id}/stop", json={"team_id": "team-a"}, headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "stopped"
    assert data["timer"]["start_timestamp"] is None

    response = client.post(f"/api/v1/tickets/{ticket.id}/stop", json={"team_id": "team-a"}, headers=headers)
    assert response.json()["status"] == "noop"


def test_unknown_ticket(client: TestClient, auth_headers):
    response = client.post("/api/v1/tickets/999/start", json={"team_id": "team-a"}, headers=auth_headers())
    assert response.status_code == 404
    assert response.json()["detail"] == "Ticket not found"


def test_timesheet_of_other_user_is_forbidden(client: TestClient, auth_headers):
    response = client.get("/api/v1/reports/timesheet/user-2", headers=auth_headers("user-1"))
    assert response.status_code == 403

    response = client.get("/api/v1/reports/timesheet/user-2", headers=auth_headers("admin-1", role="admin"))
    assert response.status_code == 200
    assert response.json()["sessions"] == []


def test_rollup_reports_open_session(client: TestClient, auth_headers):
    headers = auth_headers()
    client.post("/api/v1/clock/team-a/start", headers=headers)
    today = datetime.now(timezone.utc).date()
    params = {"start_date": str(today - timedelta(days=1)), "end_date": str(today)}

    response = client.get("/api/v1/reports/rollup", params=params, headers=headers)
    assert response.status_code == 200
    records = response.json()
    assert len(records) == 1
    assert records[0]["user_id"] == "user-1"
    assert records[0]["is_active"] is True
    assert records[0]["status"] == "Active"


def test_rollup_rejects_unknown_timezone(client: TestClient, auth_headers):
    response = client.get("/api/v1/reports/rollup", params={"timezone": "Nowhere/Land"}, headers=auth_headers())
    assert response.status_code == 400


def test_active_users(client: TestClient, auth_headers):
    client.post("/api/v1/clock/team-a/start", headers=auth_headers("user-1"))

    response = client.get(
        "/api/v1/reports/active",
        params=[("user_ids", "user-1"), ("user_ids", "user-2")],
        headers=auth_headers("admin-1", role="admin")
    )
    assert response.status_code == 200
    assert response.json() == {"active": {"user-1": ["team-a"], "user-2": []}}


class FailingEngine:
    def __init__(self, exc):
        self.exc = exc

    def open_session(self, user_id, team_id):
        raise self.exc


@pytest.mark.parametrize("exc,status_code", [
    (ConcurrencyConflict("lost race twice"), 409),
    (StoreUnavailable("statement timeout"), 503),
])
def test_store_failures_map_to_retry_message(client: TestClient, auth_headers, exc, status_code):
    app.dependency_overrides[get_clock_engine] = lambda: FailingEngine(exc)

    response = client.post("/api/v1/clock/team-a/start", headers=auth_headers())

    assert response.status_code == status_code
    assert response.json()["detail"] == RETRY_MESSAGE


@pytest.mark.asyncio
async def test_health_handler_reports_package_version():
    assert await health_check() == {"status": "healthy", "version": __version__}


def test_active_session_uses_engine_clock(client: TestClient, auth_headers, db, notifier, clock):
    app.dependency_overrides[get_clock_engine] = lambda: ClockEngine(db, NotificationTrigger(notifier), clock=clock)
    headers = auth_headers()

    client.post("/api/v1/clock/team-a/start", headers=headers)
    clock.advance(300)
    response = client.get("/api/v1/clock/team-a/active", headers=headers)

    assert response.json()["elapsed_seconds"] == 300
