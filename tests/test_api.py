"""
API endpoint tests.

Uses TestClient against an in-memory database injected on app.state; the
lifespan (which opens the on-disk database) is not run.
"""

import json
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

import api.dependencies as dependencies
from api.main import app
from core import database
from models.events import Event, FavoriteCity, utc_now
from services.plans import TimelineService

API_KEY = "test-key"


@pytest.fixture
def client(conn, monkeypatch):
    monkeypatch.setattr(dependencies, "ZONE_PLANNER_API_KEY", API_KEY)
    app.state.conn = conn
    app.state.reconciler = None
    yield TestClient(app, headers={"X-API-Key": API_KEY})
    app.state.conn = None
    app.state.reconciler = None


@pytest.fixture
def upcoming_event(conn):
    """Local event two days from now, stored in the database."""
    start = (utc_now() + timedelta(days=2)).replace(hour=14, minute=0, second=0, microsecond=0)
    event = Event(
        id="community-day-next",
        name="Next Community Day",
        event_type="community-day",
        start_time=start,
        end_time=start + timedelta(hours=3),
        is_global_time=False,
    )
    with conn:
        database.upsert_event(conn, event)
    return event


def document(**overrides):
    payload = {
        "version": "1.0",
        "planName": "Weekend tour",
        "eventType": "community-day",
        "eventID": "cd-2025-07",
        "eventName": "July Community Day",
        "cities": [{"name": "Tokyo", "timeZoneIdentifier": "Asia/Tokyo"}],
        "appVersion": "1.6.1",
    }
    payload.update(overrides)
    return json.dumps(payload).encode()


class TestHealth:
    def test_healthy(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database_available"] is True

    def test_unhealthy_without_database(self, client):
        app.state.conn = None
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


class TestAuthentication:
    def test_wrong_key_rejected(self, client):
        response = client.post(
            "/v1/plans/import", content=document(), headers={"X-API-Key": "wrong"}
        )
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"


class TestTimelineEndpoint:
    def test_builds_timeline(self, client, conn, local_event):
        with conn:
            database.upsert_event(conn, local_event)
        response = client.post(
            "/v1/timeline",
            json={
                "event_id": local_event.id,
                "cities": [
                    {"name": "Berlin", "time_zone_identifier": "Europe/Berlin"},
                    {"name": "Tokyo", "time_zone_identifier": "Asia/Tokyo"},
                ],
                "viewer_timezone": "UTC",
            },
        )
        assert response.status_code == 200

        data = response.json()
        assert data["suggested_order"] == ["Asia/Tokyo", "Europe/Berlin"]
        assert [entry["lane"] for entry in data["entries"]] == [0, 0]
        assert data["gaps"][0]["gap_seconds"] == 4 * 3600
        assert data["has_overlaps"] is False

    def test_unknown_event(self, client):
        response = client.post(
            "/v1/timeline",
            json={"event_id": "missing", "cities": [], "viewer_timezone": "UTC"},
        )
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NOT_FOUND"

    def test_no_cities(self, client, upcoming_event):
        response = client.post(
            "/v1/timeline",
            json={"event_id": upcoming_event.id, "cities": [], "viewer_timezone": "UTC"},
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "NO_CITIES_SELECTED"

    def test_request_is_logged(self, client, conn, upcoming_event):
        client.post(
            "/v1/timeline",
            json={"event_id": upcoming_event.id, "cities": [], "viewer_timezone": "UTC"},
        )
        row = conn.execute("SELECT * FROM api_requests").fetchone()
        assert row["endpoint"] == "/v1/timeline"
        assert row["status_code"] == 422
        assert row["error_code"] == "NO_CITIES_SELECTED"


class TestPlanEndpoints:
    def test_import_plan(self, client, conn):
        response = client.post("/v1/plans/import", content=document())
        assert response.status_code == 200

        data = response.json()
        assert data["is_template"] is False
        assert data["cities_count"] == 1
        assert TimelineService(conn).get_plan(data["id"]).name == "Weekend tour"

    def test_import_template(self, client):
        payload = json.loads(document())
        del payload["eventID"]
        del payload["eventName"]
        response = client.post("/v1/plans/import", content=json.dumps(payload))
        assert response.status_code == 200
        assert response.json()["is_template"] is True

    def test_import_unsupported_version(self, client, conn):
        response = client.post("/v1/plans/import", content=document(version="2.0"))
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "UNSUPPORTED_VERSION"

        detail = conn.execute("SELECT * FROM api_request_details").fetchone()
        assert detail["detail_type"] == "validation_error"

    def test_import_empty_body(self, client):
        response = client.post("/v1/plans/import", content=b"")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_REQUEST"

    def test_import_too_large(self, client, monkeypatch):
        import api.routes.plans as plans_routes

        monkeypatch.setattr(plans_routes, "MAX_IMPORT_SIZE_BYTES", 10)
        response = client.post("/v1/plans/import", content=document())
        assert response.status_code == 413
        assert response.json()["detail"]["code"] == "PAYLOAD_TOO_LARGE"

    def test_export_plan(self, client, conn):
        with conn:
            database.insert_city(
                conn, FavoriteCity(name="Tokyo", time_zone_identifier="Asia/Tokyo")
            )
        plan = TimelineService(conn).save_plan(
            "Weekend tour", "cd-2025-07", "July Community Day", "community-day", ["Asia/Tokyo"]
        )

        response = client.get(f"/v1/plans/{plan.id}/export")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert 'filename="Weekend_tour.json"' in response.headers["content-disposition"]
        assert response.json()["eventID"] == "cd-2025-07"

    def test_export_missing_plan(self, client):
        response = client.get("/v1/plans/missing/export")
        assert response.status_code == 404

    def test_export_template(self, client, conn):
        template = TimelineService(conn).save_template("Asia", "raid-hour", ["Asia/Tokyo"])
        response = client.get(f"/v1/templates/{template.id}/export")
        assert response.status_code == 200
        assert "eventID" not in response.json()

    def test_default_template(self, client, conn):
        assert client.get("/v1/templates/default/raid-hour").status_code == 404

        template = TimelineService(conn).save_template(
            "Asia", "raid-hour", ["Asia/Tokyo"], is_default=True
        )
        response = client.get("/v1/templates/default/raid-hour")
        assert response.status_code == 200
        assert response.json()["id"] == template.id


class TestReminderEndpoints:
    def test_set_reminders(self, client, conn, upcoming_event):
        response = client.post(
            f"/v1/reminders/{upcoming_event.id}", json={"offsets": ["oneHour"]}
        )
        assert response.status_code == 200

        data = response.json()
        assert data["offsets"] == ["oneHour"]
        assert data["scheduled"] == [f"event::{upcoming_event.id}::oneHour"]
        assert upcoming_event.id in database.fetch_favorite_event_ids(conn)

    def test_default_offset(self, client, upcoming_event):
        response = client.post(f"/v1/reminders/{upcoming_event.id}", json={})
        assert response.json()["offsets"] == ["thirtyMinutes"]

    def test_unknown_offset(self, client, upcoming_event):
        response = client.post(
            f"/v1/reminders/{upcoming_event.id}", json={"offsets": ["twoWeeks"]}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_REQUEST"

    def test_unknown_event(self, client):
        response = client.post("/v1/reminders/missing", json={"offsets": ["oneHour"]})
        assert response.status_code == 404

    def test_remove_reminders(self, client, conn, upcoming_event):
        client.post(f"/v1/reminders/{upcoming_event.id}", json={"offsets": ["oneHour"]})
        response = client.delete(f"/v1/reminders/{upcoming_event.id}")

        assert response.status_code == 200
        count = conn.execute("SELECT COUNT(*) FROM scheduled_notifications").fetchone()[0]
        assert count == 0

    def test_reconcile_is_throttled(self, client, upcoming_event):
        client.post(f"/v1/reminders/{upcoming_event.id}", json={"offsets": ["oneHour"]})

        first = client.post("/v1/reminders/reconcile", json={"timezone": "Asia/Tokyo"})
        second = client.post("/v1/reminders/reconcile", json={"timezone": "Europe/Berlin"})

        assert first.json()["accepted"] is True
        assert first.json()["rescheduled"] == [upcoming_event.id]
        assert first.json()["host_timezone"] == "Asia/Tokyo"
        assert second.json()["accepted"] is False
        assert second.json()["host_timezone"] == "Asia/Tokyo"

    def test_reconcile_invalid_timezone(self, client):
        response = client.post("/v1/reminders/reconcile", json={"timezone": "Nowhere/Land"})
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_TIMEZONE"

    def test_sweep_removes_orphans(self, client, conn, upcoming_event):
        client.post(f"/v1/reminders/{upcoming_event.id}", json={"offsets": ["oneHour"]})
        with conn:
            database.remove_favorite_event(conn, upcoming_event.id)

        response = client.post("/v1/reminders/sweep")
        assert response.status_code == 200
        assert response.json()["orphaned"] == [f"event::{upcoming_event.id}::oneHour"]
        assert response.json()["removed"] == 1
