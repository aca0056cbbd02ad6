"""Tests for the FastAPI notice board API."""
import inspect
import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from noticeboard.config import Config
from noticeboard.models import Notification
from noticeboard.store import InMemoryStore
from noticeboard.web import (
    api_stats,
    app,
    create_app,
    create_notification,
    delete_notification,
    email_webhook,
    get_notification,
    list_notifications,
    update_notification,
)

ADMIN = {"X-User-Role": "admin", "X-User-Id": "admin-1"}
FACULTY = {"X-User-Role": "faculty", "X-User-Id": "fac-1"}
STUDENT = {"X-User-Role": "student"}


def _in_days(days: int) -> str:
    return (datetime.now() + timedelta(days=days)).replace(microsecond=0).isoformat()


def _config(tmp_path: Path, secret: str = "") -> Config:
    return Config(
        store_path=tmp_path / "notifications.json",
        logs_dir=tmp_path / "logs",
        failed_emails_dir=tmp_path / "failed",
        log_level="INFO",
        web_host="127.0.0.1",
        web_port=8000,
        default_deadline_days=7,
        date_day_first=True,
        webhook_secret=secret,
    )


@pytest.fixture()
def store():
    store = InMemoryStore()
    create_app(store)
    return store


@pytest.fixture()
def client(store):
    return TestClient(app)


def _seed(store, title, priority="Medium", days=5, target_group="All", category="Exam"):
    return store.insert(Notification(
        title=title, description="", category=category, priority=priority,
        deadline=_in_days(days), target_group=target_group,
    ))


# --- health ---

def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    assert resp.json()["store"] == "InMemoryStore"


# --- email webhook ---

def test_email_webhook_creates_notification(client, store):
    resp = client.post("/email-webhook", json={
        "from": "tpo@college.edu",
        "subject": "Placement drive for final year",
        "body": "Interview registrations close on March 3, 2031.",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["message"] == "Notification created successfully from email"
    assert data["notification"]["category"] == "Placement"
    assert data["notification"]["target_group"] == "Final Year"
    assert data["notification"]["email_metadata"]["from"] == "tpo@college.edu"
    assert len(store.list_by_deadline()) == 1


def test_email_webhook_tolerates_missing_fields(client):
    resp = client.post("/email-webhook", json={})
    assert resp.status_code == 200
    assert resp.json()["notification"]["category"] == "Event"


def test_email_webhook_secret_required_when_configured(store, tmp_path):
    create_app(store, _config(tmp_path, secret="s3cret"))
    client = TestClient(app)
    payload = {"from": "a@b.c", "subject": "Hi", "body": "Body"}
    assert client.post("/email-webhook", json=payload).status_code == 401
    resp = client.post("/email-webhook", json=payload, headers={"X-Webhook-Secret": "s3cret"})
    assert resp.status_code == 200


def test_email_webhook_failure_returns_500(tmp_path):
    class FailingStore(InMemoryStore):
        def insert(self, notification):
            raise RuntimeError("store offline")

    create_app(FailingStore(), _config(tmp_path))
    resp = TestClient(app).post("/email-webhook", json={"from": "a", "subject": "s", "body": "b"})
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Failed to process email"}
    queued = list((tmp_path / "failed").glob("*.json"))
    assert len(queued) == 1
    assert json.loads(queued[0].read_text())["error"] == "store offline"


def test_email_webhook_malformed_json_returns_failure_reply(client, store):
    resp = client.post("/email-webhook", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Failed to process email"}
    assert store.list_by_deadline() == []


def test_email_webhook_wrong_field_types_return_failure_reply(client, store):
    resp = client.post("/email-webhook", json={"subject": 123, "body": ["x"]})
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Failed to process email"}
    assert store.list_by_deadline() == []


def test_other_endpoints_keep_validation_errors(client):
    resp = client.post("/api/notifications", json={"title": ""}, headers=ADMIN)
    assert resp.status_code == 422
    assert "detail" in resp.json()


def test_blocking_endpoints_run_in_threadpool():
    """Store writes can sleep between retries, so these must not be coroutines."""
    for endpoint in (email_webhook, list_notifications, get_notification, create_notification,
                     update_notification, delete_notification, api_stats):
        assert not inspect.iscoroutinefunction(endpoint), endpoint.__name__


# --- listing ---

def test_list_sorted_by_priority(client, store):
    _seed(store, "medium", "Medium", days=2)
    _seed(store, "critical", "Critical", days=8)
    _seed(store, "high", "High", days=4)
    resp = client.get("/api/notifications", headers=STUDENT)
    assert resp.status_code == 200
    assert [n["title"] for n in resp.json()["notifications"]] == ["critical", "high", "medium"]


def test_list_sorted_by_deadline(client, store):
    _seed(store, "later", "Critical", days=8)
    _seed(store, "sooner", "Low", days=2)
    resp = client.get("/api/notifications?sort_by=deadline")
    assert [n["title"] for n in resp.json()["notifications"]] == ["sooner", "later"]


def test_list_hides_expired_unless_requested(client, store):
    _seed(store, "past", days=-2)
    _seed(store, "future", days=2)
    titles = [n["title"] for n in client.get("/api/notifications").json()["notifications"]]
    assert titles == ["future"]
    resp = client.get("/api/notifications?show_expired=true")
    assert len(resp.json()["notifications"]) == 2


def test_list_expired_only(client, store):
    _seed(store, "past", days=-2)
    _seed(store, "future", days=2)
    resp = client.get("/api/notifications?expired_only=true")
    assert [n["title"] for n in resp.json()["notifications"]] == ["past"]


def test_list_search_title_and_description(client, store):
    _seed(store, "Mid-term EXAM")
    store.insert(Notification(
        title="Workshop", description="Exam prep session", category="Event",
        priority="Low", deadline=_in_days(3),
    ))
    _seed(store, "Hackathon")
    resp = client.get("/api/notifications?search=exam")
    assert sorted(n["title"] for n in resp.json()["notifications"]) == ["Mid-term EXAM", "Workshop"]


def test_list_target_group_filter_keeps_all(client, store):
    _seed(store, "all", target_group="All")
    _seed(store, "cse", target_group="CSE")
    _seed(store, "it", target_group="IT")
    resp = client.get("/api/notifications?target_group=CSE&sort_by=deadline")
    assert sorted(n["title"] for n in resp.json()["notifications"]) == ["all", "cse"]


def test_list_includes_derived_fields(client, store):
    _seed(store, "tomorrow", days=1)
    item = client.get("/api/notifications").json()["notifications"][0]
    assert item["days_remaining"] == 1
    assert item["expired"] is False
    assert item["status_badge"] == "Due Tomorrow"
    assert item["deadline_display"]


def test_list_rejects_unknown_role(client):
    assert client.get("/api/notifications", headers={"X-User-Role": "hacker"}).status_code == 400


def test_list_rejects_invalid_category(client):
    assert client.get("/api/notifications?category=Seminar").status_code == 422


def test_get_notification(client, store):
    stored = _seed(store, "one")
    assert client.get(f"/api/notifications/{stored.id}").json()["title"] == "one"
    assert client.get("/api/notifications/missing").status_code == 404


# --- create ---

def test_admin_create_uses_smart_priority(client):
    resp = client.post("/api/notifications", headers=ADMIN, json={
        "title": "Campus interview",
        "description": "Acme Corp",
        "category": "Placement",
        "deadline": _in_days(8),
    })
    assert resp.status_code == 201
    data = resp.json()
    assert data["priority"] == "High"
    assert data["source"] == "manual"
    assert data["created_by"] == "admin-1"


def test_faculty_create_defaults_to_medium(client):
    resp = client.post("/api/notifications", headers=FACULTY, json={
        "title": "Lab quiz", "category": "Exam", "deadline": _in_days(1),
    })
    assert resp.status_code == 201
    assert resp.json()["priority"] == "Medium"


def test_faculty_create_auto_priority(client):
    resp = client.post("/api/notifications", headers=FACULTY, json={
        "title": "Lab quiz", "category": "Exam", "deadline": _in_days(1), "priority": "auto",
    })
    assert resp.json()["priority"] == "Critical"


def test_create_target_group_prefers_department_then_year(client):
    body = {"title": "t", "category": "Event", "deadline": _in_days(3)}
    resp = client.post("/api/notifications", headers=ADMIN, json={**body, "department": "Civil Engineering", "year": "2"})
    assert resp.json()["target_group"] == "Civil Engineering"
    resp = client.post("/api/notifications", headers=ADMIN, json={**body, "year": "Final Year"})
    assert resp.json()["target_group"] == "Final Year"
    resp = client.post("/api/notifications", headers=ADMIN, json=body)
    assert resp.json()["target_group"] == "All"


def test_student_cannot_create(client):
    resp = client.post("/api/notifications", headers=STUDENT, json={
        "title": "t", "category": "Event", "deadline": _in_days(3),
    })
    assert resp.status_code == 403


def test_missing_role_cannot_create(client):
    resp = client.post("/api/notifications", json={"title": "t", "category": "Event", "deadline": _in_days(3)})
    assert resp.status_code == 403


def test_create_validates_body(client):
    resp = client.post("/api/notifications", headers=ADMIN, json={"title": "", "category": "Event"})
    assert resp.status_code == 422


def test_create_records_activity(store, tmp_path):
    create_app(store, _config(tmp_path))
    TestClient(app).post("/api/notifications", headers=ADMIN, json={
        "title": "t", "category": "Event", "deadline": _in_days(3),
    })
    logs = list((tmp_path / "logs").glob("*.json"))
    assert json.loads(logs[0].read_text())[0]["action"] == "notification_created"


# --- update / delete ---

def test_update_priority_and_target_group(client, store):
    stored = _seed(store, "quiz")
    resp = client.patch(f"/api/notifications/{stored.id}", headers=FACULTY, json={
        "priority": "Critical", "target_group": "IT",
    })
    assert resp.status_code == 200
    assert resp.json()["priority"] == "Critical"
    assert resp.json()["target_group"] == "IT"
    assert resp.json()["updated_at"] is not None


def test_update_auto_recomputes_priority(client, store):
    stored = _seed(store, "quiz", priority="Low", days=20, category="Event")
    resp = client.patch(f"/api/notifications/{stored.id}", headers=ADMIN, json={
        "deadline": _in_days(1), "priority": "auto",
    })
    assert resp.json()["priority"] == "Critical"


def test_update_unknown_notification(client):
    assert client.patch("/api/notifications/missing", headers=ADMIN, json={"title": "x"}).status_code == 404


def test_student_cannot_update(client, store):
    stored = _seed(store, "quiz")
    assert client.patch(f"/api/notifications/{stored.id}", headers=STUDENT, json={"title": "x"}).status_code == 403


def test_delete(client, store):
    stored = _seed(store, "quiz")
    assert client.delete(f"/api/notifications/{stored.id}", headers=FACULTY).status_code == 204
    assert store.get(stored.id) is None
    assert client.delete(f"/api/notifications/{stored.id}", headers=FACULTY).status_code == 404


def test_student_cannot_delete(client, store):
    stored = _seed(store, "quiz")
    assert client.delete(f"/api/notifications/{stored.id}", headers=STUDENT).status_code == 403
    assert store.get(stored.id) is not None


# --- stats ---

def test_stats(client, store):
    _seed(store, "a", "Critical", days=1)
    _seed(store, "b", "Low", days=-1)
    stats = client.get("/api/stats").json()
    assert stats["total"] == 2
    assert stats["critical"] == 1
    assert stats["expired"] == 1
    assert stats["urgent"] == 1
