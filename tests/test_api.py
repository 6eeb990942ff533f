from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from reminder_service.main import app
from reminder_service.reminders.deps import get_service
from reminder_service.reminders.exceptions import PersistenceError

from factories import T0

PREFIX = "/api/v1/reminders"


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_create_list_and_delete(client):
    r = client.post(f"{PREFIX}/", json={"message": "Stretch", "scheduled_time": "2024-01-01T10:00:00Z"})
    assert r.status_code == 201
    created = r.json()
    assert created["sent"] is False
    assert created["repeat_interval"] == 0

    listed = client.get(f"{PREFIX}/").json()
    assert [x["id"] for x in listed] == [created["id"]]

    assert client.get(f"{PREFIX}/{created['id']}").status_code == 200
    assert client.delete(f"{PREFIX}/{created['id']}").status_code == 204
    assert client.get(f"{PREFIX}/{created['id']}").status_code == 404


def test_create_rejects_negative_interval(client):
    r = client.post(
        f"{PREFIX}/",
        json={"message": "x", "scheduled_time": "2024-01-01T10:00:00Z", "repeat_interval": -1},
    )
    assert r.status_code == 422


def test_toggle_on_runs_scheduler(client, channel, add_reminder, add_subscription):
    add_reminder(scheduled_time=T0 - timedelta(minutes=1), is_active=False)
    add_subscription("https://push/a")

    r = client.patch(f"{PREFIX}/r1/toggle", json={"is_active": True})

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["reminder"]["sent"] is True
    assert body["run"]["fired"] == 1
    assert channel.endpoints_for("r1") == ["https://push/a"]


def test_toggle_unknown_reminder(client):
    assert client.patch(f"{PREFIX}/missing/toggle", json={"is_active": True}).status_code == 404


def test_subscription_routes(client):
    r = client.post(f"{PREFIX}/subscriptions", json={"endpoint": "https://push/a", "keys": {"auth": "x"}})
    assert r.status_code == 201
    assert client.get(f"{PREFIX}/subscriptions").json()[0]["endpoint"] == "https://push/a"
    assert client.delete(f"{PREFIX}/subscriptions", params={"endpoint": "https://push/a"}).status_code == 204
    assert client.delete(f"{PREFIX}/subscriptions", params={"endpoint": "https://push/a"}).status_code == 404


def test_test_notification_requires_subscriptions(client, add_subscription):
    assert client.post(f"{PREFIX}/test-notification").status_code == 400

    add_subscription("https://push/a")
    r = client.post(f"{PREFIX}/test-notification")
    assert r.status_code == 200
    assert r.json()["sent"] == 1


def test_run_endpoint_returns_report(client, add_reminder):
    add_reminder()
    body = client.post(f"{PREFIX}/run").json()
    assert body["fired"] == 1
    assert body["summary"].startswith("1 reminders evaluated")


def test_store_failure_maps_to_503(client, store, monkeypatch):
    def unavailable():
        raise PersistenceError("database is locked")

    monkeypatch.setattr(store, "list_subscriptions", unavailable)
    r = client.get(f"{PREFIX}/health")
    assert r.status_code == 503
    assert r.json()["detail"] == "Reminder store unavailable"
