from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import FakeStore, PHONE, build_bot
from main import app
from utils.timezone_utils import get_user_now, get_user_today


@pytest.fixture
def bot(monkeypatch):
    bot = build_bot(store=FakeStore(users=[{'phone_number': PHONE, 'onboarded': True, 'language': 'en'}]))
    monkeypatch.setattr(app.state, "store", bot.store, raising=False)
    monkeypatch.setattr(app.state, "sessions", bot.sessions, raising=False)
    monkeypatch.setattr(app.state, "blood_sugar_service", bot.blood_sugar, raising=False)
    monkeypatch.setattr(app.state, "summary_service", bot.summaries, raising=False)
    monkeypatch.setattr(app.state, "dispatcher", bot.dispatcher, raising=False)
    return bot


@pytest.fixture
def client(bot):
    return TestClient(app)


def webhook_payload(message):
    return {"entry": [{"changes": [{"value": {
        "metadata": {"phone_number_id": "pnid"},
        "messages": [message]
    }}]}]}


def test_webhook_verification(client, monkeypatch):
    monkeypatch.setenv("WEBHOOK_VERIFY_TOKEN", "secret")
    response = client.get("/webhook", params={
        "hub.mode": "subscribe", "hub.verify_token": "secret", "hub.challenge": "1158201444"
    })
    assert response.status_code == 200
    assert response.text == "1158201444"


def test_webhook_verification_rejects_wrong_token(client, monkeypatch):
    monkeypatch.setenv("WEBHOOK_VERIFY_TOKEN", "secret")
    response = client.get("/webhook", params={
        "hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "1"
    })
    assert response.status_code == 403


def test_webhook_dispatches_messages(client, bot):
    response = client.post("/webhook", json=webhook_payload({
        "from": PHONE, "id": "wamid.1", "type": "text", "text": {"body": "thanks"}
    }))
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "route": "echo"}
    assert bot.messenger.texts == ["Echo: thanks"]


def test_webhook_ignores_status_updates(client, bot):
    response = client.post("/webhook", json={"entry": [{"changes": [{"value": {"statuses": []}}]}]})
    assert response.json() == {"status": "ignored"}
    assert bot.messenger.sent == []


def test_webhook_reports_handler_failure(client, monkeypatch):
    class BrokenDispatcher:
        async def handle_event(self, event):
            raise RuntimeError("boom")

    monkeypatch.setattr(app.state, "dispatcher", BrokenDispatcher())
    response = client.post("/webhook", json=webhook_payload({
        "from": PHONE, "id": "wamid.1", "type": "text", "text": {"body": "hi"}
    }))
    assert response.status_code == 500


def test_missing_dispatcher_is_unavailable(client, monkeypatch):
    monkeypatch.setattr(app.state, "dispatcher", None)
    response = client.post("/webhook", json={})
    assert response.status_code == 503


def test_trends_endpoint(client, bot):
    now = get_user_now()
    for hours, value in ((30, 100), (20, 100), (2, 150)):
        bot.store.add_reading(value, 'random', now - timedelta(hours=hours))

    response = client.get(f"/api/users/{PHONE}/blood-sugar/trends", params={"days": 7})
    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["trends"]["readings_count"] == 3
    assert body["trends"]["trend"] == "rising"
    assert body["message"].startswith("📊 Blood Sugar Trends")


def test_trends_endpoint_validates_days(client):
    assert client.get(f"/api/users/{PHONE}/blood-sugar/trends", params={"days": 0}).status_code == 422


def test_meal_correlation_endpoint(client):
    response = client.get(f"/api/users/{PHONE}/blood-sugar/meal-correlation")
    assert response.status_code == 200
    assert response.json()["count"] == 0


def test_summary_endpoints(client, bot):
    assert client.get(f"/api/users/{PHONE}/summary/yearly").status_code == 400

    daily = client.get(f"/api/users/{PHONE}/summary/daily").json()
    assert daily["summary"] is None

    bot.store.daily_summaries.append({
        'id': 1, 'user_phone': PHONE, 'date': get_user_today().isoformat(),
        'total_calories': 2600, 'meal_count': 3, 'green_flags_count': 1, 'red_flags_count': 2
    })
    weekly = client.get(f"/api/users/{PHONE}/summary/weekly").json()
    assert len(weekly["days"]) == 1
    assert weekly["stats"]["avg_daily_calories"] == 2600
    assert weekly["stats"]["favorable_percentage"] == 33
    assert len(weekly["insights"]) == 2


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["services"]["open_conversations"] == 0
    assert body["services"]["active_locks"] == 0


def test_root(client):
    assert client.get("/").json()["message"] == "Glucose Diet Bot API"
