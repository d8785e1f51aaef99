import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from auth import WebhookSecretMiddleware
from main import app
from tests.helpers import update_payload
from utils.constants import Replies

SECRET_HEADER = {"X-Telegram-Bot-Api-Secret-Token": "hook-secret"}


@pytest.fixture
def configured_app(monkeypatch):
    """Test client with the webhook secret set and a mocked pipeline."""
    monkeypatch.setattr(WebhookSecretMiddleware, "SECRET", "hook-secret")
    pipeline = AsyncMock()
    monkeypatch.setattr(app.state, "pipeline", pipeline, raising=False)
    return TestClient(app), pipeline


def test_root_health_check(configured_app):
    """Given the app, when the root endpoint is called, it should report it is running."""
    client, _ = configured_app
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Telegram Relay Bot is running"}


def test_webhook_readiness_check(configured_app):
    """Given the app, when GET /webhook is called without a secret, it should report ready."""
    client, _ = configured_app
    assert client.get("/webhook").json() == {"status": "ready"}


def test_webhook_requires_secret(configured_app):
    """Given no secret header, when an update is posted, it should be rejected before reaching the pipeline."""
    client, pipeline = configured_app
    response = client.post("/webhook", json=update_payload())
    assert response.status_code == 401
    pipeline.handle.assert_not_called()


def test_webhook_hands_update_to_pipeline(configured_app):
    """Given a valid update, when posted, the pipeline should receive the parsed update and Telegram gets 200."""
    client, pipeline = configured_app

    response = client.post("/webhook", json=update_payload(chat_id=77, text="hello"), headers=SECRET_HEADER)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    update = pipeline.handle.call_args.args[0]
    assert update.message.conversation_id == "77"
    assert update.message.text == "hello"


def test_webhook_acknowledges_even_when_pipeline_fails(configured_app):
    """Given a pipeline that raises, when an update is posted, the webhook should still answer 200."""
    client, pipeline = configured_app
    pipeline.handle.side_effect = RuntimeError("boom")

    response = client.post("/webhook", json=update_payload(), headers=SECRET_HEADER)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_webhook_ignores_malformed_updates(configured_app):
    """Given a body that is not an update, when posted, it should be acknowledged and ignored."""
    client, pipeline = configured_app

    response = client.post("/webhook", json={"hello": "world"}, headers=SECRET_HEADER)

    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}
    pipeline.handle.assert_not_called()


def test_webhook_runs_real_pipeline(monkeypatch, pipeline, telegram):
    """Given the real pipeline, when /clear is posted, the reply should go out through the transport."""
    monkeypatch.setattr(WebhookSecretMiddleware, "SECRET", "")
    monkeypatch.setattr(app.state, "pipeline", pipeline, raising=False)

    response = TestClient(app).post("/webhook", json=update_payload(text="/clear"))

    assert response.status_code == 200
    assert telegram.texts == [Replies.CLEARED]
