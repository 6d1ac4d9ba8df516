import random
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from honeypot.agent import ConversationAgent
from honeypot.callback import CallbackDispatcher, CallbackResult
from honeypot.main import app, get_pipeline
from honeypot.pipeline import HoneypotPipeline

HEADERS = {"x-api-key": "test-key"}
BANK_THREAT = "Your bank account will be blocked today. Verify immediately."
RECEIPT = "Your transaction of Rs. 500 was successful. Reference: 123456."


@pytest.fixture
def dispatcher():
    mock = MagicMock(spec=CallbackDispatcher)
    mock.send_callback.return_value = CallbackResult(success=True, attempts=1, status_code=200)
    return mock


@pytest.fixture
def client(dispatcher):
    pipeline = HoneypotPipeline(agent=ConversationAgent(rng=random.Random(5)), dispatcher=dispatcher)
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    with patch("honeypot.auth.VALID_API_KEYS", frozenset({"test-key"})):
        yield TestClient(app)
    app.dependency_overrides.clear()


def send(client, session_id, text, **extra):
    body = {"sessionId": session_id, "message": {"sender": "scammer", "text": text}}
    body.update(extra)
    return client.post("/api/v1/process-message", json=body, headers=HEADERS)


def test_missing_api_key(client):
    response = client.post("/api/v1/process-message",
                           json={"sessionId": "sess-1", "message": {"text": "hi"}})
    assert response.status_code == 401


def test_wrong_api_key(client):
    response = client.get("/api/v1/statistics", headers={"x-api-key": "nope"})
    assert response.status_code == 401


def test_health_needs_no_key(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_benign_message_passes_through(client):
    response = send(client, "sess-api-benign", RECEIPT)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "success"
    assert data["reply"] is None
    assert data["scamDetected"] is False
    assert data["message"] == "No scam detected - message can be passed through"


def test_scam_message_gets_reply(client):
    response = send(client, "sess-api-scam", BANK_THREAT,
                    metadata={"channel": "WhatsApp", "language": "English", "locale": "IN"})
    data = response.json()
    assert data["scamDetected"] is True
    assert data["intent"] == "banking_fraud"
    assert isinstance(data["reply"], str) and data["reply"]


def test_epoch_timestamp_is_accepted(client):
    body = {"sessionId": "sess-api-ts",
            "message": {"sender": "scammer", "text": RECEIPT, "timestamp": 1767225600000}}
    response = client.post("/api/v1/process-message", json=body, headers=HEADERS)
    assert response.status_code == 200


def test_short_session_id_is_rejected(client):
    response = send(client, "ab", BANK_THREAT)
    assert response.status_code == 422
    assert response.json()["status"] == "error"


def test_empty_text_is_rejected(client):
    response = send(client, "sess-api-empty", "")
    assert response.status_code == 422


def test_session_status(client):
    send(client, "sess-api-status", BANK_THREAT)
    response = client.get("/api/v1/session/sess-api-status", headers=HEADERS)
    assert response.status_code == 200
    session = response.json()["session"]
    assert session["isAgentActive"] is True
    assert session["messageCount"] == 2
    assert session["intelligence"]["summary"]["severity"] in ("LOW", "MEDIUM", "HIGH")


def test_unknown_session_is_404(client):
    response = client.get("/api/v1/session/sess-nowhere", headers=HEADERS)
    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "Session not found"}

    response = client.post("/api/v1/session/sess-nowhere/end", headers=HEADERS)
    assert response.status_code == 404


def test_end_session_sends_callback(client, dispatcher):
    send(client, "sess-api-end", BANK_THREAT)
    response = client.post("/api/v1/session/sess-api-end/end", headers=HEADERS)
    assert response.status_code == 200
    data = response.json()
    assert data["callbackResult"]["success"] is True
    dispatcher.send_callback.assert_called_once()


def test_statistics(client):
    send(client, "sess-api-s1", BANK_THREAT)
    send(client, "sess-api-s2", RECEIPT)
    stats = client.get("/api/v1/statistics", headers=HEADERS).json()["statistics"]
    assert stats["total"] == 2
    assert stats["scamDetected"] == 1


def test_batch_process(client):
    body = {"messages": [{"id": "m1", "text": BANK_THREAT}, {"id": "m2", "text": RECEIPT}]}
    response = client.post("/api/v1/batch-process", json=body, headers=HEADERS)
    assert response.status_code == 200
    results = response.json()["results"]
    assert [(r["messageId"], r["scamDetected"]) for r in results] == [("m1", True), ("m2", False)]


def test_batch_requires_messages(client):
    response = client.post("/api/v1/batch-process", json={"messages": []}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["message"] == "Messages array is required"
