from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
import requests

from honeypot.callback import (
    CallbackDispatcher,
    build_payload,
    format_duration,
    generate_agent_notes,
    validate_session,
)
from honeypot.extractor import Intelligence
from honeypot.memory import Session


def scam_session():
    session = Session("sess-callback-1234")
    session.activate_agent()
    session.add_message("scammer", "URGENT: your account will be blocked. Share OTP.",
                        now=session.created_at)
    session.add_message("operator", "Why do you need my OTP?",
                        now=session.created_at + timedelta(minutes=2))
    session.intelligence = Intelligence(
        upi_ids=["fraud@ybl"],
        phone_numbers=["+919876543210"],
        suspicious_keywords=["urgent", "otp"],
    )
    return session


@pytest.fixture
def dispatcher():
    return CallbackDispatcher(url="http://collector.test/report", timeout=1,
                              max_retries=3, retry_delay=0, sleep=MagicMock())


@patch("honeypot.callback.requests.post")
def test_network_failures_exhaust_retries(mock_post, dispatcher):
    mock_post.side_effect = requests.exceptions.ConnectionError("down")
    result = dispatcher.send_callback({"sessionId": "sess-1"})
    assert result.success is False
    assert result.attempts == 3
    assert mock_post.call_count == 3
    assert dispatcher._sleep.call_count == 2


@patch("honeypot.callback.requests.post")
def test_timeouts_are_retryable(mock_post, dispatcher):
    mock_post.side_effect = requests.exceptions.Timeout()
    result = dispatcher.send_callback({"sessionId": "sess-1"})
    assert result.success is False
    assert result.error == "timeout"
    assert mock_post.call_count == 3
    _, kwargs = mock_post.call_args
    assert kwargs["timeout"] == 1


@patch("honeypot.callback.requests.post")
def test_non_2xx_is_retried_then_succeeds(mock_post, dispatcher):
    mock_post.side_effect = [
        MagicMock(status_code=503, text="busy"),
        MagicMock(status_code=200, text="ok"),
    ]
    result = dispatcher.send_callback({"sessionId": "sess-1"})
    assert result.success is True
    assert result.attempts == 2
    assert result.status_code == 200


@patch("honeypot.callback.requests.post")
def test_validation_failure_never_hits_network(mock_post, dispatcher):
    session = Session("sess-dormant")
    session.add_message("scammer", "hello")
    result = dispatcher.send_validated_callback(session)
    assert result.success is False
    assert result.retryable is False
    assert result.validation_errors == ["Scam must be detected before sending callback"]
    mock_post.assert_not_called()


@patch("honeypot.callback.requests.post")
def test_validated_callback_posts_payload(mock_post, dispatcher):
    mock_post.return_value = MagicMock(status_code=200, text="ok")
    result = dispatcher.send_validated_callback(scam_session())
    assert result.success is True
    args, kwargs = mock_post.call_args
    assert args[0] == "http://collector.test/report"
    assert kwargs["json"]["sessionId"] == "sess-callback-1234"


def test_validate_session_rules():
    assert validate_session(None) == ["Session ID is required"]
    empty = Session("sess-empty")
    empty.activate_agent()
    assert validate_session(empty) == ["Session must have at least one message"]
    assert validate_session(scam_session()) == []


def test_payload_shape():
    payload = build_payload(scam_session())
    assert payload["sessionId"] == "sess-callback-1234"
    assert payload["scamDetected"] is True
    assert payload["totalMessagesExchanged"] == 2
    assert payload["extractedIntelligence"] == {
        "bankAccounts": [],
        "upiIds": ["fraud@ybl"],
        "phishingLinks": [],
        "phoneNumbers": ["+919876543210"],
        "suspiciousKeywords": ["urgent", "otp"],
    }
    assert isinstance(payload["agentNotes"], str)


def test_agent_notes_summarize_tactics_and_yield():
    notes = generate_agent_notes(scam_session())
    assert notes.startswith("Scammer used urgency tactics, account threat, credential harvesting.")
    assert "Engagement lasted 2 messages over 2 minutes." in notes
    assert "Extracted 2 pieces of actionable intelligence." in notes


def test_agent_notes_without_intel():
    session = Session("sess-quiet")
    session.add_message("scammer", "hello there", now=session.created_at)
    notes = generate_agent_notes(session)
    assert "social engineering tactics" in notes
    assert "brief period" in notes
    assert notes.endswith("Limited intelligence extracted.")


@pytest.mark.parametrize("seconds,expected", [
    (0, "brief period"),
    (45, "seconds"),
    (600, "10 minutes"),
    (3900, "1h 5m"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected
