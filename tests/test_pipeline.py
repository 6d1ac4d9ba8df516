import random
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from honeypot.agent import ConversationAgent
from honeypot.callback import CallbackDispatcher, CallbackResult
from honeypot.detector import Intent, ScamDetector
from honeypot.memory import SessionNotFoundError, SessionStore
from honeypot.pipeline import HoneypotPipeline
from honeypot.templates import FALLBACK_RESPONSES

BANK_THREAT = "Your bank account will be blocked today. Verify immediately."
RECEIPT = "Your transaction of Rs. 500 was successful. Reference: 123456."


class Clock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


@pytest.fixture(scope="module")
def detector():
    return ScamDetector()


@pytest.fixture
def dispatcher():
    mock = MagicMock(spec=CallbackDispatcher)
    mock.send_callback.return_value = CallbackResult(success=True, attempts=1, status_code=200)
    return mock


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def pipeline(detector, dispatcher, clock):
    return HoneypotPipeline(
        detector=detector,
        agent=ConversationAgent(rng=random.Random(11)),
        store=SessionStore(clock=clock),
        dispatcher=dispatcher,
    )


def test_benign_message_stays_dormant(pipeline, dispatcher):
    turn = pipeline.process_message("sess-benign", RECEIPT)
    assert turn.reply is None
    assert turn.agent_active is False
    session = pipeline.store.require("sess-benign")
    assert session.message_count == 1
    assert session.intelligence.is_empty()
    dispatcher.send_callback.assert_not_called()


def test_scam_message_engages(pipeline):
    turn = pipeline.process_message("sess-scam", BANK_THREAT)
    assert turn.agent_active is True
    assert isinstance(turn.reply, str) and turn.reply
    assert turn.detection.intent == Intent.BANKING_FRAUD
    session = pipeline.store.require("sess-scam")
    assert session.is_agent_active
    assert [m.sender for m in session.messages] == ["scammer", "operator"]


def test_engagement_is_sticky(pipeline):
    pipeline.process_message("sess-sticky", BANK_THREAT)
    turn = pipeline.process_message("sess-sticky", RECEIPT)
    assert turn.detection.is_scam is False
    assert turn.agent_active is True
    assert turn.reply


def test_terminates_at_twenty_messages(pipeline, dispatcher):
    for turn_no in range(1, 11):
        turn = pipeline.process_message("sess-twenty", BANK_THREAT)
        assert turn.ended is (turn_no == 10)
    session = pipeline.store.require("sess-twenty")
    assert session.message_count == 20
    assert session.is_closed
    assert session.callback_sent is True
    dispatcher.send_callback.assert_called_once()

    pipeline.process_message("sess-twenty", BANK_THREAT)
    dispatcher.send_callback.assert_called_once()


def test_concurrent_turns_on_one_session_serialize(pipeline, dispatcher):
    start = threading.Barrier(30)

    def turn():
        start.wait()
        pipeline.process_message("sess-race", BANK_THREAT)

    workers = [threading.Thread(target=turn) for _ in range(30)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=10)

    session = pipeline.store.require("sess-race")
    assert session.message_count == 60
    senders = [m.sender for m in session.messages]
    assert senders == ["scammer", "operator"] * 30
    assert session.callback_sent is True
    dispatcher.send_callback.assert_called_once()


def test_terminates_early_with_payment_handle(pipeline, dispatcher):
    pipeline.process_message("sess-upi", BANK_THREAT)
    pipeline.process_message("sess-upi", "Pay the fee to fraud.king@ybl right now")
    pipeline.process_message("sess-upi", "Did you pay?")
    turn = pipeline.process_message("sess-upi", "Hurry up")
    assert turn.ended is True
    payload = dispatcher.send_callback.call_args[0][0]
    assert payload["extractedIntelligence"]["upiIds"] == ["fraud.king@ybl"]
    assert payload["totalMessagesExchanged"] == 8


def test_idle_gap_terminates(pipeline, clock):
    pipeline.process_message("sess-idle", BANK_THREAT)
    clock.now += timedelta(minutes=31)
    turn = pipeline.process_message("sess-idle", "Are you there?")
    assert turn.ended is True


def test_failed_delivery_leaves_session_retryable(pipeline, dispatcher):
    dispatcher.send_callback.return_value = CallbackResult(success=False, attempts=3, error="down")
    for _ in range(10):
        pipeline.process_message("sess-fail", BANK_THREAT)
    session = pipeline.store.require("sess-fail")
    assert session.is_closed
    assert session.callback_sent is False
    assert session.callback_attempts == 3
    assert session.callback_in_flight is False

    dispatcher.send_callback.return_value = CallbackResult(success=True, attempts=1)
    _, result = pipeline.end_session("sess-fail")
    assert result.success is True
    assert session.callback_sent is True
    assert dispatcher.send_callback.call_count == 2


def test_end_session_does_not_resend(pipeline, dispatcher):
    pipeline.process_message("sess-end", BANK_THREAT)
    _, first = pipeline.end_session("sess-end")
    _, second = pipeline.end_session("sess-end")
    assert first.success and second.success
    dispatcher.send_callback.assert_called_once()


def test_end_dormant_session_fails_validation(pipeline, dispatcher):
    pipeline.process_message("sess-quiet", RECEIPT)
    session, result = pipeline.end_session("sess-quiet")
    assert result.success is False
    assert result.retryable is False
    assert session.is_closed
    dispatcher.send_callback.assert_not_called()


def test_end_unknown_session(pipeline):
    with pytest.raises(SessionNotFoundError):
        pipeline.end_session("sess-missing")


def test_history_seeds_new_session(pipeline):
    history = [
        {"sender": "scammer", "text": "Hello sir", "scamDetected": False},
        {"sender": "user", "text": "Who is this?"},
    ]
    pipeline.process_message("sess-history", BANK_THREAT, history=history)
    assert pipeline.store.require("sess-history").message_count == 4


def test_detector_failure_degrades_to_dormant(dispatcher, clock):
    broken = MagicMock()
    broken.analyze.side_effect = RuntimeError("boom")
    pipeline = HoneypotPipeline(detector=broken, store=SessionStore(clock=clock),
                                dispatcher=dispatcher)
    turn = pipeline.process_message("sess-broken", BANK_THREAT)
    assert turn.agent_active is False
    assert turn.detection.intent == Intent.ERROR


def test_agent_failure_uses_fallback_reply(pipeline):
    with patch.object(pipeline.agent, "generate_response", side_effect=RuntimeError("boom")):
        turn = pipeline.process_message("sess-agent-err", BANK_THREAT)
    assert turn.reply in FALLBACK_RESPONSES


def test_purge_clears_agent_context(pipeline):
    pipeline.process_message("sess-purge", BANK_THREAT)
    assert pipeline.agent.get_context("sess-purge") is not None
    pipeline.store.delete_session("sess-purge")
    assert pipeline.agent.get_context("sess-purge") is None


def test_batch_has_no_session_side_effects(pipeline):
    results = pipeline.analyze_batch([("a", BANK_THREAT), ("b", RECEIPT)])
    assert [(i, r.is_scam) for i, r in results] == [("a", True), ("b", False)]
    assert pipeline.store.session_count() == 0


def test_statistics_include_contexts(pipeline):
    pipeline.process_message("sess-stats", BANK_THREAT)
    stats = pipeline.get_statistics()
    assert stats["total"] == 1
    assert stats["agentActive"] == 1
    assert stats["conversationContexts"] == 1
