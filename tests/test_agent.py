import random
from datetime import datetime, timedelta

import pytest

from honeypot.agent import ConversationAgent, MessageAnalysis
from honeypot.detector import DetectionResult, Intent
from honeypot.templates import FALLBACK_RESPONSES, RESPONSE_TEMPLATES, STRATEGIES

NOON = datetime(2026, 1, 5, 12, 0)


def detection(intent=Intent.BANKING_FRAUD, confidence=0.8):
    return DetectionResult(is_scam=True, confidence=confidence, intent=intent)


def quiet(agent):
    """Switch off random decoration so replies equal their templates."""
    agent.PERSONA_PROBABILITY = 0.0
    agent.FILLER_PROBABILITY = 0.0
    agent.ELLIPSIS_PROBABILITY = 0.0
    agent.TYPO_PROBABILITY = 0.0
    return agent


@pytest.fixture
def agent():
    return quiet(ConversationAgent(rng=random.Random(7), clock=lambda: NOON))


@pytest.mark.parametrize("count,phase", [
    (0, "initial"), (2, "initial"), (3, "middle"), (6, "middle"), (7, "late"), (30, "late"),
])
def test_phase_boundaries(count, phase):
    assert ConversationAgent.determine_phase(count) == phase


def test_strategies_follow_intent_and_phase(agent):
    family = STRATEGIES["banking_fraud"]
    expected = ["initial"] * 3 + ["middle"] * 4 + ["late"] * 3
    # "please" keeps trust from dropping, so no hedging rewrites the templates
    for phase in expected:
        reply = agent.generate_response("sess-bank", "please, your account is on hold", detection())
        assert reply.phase == phase
        assert reply.strategy in family[phase]
        assert reply.reply in RESPONSE_TEMPLATES[reply.strategy]
        assert reply.confidence == 0.8


def test_unknown_intent_uses_default_family(agent):
    reply = agent.generate_response("sess-x", "hello", detection(Intent.SUSPICIOUS))
    assert reply.strategy in STRATEGIES["default"]["initial"]


def test_credential_request_prefers_questions(agent):
    agent._templates = {"neutral": ["No way.", "Why now?"]}
    analysis = agent.analyze_message("share your otp")
    for _ in range(10):
        assert agent._select_template("neutral", analysis) == "Why now?"


def test_threat_filter_replaces_credential_filter(agent):
    agent._templates = {"neutral": ["Why now?", "I am worried."]}
    analysis = agent.analyze_message("send otp or account will be blocked")
    assert analysis.request_type == "credentials"
    assert "threat" in analysis.tactics
    for _ in range(10):
        assert agent._select_template("neutral", analysis) == "I am worried."


def test_empty_filter_falls_back_to_all_templates(agent):
    agent._templates = {"neutral": ["Okay.", "Fine."]}
    analysis = MessageAnalysis(tactics=["threat"])
    assert agent._select_template("neutral", analysis) in ("Okay.", "Fine.")


def test_trust_decreases_on_questions_and_clamps(agent):
    agent._strategies = {"default": {"initial": ["neutral"], "middle": ["neutral"], "late": ["neutral"]}}
    agent._templates = {"neutral": ["What is this?"]}
    for _ in range(10):
        agent.generate_response("sess-trust", "hello", detection(Intent.SUSPICIOUS))
    assert agent.get_context("sess-trust").trust_level == pytest.approx(0.0)


def test_politeness_offsets_questions(agent):
    agent._strategies = {"default": {"initial": ["neutral"], "middle": ["neutral"], "late": ["neutral"]}}
    agent._templates = {"neutral": ["What is this?"]}
    agent.generate_response("sess-polite", "sorry, please listen", detection(Intent.SUSPICIOUS))
    assert agent.get_context("sess-polite").trust_level == pytest.approx(0.3)


def test_low_trust_softens_language(agent):
    agent._strategies = {"default": {"initial": ["neutral"], "middle": ["neutral"], "late": ["neutral"]}}
    agent._templates = {"neutral": ["I will check. Are you sure?"]}
    first = agent.generate_response("sess-soft", "hi", detection(Intent.SUSPICIOUS))
    second = agent.generate_response("sess-soft", "hi", detection(Intent.SUSPICIOUS))
    assert first.reply == "I will check. Are you sure?"
    assert second.reply == "I might check. Are you not sure?"


def test_softening_does_not_double_negate(agent):
    agent._strategies = {"default": {"initial": ["neutral"], "middle": ["neutral"], "late": ["neutral"]}}
    agent._templates = {"neutral": ["I am not sure?"]}
    agent.generate_response("sess-neg", "hi", detection(Intent.SUSPICIOUS))
    reply = agent.generate_response("sess-neg", "hi", detection(Intent.SUSPICIOUS))
    assert reply.reply == "I am not sure?"


def test_late_hour_apology():
    late = quiet(ConversationAgent(rng=random.Random(1), clock=lambda: datetime(2026, 1, 5, 23, 30)))
    reply = late.generate_response("sess-late", "hello", detection())
    assert reply.reply.startswith("Sorry for the late hour. ")


def test_missing_strategy_falls_back(agent):
    agent._strategies = {}
    reply = agent.generate_response("sess-fb", "hello", detection())
    assert reply.strategy == "fallback"
    assert reply.phase == "error"
    assert reply.reply in FALLBACK_RESPONSES


def test_exception_falls_back(agent):
    reply = agent.generate_response("sess-err", "hello", None)
    assert reply.strategy == "fallback"
    assert reply.reply in FALLBACK_RESPONSES


def test_typo_swaps_adjacent_letters_only():
    agent = ConversationAgent(rng=random.Random(3), clock=lambda: NOON)
    text = "Call 9876543210 tomorrow evening please"
    for _ in range(20):
        varied = agent._add_typo(text)
        before, after = text.split(" "), varied.split(" ")
        assert len(before) == len(after)
        assert after[1] == "9876543210"
        changed = [(b, a) for b, a in zip(before, after) if b != a]
        assert len(changed) <= 1
        for b, a in changed:
            assert sorted(b) == sorted(a)


def test_filler_keeps_capital_i():
    agent = ConversationAgent(rng=random.Random(0), clock=lambda: NOON)
    agent.FILLER_PROBABILITY = 1.0
    agent.ELLIPSIS_PROBABILITY = 0.0
    agent.TYPO_PROBABILITY = 0.0
    assert agent._add_variations("I am confused.").split(", ", 1)[1] == "I am confused."
    assert agent._add_variations("What happened?").split(", ", 1)[1] == "what happened?"


def test_context_tracks_topics_and_tactics(agent):
    agent.generate_response("sess-ctx", "Urgent: verify your bank account and share OTP", detection())
    summary = agent.get_conversation_summary("sess-ctx")
    assert summary["messageCount"] == 1
    assert set(summary) == {"messageCount", "topicsDiscussed", "tacticsUsed",
                            "trustLevel", "lastStrategy"}
    assert "banking" in summary["topicsDiscussed"]
    assert "urgency" in summary["tacticsUsed"]
    assert "credential_harvesting" in summary["tacticsUsed"]


def test_idle_contexts_are_purged():
    now = [NOON]
    agent = quiet(ConversationAgent(rng=random.Random(2), clock=lambda: now[0], idle_seconds=1800))
    agent.generate_response("sess-old", "hello", detection())
    assert agent.cleanup_expired() == 0
    now[0] = NOON + timedelta(minutes=31)
    assert agent.cleanup_expired() == 1
    assert agent.get_context("sess-old") is None


def test_clear_context(agent):
    agent.generate_response("sess-clear", "hello", detection())
    agent.clear_context("sess-clear")
    assert agent.get_conversation_summary("sess-clear") is None
