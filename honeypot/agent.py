"""
The agent - our fake victim persona that keeps scammers talking.

Once a session is flagged as a scam the agent replies on every turn. Each
reply is picked from a strategy family keyed by the scam intent and the
conversation phase, then personalized (persona phrases, trust-dependent
hedging, late-hour apology) and lightly varied (fillers, ellipses, the odd
typo) so it does not read like a template.

The longer they talk, the more they reveal: account numbers, UPI handles,
phone numbers, links.

Randomness and the clock are injected so tests can pin them down. Every
stage can come back empty; an empty stage falls back to a generic
"please explain" reply instead of raising.
"""
import logging
import os
import random
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from dotenv import load_dotenv

from honeypot.detector import DetectionResult
from honeypot.templates import (
    FALLBACK_RESPONSES,
    FILLERS,
    PERSONA,
    PERSONA_PHRASES,
    RESPONSE_TEMPLATES,
    STRATEGIES,
)

load_dotenv()

logger = logging.getLogger(__name__)

CONTEXT_IDLE_SECONDS: int = int(os.getenv("CONTEXT_IDLE_SECONDS", "1800"))


@dataclass
class ConversationContext:
    """Per-session conversational state owned by the agent."""
    session_id: str
    message_count: int = 0
    topics: List[str] = field(default_factory=list)
    tactics: List[str] = field(default_factory=list)
    last_strategy: Optional[str] = None
    trust_level: float = 0.3
    last_activity: datetime = field(default_factory=datetime.now)


@dataclass
class AgentReply:
    reply: str
    strategy: str
    phase: str
    confidence: float


@dataclass
class MessageAnalysis:
    tactics: List[str] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    request_type: Optional[str] = None


class ConversationAgent:
    """
    Generates persona replies for engaged sessions.

    The persona:
    - Is confused but not completely clueless
    - Asks lots of questions (this makes scammers reveal more)
    - Shows concern but never complies outright
    - Stalls for time with believable excuses
    """

    INITIAL_TRUST = 0.3
    LOW_TRUST = 0.3
    TRUST_STEP = 0.05

    PERSONA_PROBABILITY = 0.3
    FILLER_PROBABILITY = 0.2
    ELLIPSIS_PROBABILITY = 0.1
    TYPO_PROBABILITY = 0.02

    TACTIC_RULES = [
        ("urgency", ("urgent", "immediately")),
        ("threat", ("block", "suspend")),
        ("verification_request", ("verify", "confirm")),
        ("link_sharing", ("click", "link")),
        ("credential_harvesting", ("otp", "password", "pin")),
        ("payment_request", ("upi", "payment", "transfer")),
    ]
    TOPIC_RULES = [
        ("banking", "bank"),
        ("account", "account"),
        ("upi", "upi"),
        ("kyc", "kyc"),
        ("card", "card"),
    ]

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        strategies: Dict[str, Dict[str, List[str]]] = None,
        templates: Dict[str, List[str]] = None,
        idle_seconds: int = CONTEXT_IDLE_SECONDS,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock or datetime.now
        self._strategies = STRATEGIES if strategies is None else strategies
        self._templates = RESPONSE_TEMPLATES if templates is None else templates
        self._idle_seconds = idle_seconds
        self._contexts: Dict[str, ConversationContext] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate_response(
        self,
        session_id: str,
        message: str,
        detection: DetectionResult,
        metadata: Optional[dict] = None,
    ) -> AgentReply:
        """Produce the persona's reply to one inbound scammer message.

        metadata carries channel/language hints and is informational only.
        Never raises; any failure yields a fallback reply.
        """
        try:
            reply = self._generate(session_id, message or "", detection)
        except Exception as e:
            logger.error(f"[{session_id[:8]}] Reply generation failed: {e}", exc_info=True)
            reply = None

        if reply is None:
            return self.fallback_reply()
        return reply

    def fallback_reply(self) -> AgentReply:
        return AgentReply(
            reply=self._rng.choice(FALLBACK_RESPONSES),
            strategy="fallback",
            phase="error",
            confidence=0.0,
        )

    @staticmethod
    def determine_phase(message_count: int) -> str:
        if message_count <= 2:
            return "initial"
        if message_count <= 6:
            return "middle"
        return "late"

    def analyze_message(self, text: str) -> MessageAnalysis:
        lowered = text.lower()
        analysis = MessageAnalysis()
        for tactic, terms in self.TACTIC_RULES:
            if any(term in lowered for term in terms):
                analysis.tactics.append(tactic)
        if "credential_harvesting" in analysis.tactics:
            analysis.request_type = "credentials"
        if "payment_request" in analysis.tactics:
            analysis.request_type = "payment"
        for topic, term in self.TOPIC_RULES:
            if term in lowered:
                analysis.topics.append(topic)
        return analysis

    def get_context(self, session_id: str) -> Optional[ConversationContext]:
        with self._lock:
            return self._contexts.get(session_id)

    def get_conversation_summary(self, session_id: str) -> Optional[dict]:
        context = self.get_context(session_id)
        if context is None:
            return None
        return {
            "messageCount": context.message_count,
            "topicsDiscussed": list(context.topics),
            "tacticsUsed": list(context.tactics),
            "trustLevel": context.trust_level,
            "lastStrategy": context.last_strategy,
        }

    def clear_context(self, session_id: str) -> None:
        with self._lock:
            removed = self._contexts.pop(session_id, None)
        if removed is not None:
            logger.info(f"[{session_id[:8]}] Cleared conversation context")

    def cleanup_expired(self) -> int:
        """Drop contexts idle longer than the configured window."""
        now = self._clock()
        with self._lock:
            expired = [
                sid for sid, ctx in self._contexts.items()
                if (now - ctx.last_activity).total_seconds() > self._idle_seconds
            ]
            for sid in expired:
                del self._contexts[sid]
        if expired:
            logger.info(f"Purged {len(expired)} idle conversation contexts")
        return len(expired)

    def context_count(self) -> int:
        with self._lock:
            return len(self._contexts)

    # ------------------------------------------------------------------
    # Generation stages
    # ------------------------------------------------------------------

    def _get_or_create_context(self, session_id: str) -> ConversationContext:
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                context = ConversationContext(
                    session_id=session_id,
                    trust_level=self.INITIAL_TRUST,
                    last_activity=self._clock(),
                )
                self._contexts[session_id] = context
            return context

    def _generate(self, session_id: str, text: str,
                  detection: DetectionResult) -> Optional[AgentReply]:
        context = self._get_or_create_context(session_id)
        phase = self.determine_phase(context.message_count)
        intent = getattr(detection.intent, "value", detection.intent)

        strategy = self._select_strategy(intent, phase)
        if strategy is None:
            return None

        analysis = self.analyze_message(text)
        template = self._select_template(strategy, analysis)
        if template is None:
            return None

        reply = self._add_variations(self._personalize(template, context))
        if not reply:
            return None

        self._update_context(context, text, reply, strategy, analysis)
        logger.info(
            f"[{session_id[:8]}] Reply intent={intent} phase={phase} "
            f"strategy={strategy} trust={context.trust_level:.2f}"
        )
        return AgentReply(
            reply=reply,
            strategy=strategy,
            phase=phase,
            confidence=detection.confidence,
        )

    def _select_strategy(self, intent: str, phase: str) -> Optional[str]:
        family = self._strategies.get(intent) or self._strategies.get("default")
        if not family:
            return None
        names = family.get(phase) or family.get("middle")
        if not names:
            return None
        return self._rng.choice(names)

    def _select_template(self, strategy: str, analysis: MessageAnalysis) -> Optional[str]:
        templates = self._templates.get(strategy) or self._templates.get("neutral")
        if not templates:
            return None

        available = templates
        if analysis.request_type == "credentials":
            available = [t for t in templates if "?" in t or "why" in t or "how" in t]
        # Threat language overrides the credential filter.
        if "threat" in analysis.tactics:
            available = [t for t in templates if "worried" in t or "concern" in t or "what" in t]
        if not available:
            available = templates
        return self._rng.choice(available)

    def _personalize(self, template: str, context: ConversationContext) -> str:
        text = template

        if PERSONA.get("dialect") == "indian_english" and self._rng.random() < self.PERSONA_PROBABILITY:
            phrase = self._rng.choice(PERSONA_PHRASES)
            if text.endswith("."):
                text = f"{text[:-1]} {phrase}."

        if context.trust_level < self.LOW_TRUST:
            text = re.sub(r'\bI will\b', "I might", text)
            text = re.sub(r'(?<!not )\bsure\b', "not sure", text)

        hour = self._clock().hour
        if hour < 6 or hour > 22:
            text = "Sorry for the late hour. " + text

        return text

    def _add_variations(self, text: str) -> str:
        if not text:
            return text

        if self._rng.random() < self.FILLER_PROBABILITY:
            filler = self._rng.choice(FILLERS)
            first_word = text.split(" ", 1)[0]
            if first_word == "I" or first_word.startswith("I'"):
                text = f"{filler}, {text}"
            else:
                text = f"{filler}, {text[0].lower()}{text[1:]}"

        if self._rng.random() < self.ELLIPSIS_PROBABILITY:
            text = text.replace(".", "...", 1)

        if self._rng.random() < self.TYPO_PROBABILITY:
            text = self._add_typo(text)

        return text

    def _add_typo(self, text: str) -> str:
        """Swap two adjacent letters inside one plain alphabetic word."""
        words = text.split(" ")
        if len(words) <= 3:
            return text
        candidates = [i for i, w in enumerate(words) if w.isalpha() and len(w) > 4]
        if not candidates:
            return text
        idx = self._rng.choice(candidates)
        word = words[idx]
        pos = self._rng.randrange(len(word) - 1)
        words[idx] = word[:pos] + word[pos + 1] + word[pos] + word[pos + 2:]
        return " ".join(words)

    def _update_context(self, context: ConversationContext, text: str, reply: str,
                        strategy: str, analysis: MessageAnalysis) -> None:
        context.message_count += 1
        for topic in analysis.topics:
            if topic not in context.topics:
                context.topics.append(topic)
        for tactic in analysis.tactics:
            if tactic not in context.tactics:
                context.tactics.append(tactic)
        context.last_strategy = strategy

        trust = context.trust_level
        if "?" in reply:
            trust -= self.TRUST_STEP
        lowered = text.lower()
        if "please" in lowered or "sorry" in lowered:
            trust += self.TRUST_STEP
        context.trust_level = max(0.0, min(trust, 1.0))
        context.last_activity = self._clock()
