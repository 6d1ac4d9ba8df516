"""
Rule-driven signal detectors for scam scoring.

Each detector is a pure function of the normalized message text and the
conversation history, and returns a SignalScore clamped to [0, 1] plus the
indicator names that fired. The combiner in detector.py weights them.

    PatternDetector    - configured regex rules + urgency/threat/financial/URL/phone counts
    LinguisticDetector - imperative mood, negative sentiment, personal-info asks, choppy style
    ContextDetector    - prior scam flags, escalation vocabulary, persistence
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Sequence


@dataclass
class SignalScore:
    """Score and fired indicators from a single detector."""
    score: float = 0.0
    indicators: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PatternRule:
    name: str
    regex: str
    weight: float


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(value, high))


def history_text(entry: Any) -> str:
    """Text of a history entry given as a mapping or a message object."""
    if isinstance(entry, Mapping):
        return str(entry.get("text") or "")
    return str(getattr(entry, "text", "") or "")


def history_flagged(entry: Any) -> bool:
    if isinstance(entry, Mapping):
        return entry.get("scamDetected") is True
    return getattr(entry, "scam_detected", None) is True


# Known scam phrasings. Each rule adds its weight once when it matches.
DEFAULT_PATTERN_RULES: List[PatternRule] = [
    PatternRule("account_threat",
                r'\b(?:account|a/c)\b.*\b(?:block|suspend|freez|deactivat|clos)', 0.3),
    PatternRule("verification_demand",
                r'\b(?:verify|verification|kyc|re-?kyc|update\s+your)\b', 0.2),
    PatternRule("credential_request",
                r'\b(?:share|send|tell|give|provide|enter)\b.{0,20}\b(?:otp|pin|password|cvv)\b', 0.35),
    PatternRule("prize_lure",
                r'\b(?:won|winner|prize|lottery|lucky\s+draw|jackpot)\b', 0.3),
    PatternRule("fee_demand",
                r'\b(?:processing|registration|advance|clearance)\s+(?:fee|charge|payment)s?\b', 0.3),
    PatternRule("remote_access_app",
                r'\b(?:anydesk|teamviewer|quicksupport|apk)\b', 0.35),
    PatternRule("authority_impersonation",
                r'\b(?:rbi|reserve\s+bank|income\s+tax|cyber\s+cell|police|customs)\b', 0.2),
    PatternRule("easy_money_job",
                r'\b(?:work\s+from\s+home|part[\s-]time\s+job|earn\s+(?:rs\.?\s*|₹\s*)?\d+)', 0.25),
]


class PatternDetector:
    """Keyword and structure matching against known scam phrasings."""

    URGENCY_PATTERN = re.compile(
        r'\b(?:urgent(?:ly)?|immediately|now|today|asap|hurry|quick(?:ly)?|fast)\b')
    THREAT_PATTERN = re.compile(r'\b(?:block|suspend|close|terminat|disabl|deactivat)\w*')
    FINANCIAL_TERMS = ("bank", "account", "upi", "otp", "pin", "password", "card",
                       "payment", "transfer")
    URL_PATTERN = re.compile(
        r'(?:https?://|www\.)\S+|\b(?:bit\.ly|tinyurl\.com)/\S+')
    PHONE_PATTERN = re.compile(r'(?<!\d)(?:\+91[\s-]?)?0?[6-9]\d{9}(?!\d)')

    URGENCY_WEIGHT = 0.15
    THREAT_WEIGHT = 0.2
    FINANCIAL_WEIGHT = 0.1
    URL_WEIGHT = 0.25
    PHONE_WEIGHT = 0.15

    def __init__(self, rules: Sequence[PatternRule] = None) -> None:
        rules = DEFAULT_PATTERN_RULES if rules is None else rules
        self._rules = [(rule, re.compile(rule.regex, re.IGNORECASE)) for rule in rules]
        self._financial = [
            re.compile(rf'\b{term}s?\b') for term in self.FINANCIAL_TERMS
        ]

    def score(self, text: str, history: Sequence[Any] = ()) -> SignalScore:
        indicators: List[str] = []
        total = 0.0

        for rule, regex in self._rules:
            if regex.search(text):
                total += rule.weight
                indicators.append(rule.name)

        urgency = len(self.URGENCY_PATTERN.findall(text))
        if urgency:
            total += urgency * self.URGENCY_WEIGHT
            indicators.append("urgency_language")

        threats = len(self.THREAT_PATTERN.findall(text))
        if threats:
            total += threats * self.THREAT_WEIGHT
            indicators.append("threat_language")

        financial = sum(1 for regex in self._financial if regex.search(text))
        if financial:
            total += financial * self.FINANCIAL_WEIGHT
            indicators.append("financial_terms")

        urls = len(self.URL_PATTERN.findall(text))
        if urls:
            total += urls * self.URL_WEIGHT
            indicators.append("suspicious_urls")

        phones = len(self.PHONE_PATTERN.findall(text))
        if phones:
            total += phones * self.PHONE_WEIGHT
            indicators.append("phone_numbers")

        return SignalScore(clamp(total), indicators)


class LinguisticDetector:
    """Lexicon-driven linguistic scoring of the message style."""

    COMMAND_VERBS = frozenset({
        "verify", "click", "send", "share", "call", "pay", "transfer", "update",
        "provide", "enter", "confirm", "submit", "download", "install", "open",
        "reply", "contact", "give", "tell", "act", "visit", "complete", "login",
        "register", "deposit", "scan", "link", "forward",
    })
    POLITE_OPENERS = frozenset({"please", "kindly", "pls", "plz"})
    NEGATIVE_TERMS = frozenset({
        "block", "blocked", "suspend", "suspended", "freeze", "frozen",
        "terminated", "deactivated", "closed", "penalty", "arrest", "illegal",
        "fraud", "problem", "failed", "expired", "warning", "risk", "legal",
        "lose", "lost", "cancelled", "unauthorized", "danger", "violation",
        "compromised", "hacked", "seized",
    })
    PERSONAL_INFO_PATTERN = re.compile(
        r'\b(?:name|address|number|id|details|information|dob|date\s+of\s+birth)\b')
    # Abbreviations such as "rs. 500" are not sentence boundaries.
    SENTENCE_SPLIT = re.compile(r'[.!?]+\s+(?=[a-z])')
    WORD = re.compile(r"[a-z0-9']+")

    IMPERATIVE_WEIGHT = 0.15
    NEGATIVE_WEIGHT = 0.15
    PERSONAL_INFO_WEIGHT = 0.2
    CHOPPY_WEIGHT = 0.1
    SHORT_SENTENCE_WORDS = 5

    def sentences(self, text: str) -> List[List[str]]:
        parts = self.SENTENCE_SPLIT.split(text.strip())
        return [words for words in (self.WORD.findall(p) for p in parts) if words]

    def score(self, text: str, history: Sequence[Any] = ()) -> SignalScore:
        indicators: List[str] = []
        total = 0.0
        sentences = self.sentences(text)

        imperatives = 0
        for words in sentences:
            head = words[1:] if words[0] in self.POLITE_OPENERS else words
            if head and head[0] in self.COMMAND_VERBS:
                imperatives += 1
        if imperatives:
            total += imperatives * self.IMPERATIVE_WEIGHT
            indicators.append("imperative_commands")

        words = self.WORD.findall(text)
        if any(word in self.NEGATIVE_TERMS for word in words):
            total += self.NEGATIVE_WEIGHT
            indicators.append("negative_sentiment")

        if self.PERSONAL_INFO_PATTERN.search(text):
            total += self.PERSONAL_INFO_WEIGHT
            indicators.append("personal_info_request")

        short = [s for s in sentences if len(s) < self.SHORT_SENTENCE_WORDS]
        if len(short) > 1:
            total += self.CHOPPY_WEIGHT
            indicators.append("choppy_sentences")

        return SignalScore(clamp(total), indicators)


class ContextDetector:
    """Scores the conversation so far, not just the current message."""

    ESCALATION_TERMS = ("immediately", "now", "urgent", "last chance", "final warning")
    PRIOR_FLAG_WEIGHT = 0.1
    ESCALATION_WEIGHT = 0.2
    PERSISTENCE_WEIGHT = 0.1
    PERSISTENT_AFTER = 5

    def score(self, text: str, history: Sequence[Any] = ()) -> SignalScore:
        history = list(history or [])
        if not history:
            return SignalScore()

        indicators: List[str] = []
        total = 0.0

        flagged = sum(1 for entry in history if history_flagged(entry))
        if flagged:
            total += flagged * self.PRIOR_FLAG_WEIGHT
            indicators.append("previous_scam_context")

        combined = " ".join(history_text(entry) for entry in history) + " " + text
        combined = combined.lower()
        escalation = sum(
            1 for term in self.ESCALATION_TERMS
            if re.search(rf'\b{term}\b', combined)
        )
        if escalation > 2:
            total += self.ESCALATION_WEIGHT
            indicators.append("escalating_pressure")

        if len(history) > self.PERSISTENT_AFTER:
            total += self.PERSISTENCE_WEIGHT
            indicators.append("persistent_contact")

        return SignalScore(clamp(total), indicators)
