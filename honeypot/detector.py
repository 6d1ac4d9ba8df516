"""
Score combiner and intent classifier.

Runs the four signal detectors over a message, blends their scores with
fixed weights, and labels the scam archetype. Confidence >= 0.65 marks a
scam. Bad input and internal failures degrade to a neutral, non-scam result
rather than raising.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from honeypot.classifier import StatisticalDetector
from honeypot.signals import ContextDetector, LinguisticDetector, PatternDetector

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    BANKING_FRAUD = "banking_fraud"
    UPI_FRAUD = "upi_fraud"
    PHISHING = "phishing"
    LOTTERY_SCAM = "lottery_scam"
    JOB_SCAM = "job_scam"
    KYC_FRAUD = "kyc_fraud"
    SUSPICIOUS = "suspicious"
    INVALID_INPUT = "invalid_input"
    ERROR = "error"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class DetectionResult:
    """Outcome of analysing one message."""
    is_scam: bool
    confidence: float
    intent: Intent
    indicators: List[str] = field(default_factory=list)
    signals: Dict[str, float] = field(default_factory=dict)
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict:
        return {
            "isScam": self.is_scam,
            "confidence": self.confidence,
            "intent": self.intent.value,
            "indicators": list(self.indicators),
            "timestamp": self.timestamp,
        }


class ScamDetector:
    """Weighted blend of pattern, linguistic, statistical and context signals."""

    SCAM_THRESHOLD: float = 0.65
    WEIGHTS: Dict[str, float] = {
        "pattern": 0.35,
        "linguistic": 0.25,
        "statistical": 0.25,
        "context": 0.15,
    }

    # Checked in order, first match wins. Each rule is a tuple of term groups;
    # every group needs at least one of its terms present as a substring.
    INTENT_RULES: List[Tuple[Intent, Tuple[Tuple[str, ...], ...]]] = [
        (Intent.BANKING_FRAUD, (("bank",), ("block", "suspend"))),
        (Intent.UPI_FRAUD, (("upi", "payment"),)),
        (Intent.PHISHING, (("otp", "password", "pin"),)),
        (Intent.LOTTERY_SCAM, (("win", "prize", "lottery"),)),
        (Intent.JOB_SCAM, (("job", "employment", "work from home"),)),
        (Intent.KYC_FRAUD, (("kyc", "verify", "update"),)),
    ]

    def __init__(
        self,
        pattern: Optional[PatternDetector] = None,
        linguistic: Optional[LinguisticDetector] = None,
        statistical: Optional[StatisticalDetector] = None,
        context: Optional[ContextDetector] = None,
    ) -> None:
        self._detectors = {
            "pattern": pattern or PatternDetector(),
            "linguistic": linguistic or LinguisticDetector(),
            "statistical": statistical or StatisticalDetector(),
            "context": context or ContextDetector(),
        }

    @property
    def statistical(self) -> StatisticalDetector:
        return self._detectors["statistical"]

    def analyze(self, text: Any, history: Optional[Sequence[Any]] = None) -> DetectionResult:
        if not isinstance(text, str) or not text.strip():
            return self._neutral(Intent.INVALID_INPUT)

        try:
            normalized = text.lower().strip()
            history = list(history or [])

            weighted = 0.0
            indicators: List[str] = []
            signals: Dict[str, float] = {}
            for name, detector in self._detectors.items():
                result = detector.score(normalized, history)
                signals[name] = result.score
                weighted += result.score * self.WEIGHTS[name]
                for indicator in result.indicators:
                    if indicator not in indicators:
                        indicators.append(indicator)

            # Threshold applies to the reported value
            confidence = round(min(weighted, 1.0), 4)
            is_scam = confidence >= self.SCAM_THRESHOLD
            intent = self.classify_intent(normalized, indicators)

            logger.debug(
                f"Analysis score={confidence:.4f} scam={is_scam} intent={intent.value} "
                f"indicators={indicators}"
            )
            return DetectionResult(
                is_scam=is_scam,
                confidence=confidence,
                intent=intent,
                indicators=indicators,
                signals=signals,
            )
        except Exception as e:
            logger.error(f"Scam analysis failed: {e}", exc_info=True)
            return self._neutral(Intent.ERROR, ["analysis_failed"])

    def analyze_batch(self, texts: Sequence[Any]) -> List[DetectionResult]:
        """Independent, history-free analysis of each text."""
        return [self.analyze(text) for text in texts]

    def classify_intent(self, text: str, indicators: Sequence[str] = ()) -> Intent:
        text = text.lower()
        for intent, groups in self.INTENT_RULES:
            if all(any(term in text for term in group) for group in groups):
                return intent
        if "suspicious_urls" in indicators:
            return Intent.PHISHING
        return Intent.SUSPICIOUS

    @staticmethod
    def _neutral(intent: Intent, indicators: Optional[List[str]] = None) -> DetectionResult:
        return DetectionResult(
            is_scam=False,
            confidence=0.0,
            intent=intent,
            indicators=indicators or [],
        )
