"""Builds and sends the final intelligence report to the evaluation collector.

A report is only sent for sessions that pass validation. Delivery is retried
a fixed number of times with a fixed delay; every attempt is bounded by the
request timeout. The dispatcher never raises: callers get a CallbackResult
and decide what to do with the session state."""

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

import requests
from dotenv import load_dotenv

from honeypot.memory import Session

load_dotenv()

logger = logging.getLogger(__name__)

CALLBACK_URL: str = os.getenv(
    "CALLBACK_URL",
    os.getenv("GUVI_CALLBACK_URL", "https://hackathon.guvi.in/api/updateHoneyPotFinalResult"),
)
CALLBACK_TIMEOUT: float = float(os.getenv("CALLBACK_TIMEOUT", "5"))
CALLBACK_MAX_RETRIES: int = int(os.getenv("CALLBACK_MAX_RETRIES", "3"))
CALLBACK_RETRY_DELAY: float = float(os.getenv("CALLBACK_RETRY_DELAY", "1"))

# Scammer phrasing -> tactic label used in agent notes
TACTIC_LABELS = [
    (("urgent", "immediately"), "urgency tactics"),
    (("block", "suspend"), "account threat"),
    (("verify", "confirm"), "verification fraud"),
    (("otp", "password", "pin"), "credential harvesting"),
    (("upi", "payment"), "payment redirection"),
    (("http", "www.", "click", "link"), "phishing link"),
    (("kyc",), "KYC fraud"),
    (("lottery", "prize", "winner"), "lottery scam"),
]


@dataclass
class CallbackResult:
    success: bool
    attempts: int = 0
    status_code: Optional[int] = None
    response: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = True
    validation_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            "success": self.success,
            "attempts": self.attempts,
            "statusCode": self.status_code,
        }
        if self.error:
            data["error"] = self.error
        if self.validation_errors:
            data["validationErrors"] = list(self.validation_errors)
        return data


def format_duration(seconds: float) -> str:
    seconds = max(int(seconds), 0)
    if seconds <= 0:
        return "brief period"
    if seconds < 60:
        return "seconds"
    minutes = seconds // 60
    if minutes >= 60:
        return f"{minutes // 60}h {minutes % 60}m"
    return f"{minutes} minutes"


def generate_agent_notes(session: Session) -> str:
    """One-paragraph summary of tactics, engagement length and yield."""
    text = " ".join(m.text.lower() for m in session.scammer_messages())
    tactics = [label for terms, label in TACTIC_LABELS if any(t in text for t in terms)]

    end = session.ended_at or session.last_activity
    duration = format_duration((end - session.created_at).total_seconds())
    count = session.intelligence.actionable_count()

    parts = [
        f"Scammer used {', '.join(tactics) or 'social engineering tactics'}.",
        f"Engagement lasted {session.message_count} messages over {duration}.",
    ]
    if count:
        parts.append(f"Extracted {count} pieces of actionable intelligence.")
    else:
        parts.append("Limited intelligence extracted.")
    return " ".join(parts)


def build_payload(session: Session) -> dict:
    intel = session.intelligence
    return {
        "sessionId": session.session_id,
        "scamDetected": bool(session.scam_detected),
        "totalMessagesExchanged": session.message_count,
        "extractedIntelligence": {
            "bankAccounts": list(intel.bank_accounts),
            "upiIds": list(intel.upi_ids),
            "phishingLinks": list(intel.phishing_links),
            "phoneNumbers": list(intel.phone_numbers),
            "suspiciousKeywords": list(intel.suspicious_keywords),
        },
        "agentNotes": generate_agent_notes(session),
    }


def validate_session(session: Optional[Session]) -> List[str]:
    errors = []
    if session is None or not session.session_id:
        errors.append("Session ID is required")
        return errors
    if not session.scam_detected:
        errors.append("Scam must be detected before sending callback")
    if session.message_count == 0:
        errors.append("Session must have at least one message")
    return errors


class CallbackDispatcher:
    """POSTs final reports with fixed-delay retries."""

    def __init__(
        self,
        url: str = CALLBACK_URL,
        timeout: float = CALLBACK_TIMEOUT,
        max_retries: int = CALLBACK_MAX_RETRIES,
        retry_delay: float = CALLBACK_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._sleep = sleep

    def send_validated_callback(self, session: Session) -> CallbackResult:
        errors = validate_session(session)
        if errors:
            sid = session.session_id[:8] if session is not None and session.session_id else "UNKNOWN"
            logger.warning(f"[{sid}] Callback validation failed: {'; '.join(errors)}")
            return CallbackResult(
                success=False,
                retryable=False,
                error="validation failed",
                validation_errors=errors,
            )
        return self.send_callback(build_payload(session))

    def send_callback(self, payload: dict) -> CallbackResult:
        """Send with up to max_retries attempts. Never raises."""
        short_id = str(payload.get("sessionId", ""))[:8]
        last = CallbackResult(success=False)

        for attempt in range(1, self.max_retries + 1):
            last = self._do_send(short_id, payload)
            last.attempts = attempt
            if last.success:
                return last

            logger.warning(
                f"[{short_id}] Callback failure attempt={attempt}/{self.max_retries} "
                f"timestamp={datetime.now(timezone.utc).isoformat()}"
            )
            if attempt < self.max_retries:
                logger.info(f"[{short_id}] Callback retry {attempt} in {self.retry_delay}s")
                self._sleep(self.retry_delay)

        logger.error(f"[{short_id}] Callback failed after {self.max_retries} attempts")
        return last

    def _do_send(self, short_id: str, payload: dict) -> CallbackResult:
        """Execute a single POST. Success is any 2xx."""
        try:
            logger.info(f"[{short_id}] Sending callback to {self.url}")
            response = requests.post(
                self.url,
                json=payload,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        except requests.exceptions.Timeout:
            logger.error(f"[{short_id}] Callback timed out after {self.timeout}s")
            return CallbackResult(success=False, error="timeout")
        except requests.exceptions.RequestException as exc:
            logger.error(f"[{short_id}] Callback network error: {exc}")
            return CallbackResult(success=False, error=str(exc))

        success = 200 <= response.status_code < 300
        if success:
            logger.info(f"[{short_id}] Callback accepted ({response.status_code})")
        else:
            logger.warning(
                f"[{short_id}] Callback rejected: "
                f"{response.status_code} {response.text[:200]}"
            )
        return CallbackResult(
            success=success,
            status_code=response.status_code,
            response=response.text[:500],
            error=None if success else f"HTTP {response.status_code}",
        )
