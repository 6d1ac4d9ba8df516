"""Thread-safe in-memory session store and conversation lifecycle.

Each session holds the ordered message log, the scam/engagement flags, the
merged intelligence and the callback state. The table lock only guards
insert/lookup/delete; mutation of a session happens under that session's
own lock, so different conversations never wait on each other.

Sessions are purged by one periodic sweep: idle ones after 30 minutes,
closed ones after a one-hour grace period. Nothing is persisted.
"""

import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from honeypot.extractor import Intelligence

load_dotenv()

logger = logging.getLogger(__name__)

SESSION_IDLE_TIMEOUT_SECONDS: int = int(os.getenv("SESSION_IDLE_TIMEOUT_SECONDS", "1800"))
SESSION_CLOSE_GRACE_SECONDS: int = int(os.getenv("SESSION_CLOSE_GRACE_SECONDS", "3600"))
CLEANUP_INTERVAL_SECONDS: int = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "300"))
MAX_SESSIONS: int = int(os.getenv("MAX_SESSIONS", "10000"))

# Termination caps
MAX_MESSAGES: int = 20
EARLY_END_MESSAGES: int = 8
IDLE_END_SECONDS: int = 1800


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_sender(sender: Optional[str]) -> str:
    return "scammer" if (sender or "scammer").lower() == "scammer" else "operator"


class SessionNotFoundError(LookupError):
    """Raised when an operation names a session the store does not hold."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


@dataclass(frozen=True)
class Message:
    sender: str
    text: str
    timestamp: str = ""
    received_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "sender": self.sender,
            "text": self.text,
            "timestamp": self.timestamp,
            "receivedAt": self.received_at.isoformat(),
        }


@dataclass
class Session:
    """Aggregate root for one conversation."""
    session_id: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    messages: List[Message] = field(default_factory=list)
    is_agent_active: bool = False
    scam_detected: bool = False
    intelligence: Intelligence = field(default_factory=Intelligence)
    created_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    callback_sent: bool = False
    callback_attempts: int = 0
    callback_in_flight: bool = False
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def message_count(self) -> int:
        return len(self.messages)

    @property
    def is_closed(self) -> bool:
        return self.ended_at is not None

    def add_message(self, sender: str, text: str, timestamp: str = "",
                    now: Optional[datetime] = None) -> Message:
        now = now or utcnow()
        message = Message(normalize_sender(sender), text, str(timestamp or ""), now)
        self.messages.append(message)
        self.last_activity = now
        return message

    def scammer_messages(self) -> List[Message]:
        return [m for m in self.messages if m.sender == "scammer"]

    def activate_agent(self) -> bool:
        """Flip dormant -> engaging. Returns True only on the first call."""
        if self.is_agent_active:
            return False
        self.is_agent_active = True
        self.scam_detected = True
        return True

    def merge_intelligence(self, intel: Intelligence) -> None:
        self.intelligence = self.intelligence.merge(intel)

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "isAgentActive": self.is_agent_active,
            "messageCount": self.message_count,
            "scamDetected": self.scam_detected,
            "intelligence": self.intelligence.to_dict(),
            "metadata": dict(self.metadata),
            "createdAt": self.created_at.isoformat(),
            "lastActivity": self.last_activity.isoformat(),
            "endedAt": self.ended_at.isoformat() if self.ended_at else None,
            "callbackSent": self.callback_sent,
        }


def should_end_conversation(session: Session, idle_seconds: float = 0.0) -> bool:
    """Termination rule for an engaged conversation.

    idle_seconds is the gap between the previous activity and this turn.
    """
    count = session.message_count
    if count >= MAX_MESSAGES:
        return True

    intel = session.intelligence
    has_good_intel = bool(
        intel.bank_accounts
        or intel.upi_ids
        or intel.phishing_links
        or len(intel.phone_numbers) > 1
    )
    if has_good_intel and count >= EARLY_END_MESSAGES:
        return True

    return idle_seconds > IDLE_END_SECONDS


class SessionStore:
    """Per-session state with a table lock and per-entry locks."""

    def __init__(
        self,
        idle_timeout: int = SESSION_IDLE_TIMEOUT_SECONDS,
        close_grace: int = SESSION_CLOSE_GRACE_SECONDS,
        max_sessions: int = MAX_SESSIONS,
        clock: Callable[[], datetime] = utcnow,
        on_purge: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self.idle_timeout = idle_timeout
        self.close_grace = close_grace
        self.max_sessions = max_sessions
        self._clock = clock
        self.on_purge = on_purge

    def now(self) -> datetime:
        return self._clock()

    def get_or_create(
        self,
        session_id: str,
        metadata: Optional[Mapping[str, Any]] = None,
        history: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> Tuple[Session, bool]:
        """Fetch the session, creating it (seeded with history) if unseen."""
        purged: List[str] = []
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                return session, False

            now = self._clock()
            if len(self._sessions) >= self.max_sessions:
                purged = self._purge_locked(now)
                if len(self._sessions) >= self.max_sessions:
                    oldest = min(self._sessions.values(), key=lambda s: s.last_activity)
                    del self._sessions[oldest.session_id]
                    purged.append(oldest.session_id)
                    logger.warning(f"[{oldest.session_id[:8]}] Evicted, session table full")

            session = Session(
                session_id=session_id,
                metadata=dict(metadata or {}),
                created_at=now,
                last_activity=now,
            )
            for entry in history or []:
                text = entry.get("text")
                if text:
                    session.add_message(entry.get("sender"), text, entry.get("timestamp") or "", now)
            self._sessions[session_id] = session

        self._notify_purged(purged)
        logger.info(f"[{session_id[:8]}] Created session seeded_messages={session.message_count}")
        return session, True

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    @contextmanager
    def locked(self, session_id: str) -> Iterator[Session]:
        """Hold the session's own lock for a read-modify-write."""
        session = self.require(session_id)
        with session.lock:
            yield session

    def close_session(self, session_id: str) -> Session:
        """Mark ended; the sweep purges it once the grace period passes."""
        session = self.require(session_id)
        with session.lock:
            if session.ended_at is None:
                session.ended_at = self._clock()
                logger.info(f"[{session_id[:8]}] Session closed messages={session.message_count}")
        return session

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info(f"[{session_id[:8]}] Session deleted")
            self._notify_purged([session_id])
        return removed

    def cleanup_expired(self) -> int:
        """One sweep over the table. Returns the number of sessions purged."""
        with self._lock:
            purged = self._purge_locked(self._clock())
        self._notify_purged(purged)
        if purged:
            logger.info(f"Session sweep purged {len(purged)} sessions, {self.session_count()} remain")
        return len(purged)

    def _purge_locked(self, now: datetime) -> List[str]:
        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
        for sid in expired:
            del self._sessions[sid]
        return expired

    def _is_expired(self, session: Session, now: datetime) -> bool:
        if session.ended_at is not None:
            return (now - session.ended_at).total_seconds() > self.close_grace
        return (now - session.last_activity).total_seconds() > self.idle_timeout

    def _notify_purged(self, session_ids: List[str]) -> None:
        if not self.on_purge:
            return
        for sid in session_ids:
            try:
                self.on_purge(sid)
            except Exception as e:
                logger.error(f"[{sid[:8]}] Purge hook failed: {e}")

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def all_sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def get_active_sessions(self) -> List[dict]:
        return [s.to_dict() for s in self.all_sessions() if s.ended_at is None]

    def get_statistics(self) -> dict:
        sessions = self.all_sessions()
        total_messages = sum(s.message_count for s in sessions)
        average = total_messages / len(sessions) if sessions else 0.0
        return {
            "total": len(sessions),
            "active": sum(1 for s in sessions if s.ended_at is None),
            "ended": sum(1 for s in sessions if s.ended_at is not None),
            "scamDetected": sum(1 for s in sessions if s.scam_detected),
            "agentActive": sum(1 for s in sessions if s.is_agent_active),
            "callbacksSent": sum(1 for s in sessions if s.callback_sent),
            "totalMessages": total_messages,
            "averageMessagesPerSession": round(average, 2),
            "timestamp": self._clock().isoformat(),
        }


class PeriodicSweeper:
    """Daemon thread calling fn every interval seconds until stopped."""

    def __init__(self, name: str, interval: float, fn: Callable[[], Any]) -> None:
        self.name = name
        self.interval = interval
        self._fn = fn
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"Sweeper {self.name} started interval={self.interval}s")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self._fn()
            except Exception as e:
                logger.error(f"Sweeper {self.name} failed: {e}", exc_info=True)
