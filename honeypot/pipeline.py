"""Turn processing: session -> detection -> engagement -> extraction -> callback.

Each stage is guarded on its own so one failing component degrades to a
safe default instead of failing the whole turn. Callback delivery runs
outside the session lock; the in-flight flag keeps a second turn of the
same session from starting a parallel delivery."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from honeypot.agent import ConversationAgent
from honeypot.callback import CallbackDispatcher, CallbackResult, build_payload, validate_session
from honeypot.detector import DetectionResult, Intent, ScamDetector
from honeypot.extractor import IntelligenceExtractor, format_for_report
from honeypot.memory import (
    CLEANUP_INTERVAL_SECONDS,
    PeriodicSweeper,
    Session,
    SessionStore,
    should_end_conversation,
)

logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    session_id: str
    reply: Optional[str]
    detection: DetectionResult
    agent_active: bool
    ended: bool = False
    callback: Optional[CallbackResult] = None


class HoneypotPipeline:
    """Owns the components and the session lifecycle around them."""

    def __init__(
        self,
        detector: Optional[ScamDetector] = None,
        agent: Optional[ConversationAgent] = None,
        extractor: Optional[IntelligenceExtractor] = None,
        store: Optional[SessionStore] = None,
        dispatcher: Optional[CallbackDispatcher] = None,
        sweep_interval: float = CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        self.detector = detector or ScamDetector()
        self.agent = agent or ConversationAgent()
        self.extractor = extractor or IntelligenceExtractor()
        self.store = store or SessionStore()
        if self.store.on_purge is None:
            self.store.on_purge = self.agent.clear_context
        self.dispatcher = dispatcher or CallbackDispatcher()
        self._sweepers = [
            PeriodicSweeper("session-sweeper", sweep_interval, self.store.cleanup_expired),
            PeriodicSweeper("context-sweeper", sweep_interval, self.agent.cleanup_expired),
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        for sweeper in self._sweepers:
            sweeper.start()

    def stop(self) -> None:
        for sweeper in self._sweepers:
            sweeper.stop()

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def process_message(
        self,
        session_id: str,
        text: str,
        sender: str = "scammer",
        timestamp: Any = "",
        history: Optional[Iterable[Mapping[str, Any]]] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> TurnResult:
        """Process one inbound message for a session."""
        short_id = session_id[:8]
        history = [dict(entry) for entry in history or []]
        logger.info(f"[{short_id}] REQUEST msg_len={len(text or '')} history_len={len(history)}")

        session, created = self.store.get_or_create(session_id, metadata, history)
        payload = None

        with session.lock:
            now = self.store.now()
            idle_seconds = 0.0 if created else (now - session.last_activity).total_seconds()
            session.add_message(sender, text, timestamp, now)

            # 1. Detection
            try:
                detection = self.detector.analyze(text, history)
            except Exception as e:
                logger.error(f"[{short_id}] Detection error: {e}", exc_info=True)
                detection = DetectionResult(False, 0.0, Intent.ERROR, ["analysis_failed"])

            if detection.is_scam and session.activate_agent():
                logger.info(f"[{short_id}] SCAM CONFIRMED confidence={detection.confidence:.4f} "
                            f"intent={detection.intent.value}")

            if not session.is_agent_active:
                logger.info(f"[{short_id}] DORMANT confidence={detection.confidence:.4f}")
                return TurnResult(session_id, None, detection, agent_active=False)

            # 2. Persona reply
            try:
                reply = self.agent.generate_response(
                    session_id, text, detection, session.metadata).reply
            except Exception as e:
                logger.error(f"[{short_id}] Reply generation error: {e}", exc_info=True)
                reply = self.agent.fallback_reply().reply
            session.add_message("operator", reply, now=now)

            # 3. Intelligence over the full log
            try:
                session.merge_intelligence(self.extractor.extract(session.messages))
            except Exception as e:
                logger.error(f"[{short_id}] Intelligence extraction error: {e}", exc_info=True)

            # 4. Termination, evaluated once per session
            ended = False
            try:
                if not session.is_closed and should_end_conversation(session, idle_seconds):
                    session.ended_at = now
                    ended = True
                    logger.info(f"[{short_id}] Conversation ended messages={session.message_count} "
                                f"risk={session.intelligence.risk_score}")
                    payload = self._claim_callback(session)
            except Exception as e:
                logger.error(f"[{short_id}] Finalization error: {e}", exc_info=True)

        result = TurnResult(session_id, reply, detection, agent_active=True, ended=ended)
        if isinstance(payload, dict):
            result.callback = self._deliver(session, payload)
        elif isinstance(payload, CallbackResult):
            result.callback = payload
        return result

    def analyze_batch(self, items: Sequence[Tuple[Any, Any]]) -> List[Tuple[Any, DetectionResult]]:
        """Score (id, text) pairs independently; no session side effects."""
        results = self.detector.analyze_batch([text for _, text in items])
        return [(item_id, result) for (item_id, _), result in zip(items, results)]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_session_status(self, session_id: str) -> dict:
        with self.store.locked(session_id) as session:
            status = session.to_dict()
            status["intelligence"] = format_for_report(session.intelligence)
            return status

    def end_session(self, session_id: str) -> Tuple[Session, CallbackResult]:
        """Operator-initiated end: close, then report unless already delivered."""
        session = self.store.close_session(session_id)
        with session.lock:
            if session.callback_sent:
                logger.info(f"[{session_id[:8]}] Callback already delivered, not resending")
                return session, CallbackResult(success=True, retryable=False)
            if session.callback_in_flight:
                return session, CallbackResult(success=False, error="callback already in progress")
            payload = self._claim_callback(session)

        if isinstance(payload, CallbackResult):
            return session, payload
        return session, self._deliver(session, payload)

    def get_statistics(self) -> dict:
        stats = self.store.get_statistics()
        stats["conversationContexts"] = self.agent.context_count()
        return stats

    # ------------------------------------------------------------------
    # Callback helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _claim_callback(session: Session):
        """Under the session lock: a payload to send, or why not to send."""
        if session.callback_sent:
            return None
        if session.callback_in_flight:
            return None
        errors = validate_session(session)
        if errors:
            logger.warning(f"[{session.session_id[:8]}] Callback validation failed: {'; '.join(errors)}")
            return CallbackResult(
                success=False,
                retryable=False,
                error="validation failed",
                validation_errors=errors,
            )
        session.callback_in_flight = True
        return build_payload(session)

    def _deliver(self, session: Session, payload: Dict[str, Any]) -> CallbackResult:
        try:
            result = self.dispatcher.send_callback(payload)
        except Exception as e:
            logger.error(f"[{session.session_id[:8]}] Callback dispatch error: {e}", exc_info=True)
            result = CallbackResult(success=False, error=str(e))

        with session.lock:
            session.callback_in_flight = False
            session.callback_attempts += result.attempts
            if result.success:
                session.callback_sent = True
        return result
