"""FastAPI entry point. Exposes the honeypot pipeline over HTTP:
message processing, session status, explicit session end, statistics,
batch scoring and a health check."""

import logging
import os
import time
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from honeypot import __version__
from honeypot.auth import verify_api_key
from honeypot.memory import SessionNotFoundError
from honeypot.models import (
    BatchRequest,
    BatchResponse,
    BatchResult,
    EndSessionResponse,
    ProcessMessageRequest,
    ProcessMessageResponse,
    SessionResponse,
    StatisticsResponse,
)
from honeypot.pipeline import HoneypotPipeline

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

PORT: int = int(os.getenv("PORT", "8000"))
API_PREFIX = "/api/v1"
DORMANT_MESSAGE = "No scam detected - message can be passed through"

_started_at = time.monotonic()
pipeline = HoneypotPipeline()

app = FastAPI(
    title="Agentic Honey-Pot API",
    description="Scam detection, persona engagement and intelligence extraction",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_pipeline() -> HoneypotPipeline:
    return pipeline


@app.on_event("startup")
async def _on_startup() -> None:
    pipeline.start()
    logger.info(f"Agentic Honey-Pot API v{__version__} started | Docs: /docs | Health: GET /health")


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    pipeline.stop()
    logger.info("Agentic Honey-Pot API stopped")


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.error(f"422 VALIDATION ERROR | {request.url.path} | {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"status": "error", "detail": exc.errors(), "message": "Invalid request payload."},
    )


@app.exception_handler(SessionNotFoundError)
async def _session_not_found_handler(request: Request, exc: SessionNotFoundError) -> JSONResponse:
    logger.warning(f"404 | {request.url.path} | session={exc.session_id[:8]}")
    return JSONResponse(status_code=404, content={"status": "error", "message": "Session not found"})


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"status": "error", "message": "Internal server error"})


@app.get("/health")
async def health_check() -> dict:
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
    }


@app.post(f"{API_PREFIX}/process-message", response_model=ProcessMessageResponse)
def process_message(
    request: ProcessMessageRequest,
    api_key: str = Depends(verify_api_key),
    honeypot: HoneypotPipeline = Depends(get_pipeline),
) -> ProcessMessageResponse:
    """Run one inbound message through detection, engagement and extraction.

    While the session is dormant the reply is null and the message can be
    delivered to the real recipient.
    """
    metadata = request.metadata.model_dump() if request.metadata else {}
    turn = honeypot.process_message(
        session_id=request.sessionId,
        text=request.message.text,
        sender=request.message.sender,
        timestamp=request.message.timestamp or "",
        history=[entry.model_dump() for entry in request.conversationHistory],
        metadata=metadata,
    )

    if turn.agent_active:
        return ProcessMessageResponse(
            status="success",
            reply=turn.reply,
            scamDetected=True,
            confidence=turn.detection.confidence,
            intent=turn.detection.intent.value,
        )
    return ProcessMessageResponse(
        status="success",
        reply=None,
        scamDetected=False,
        confidence=turn.detection.confidence,
        intent=turn.detection.intent.value,
        message=DORMANT_MESSAGE,
    )


@app.get(f"{API_PREFIX}/session/{{session_id}}", response_model=SessionResponse)
def get_session(
    session_id: str,
    api_key: str = Depends(verify_api_key),
    honeypot: HoneypotPipeline = Depends(get_pipeline),
) -> SessionResponse:
    return SessionResponse(session=honeypot.get_session_status(session_id))


@app.post(f"{API_PREFIX}/session/{{session_id}}/end", response_model=EndSessionResponse)
def end_session(
    session_id: str,
    api_key: str = Depends(verify_api_key),
    honeypot: HoneypotPipeline = Depends(get_pipeline),
) -> EndSessionResponse:
    _, result = honeypot.end_session(session_id)
    message = "Session ended and callback sent" if result.success else "Session ended, callback not delivered"
    return EndSessionResponse(message=message, callbackResult=result.to_dict())


@app.get(f"{API_PREFIX}/statistics", response_model=StatisticsResponse)
def statistics(
    api_key: str = Depends(verify_api_key),
    honeypot: HoneypotPipeline = Depends(get_pipeline),
) -> StatisticsResponse:
    return StatisticsResponse(statistics=honeypot.get_statistics())


@app.post(f"{API_PREFIX}/batch-process", response_model=BatchResponse)
def batch_process(
    request: BatchRequest,
    api_key: str = Depends(verify_api_key),
    honeypot: HoneypotPipeline = Depends(get_pipeline),
):
    if not request.messages:
        return JSONResponse(
            status_code=400,
            content={"status": "error", "message": "Messages array is required"},
        )

    scored = honeypot.analyze_batch([(msg.id, msg.text) for msg in request.messages])
    return BatchResponse(results=[
        BatchResult(
            messageId=message_id,
            scamDetected=result.is_scam,
            confidence=result.confidence,
            intent=result.intent.value,
        )
        for message_id, result in scored
    ])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
