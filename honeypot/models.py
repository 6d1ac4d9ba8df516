"""Wire schemas for the /api/v1 routes. Field names stay camelCase to
match the JSON contract."""

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Any, Dict, List, Optional, Union


class Message(BaseModel):
    """One inbound message. Epoch timestamps are accepted and stored as text."""

    model_config = ConfigDict(extra="ignore")

    sender: Optional[str] = Field(default="scammer")
    text: str = Field(..., min_length=1, max_length=5000)
    timestamp: Optional[Union[str, int]] = Field(default=None)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp_as_text(cls, value):
        if isinstance(value, (int, float)):
            return f"{int(value)}"
        return value


class HistoryMessage(Message):
    """Prior message; may carry the scam flag from an earlier turn."""

    text: str = Field(default="", max_length=5000)
    scamDetected: Optional[bool] = Field(default=None)


class Metadata(BaseModel):
    """Channel and locale hints. Stored on the session, not used for scoring."""

    model_config = ConfigDict(extra="ignore")

    channel: str = Field(default="SMS")
    language: str = Field(default="English")
    locale: str = Field(default="IN")


class ProcessMessageRequest(BaseModel):
    """Incoming payload on POST /api/v1/process-message."""

    model_config = ConfigDict(extra="ignore")

    sessionId: str = Field(..., min_length=3, max_length=100)
    message: Message = Field(...)
    conversationHistory: List[HistoryMessage] = Field(default_factory=list)
    metadata: Optional[Metadata] = Field(default=None)


class ProcessMessageResponse(BaseModel):
    status: str = Field(...)
    reply: Optional[str] = Field(default=None)
    scamDetected: bool = Field(default=False)
    confidence: float = Field(default=0.0)
    intent: Optional[str] = Field(default=None)
    message: Optional[str] = Field(default=None)


class SessionResponse(BaseModel):
    status: str = "success"
    session: Dict[str, Any] = Field(default_factory=dict)


class EndSessionResponse(BaseModel):
    status: str = "success"
    message: str = ""
    callbackResult: Dict[str, Any] = Field(default_factory=dict)


class StatisticsResponse(BaseModel):
    status: str = "success"
    statistics: Dict[str, Any] = Field(default_factory=dict)


class BatchMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[str, int]] = Field(default=None)
    text: str = Field(default="", max_length=5000)


class BatchRequest(BaseModel):
    messages: List[BatchMessage] = Field(default_factory=list)


class BatchResult(BaseModel):
    messageId: Optional[Union[str, int]] = None
    scamDetected: bool = False
    confidence: float = 0.0
    intent: str = "suspicious"


class BatchResponse(BaseModel):
    status: str = "success"
    results: List[BatchResult] = Field(default_factory=list)
