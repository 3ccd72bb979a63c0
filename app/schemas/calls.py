from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from app.schemas.elevenlabs import ExternalConversation


class CallStatus(StrEnum):
    completed = "completed"
    no_answer = "no_answer"
    busy = "busy"
    failed = "failed"
    cancelled = "cancelled"


class CallStatusInput(BaseModel):
    status: str | None = None
    call_successful: str | bool | None = None  # "success" | "failed" | bool
    error_message: str | None = None
    metadata: dict | None = None

    @classmethod
    def from_conversation(cls, conversation: ExternalConversation) -> CallStatusInput:
        return cls(
            status=conversation.status,
            call_successful=conversation.call_successful,
            error_message=conversation.error_message,
            metadata=conversation.metadata or conversation.conversation_initiation_client_data,
        )


class MappedCallStatus(BaseModel):
    db_status: CallStatus
    error_message: str | None = None


class ProcessedCallRecord(BaseModel):
    id: str | None = None
    organization_id: str
    call_id: str
    phone_number: str | None = "unknown"
    voter_name: str | None = None
    status: CallStatus
    duration_seconds: int | None = 0
    call_started_at: datetime
    call_ended_at: datetime
    transcript: str | None = None
    transcript_fetched_at: datetime | None = None
    elevenlabs_agent_id: str | None = None
    elevenlabs_metadata: dict | None = None
    error_message: str | None = None
    created_by: str | None = None


class SentimentAnalysis(BaseModel):
    sentiment: str = "neutral"  # positive | neutral | negative
    sentiment_score: float = Field(default=0.5, ge=0.0, le=1.0)
    key_issues: list[str] = []
    summary: str | None = None
    language: str | None = None


class SentimentAnalysisRecord(BaseModel):
    id: str | None = None
    call_id: str  # voter_calls.id
    organization_id: str
    sentiment: str
    sentiment_score: float
    key_issues: list[str] = []
    summary: str | None = None
    language: str | None = None
    model_used: str
