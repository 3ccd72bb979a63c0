from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class CallOutcome(StrEnum):
    processed = "processed"
    skipped = "skipped"
    failed = "failed"


class PollCycleResult(BaseModel):
    started_at: datetime
    finished_at: datetime | None = None
    fetched: int = 0
    eligible: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    error: str | None = None  # set when listing conversations failed


class PollingStatus(BaseModel):
    is_running: bool
    last_poll_time: datetime | None = None
    polling_interval_seconds: float
    processed_calls_count: int
    cycle_in_progress: bool = False


class IntervalRequest(BaseModel):
    interval_seconds: float


class JobSubmittedResponse(BaseModel):
    job_id: str
    status: str
    message: str


class JobStatusResponse(BaseModel):
    job_id: str
    status: str
    created_at: datetime
    finished_at: datetime | None = None
    result: PollCycleResult | None = None
    error: str | None = None
