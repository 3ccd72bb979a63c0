import asyncio
import logging
from datetime import datetime, timezone

from app.mappers.call_status import map_call_status
from app.mappers.field_extraction import (
    client_value,
    extract_call_id,
    extract_client_data,
    extract_duration_seconds,
    extract_ended_at,
    extract_phone_number,
    extract_started_at,
)
from app.processed import ProcessedCallCache
from app.retry import retry_with_backoff
from app.schemas.calls import CallStatusInput, ProcessedCallRecord
from app.schemas.elevenlabs import ExternalConversation, TranscriptResult
from app.schemas.responses import CallOutcome, PollCycleResult
from app.services.elevenlabs import ElevenLabsService
from app.services.sentiment import SentimentService
from app.services.supabase import SupabaseService

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {
    "completed",
    "successful",
    "ended",
    "finished",
    "done",
    "failed",
    "no-answer",
    "no_answer",
    "busy",
    "cancelled",
}
TERMINAL_SUCCESS_FLAGS = {"success", "failed"}


def is_terminal(conversation: ExternalConversation) -> bool:
    flag = conversation.call_successful
    if isinstance(flag, str) and flag in TERMINAL_SUCCESS_FLAGS:
        return True
    return (conversation.status or "").lower() in TERMINAL_STATUSES


class CallSyncService:
    """One polling cycle: list, filter, process in batches, persist."""

    def __init__(
        self,
        elevenlabs: ElevenLabsService,
        calls: SupabaseService,
        sentiment: SentimentService | None = None,
        *,
        cache: ProcessedCallCache | None = None,
        default_organization_id: str,
        page_size: int = 100,
        batch_size: int = 3,
        batch_pause: float = 0.5,
        transcript_max_retries: int = 3,
        transcript_retry_delay: float = 2.0,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._elevenlabs = elevenlabs
        self._calls = calls
        self._sentiment = sentiment
        self.cache = cache if cache is not None else ProcessedCallCache()
        self._default_org_id = default_organization_id
        self._page_size = page_size
        self._batch_size = batch_size
        self._batch_pause = batch_pause
        self._transcript_max_retries = transcript_max_retries
        self._transcript_retry_delay = transcript_retry_delay

    def is_eligible(self, conversation: ExternalConversation) -> bool:
        call_id = extract_call_id(conversation.raw)
        if call_id is not None and call_id in self.cache:
            logger.debug("Skipping %s: already processed", call_id)
            return False
        if not is_terminal(conversation):
            logger.debug(
                "Skipping %s: status=%r call_successful=%r (not finished)",
                call_id,
                conversation.status,
                conversation.call_successful,
            )
            return False
        return True

    async def poll_completed_calls(self) -> PollCycleResult:
        result = PollCycleResult(started_at=datetime.now(timezone.utc))
        logger.info("Checking for completed calls")

        try:
            conversations = await self._elevenlabs.list_conversations(self._page_size, 0)
        except Exception as exc:
            logger.exception("Failed to list conversations, aborting cycle")
            result.error = str(exc) or type(exc).__name__
            result.finished_at = datetime.now(timezone.utc)
            return result

        result.fetched = len(conversations)
        eligible = [c for c in conversations if self.is_eligible(c)]
        result.eligible = len(eligible)
        logger.info(
            "Found %d conversations, %d new completed calls",
            result.fetched,
            result.eligible,
        )

        total_batches = -(-len(eligible) // self._batch_size)
        for start in range(0, len(eligible), self._batch_size):
            batch = eligible[start:start + self._batch_size]
            logger.info(
                "Processing batch %d/%d (%d calls)",
                start // self._batch_size + 1,
                total_batches,
                len(batch),
            )
            outcomes = await asyncio.gather(
                *(self.process_completed_call(c) for c in batch),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if outcome == CallOutcome.processed:
                    result.processed += 1
                elif outcome == CallOutcome.skipped:
                    result.skipped += 1
                else:
                    if isinstance(outcome, BaseException):
                        logger.error("Unhandled error in batch: %s", outcome)
                    result.failed += 1

            if start + self._batch_size < len(eligible):
                await asyncio.sleep(self._batch_pause)

        result.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Polling cycle done: processed=%d skipped=%d failed=%d",
            result.processed,
            result.skipped,
            result.failed,
        )
        return result

    async def process_completed_call(self, conversation: ExternalConversation) -> CallOutcome:
        raw = conversation.raw
        call_id = extract_call_id(raw)
        if not call_id:
            logger.warning("Conversation without an id, skipping: %s", raw)
            return CallOutcome.skipped

        try:
            return await self._process(call_id, conversation, raw)
        except Exception:
            # Not cached, so the next cycle retries it
            logger.exception("Error processing call %s", call_id)
            return CallOutcome.failed

    async def _process(
        self, call_id: str, conversation: ExternalConversation, raw: dict
    ) -> CallOutcome:
        existing = await self._calls.get_call_by_external_id(call_id)
        if existing and existing.transcript_fetched_at:
            logger.info("Call %s already fetched, skipping", call_id)
            self.cache.add(call_id)
            return CallOutcome.skipped

        transcript_data = await self._fetch_transcript(call_id)
        transcript = transcript_data.transcript
        has_transcript = bool(transcript)

        client_data = extract_client_data(raw)
        organization_id = client_value(client_data, "organization_id") or self._default_org_id

        mapped = map_call_status(CallStatusInput.from_conversation(conversation), has_transcript)
        logger.info(
            "Call %s mapped to %s%s",
            call_id,
            mapped.db_status.value,
            f" ({mapped.error_message})" if mapped.error_message else "",
        )

        now = datetime.now(timezone.utc)
        record = ProcessedCallRecord(
            organization_id=organization_id,
            call_id=call_id,
            phone_number=extract_phone_number(raw),
            voter_name=client_value(client_data, "voter_name"),
            status=mapped.db_status,
            duration_seconds=transcript_data.duration_seconds or extract_duration_seconds(raw) or 0,
            call_started_at=extract_started_at(raw, now),
            call_ended_at=extract_ended_at(raw, now),
            transcript=transcript or None,
            transcript_fetched_at=now,
            elevenlabs_agent_id=conversation.agent_id,
            elevenlabs_metadata=raw,
            error_message=mapped.error_message,
            created_by=client_value(client_data, "created_by") or client_value(client_data, "user_id"),
        )

        saved = await self._calls.create_call(record)
        if saved is None or saved.id is None:
            logger.error("Failed to save call %s", call_id)
            return CallOutcome.failed

        if has_transcript and self._sentiment is not None:
            try:
                analysis = await self._sentiment.analyze(transcript, call_id)
                saved_analysis = await self._sentiment.save_analysis(
                    saved.id, organization_id, analysis, self._sentiment.model_name
                )
            except Exception as exc:
                # The stored row has transcript_fetched_at, later cycles skip it
                logger.error("Call %s stored without sentiment analysis: %s", call_id, exc)
                raise
            if saved_analysis:
                logger.info("Sentiment analysis saved for call %s", call_id)
        elif has_transcript:
            logger.info("Sentiment analysis not configured, skipping call %s", call_id)

        self.cache.add(call_id)
        logger.info("Processed call %s", call_id)
        return CallOutcome.processed

    async def _fetch_transcript(self, call_id: str) -> TranscriptResult:
        try:
            return await retry_with_backoff(
                lambda: self._elevenlabs.get_transcript(call_id),
                self._transcript_max_retries,
                self._transcript_retry_delay,
            )
        except Exception as exc:
            logger.warning("No transcript for call %s after retries: %s", call_id, exc)
            return TranscriptResult()
