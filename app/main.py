import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from app.config import Settings
from app.jobs import JobStore
from app.processed import ProcessedCallCache
from app.routers.polling import router as polling_router
from app.scheduler import PollingScheduler
from app.services.call_sync import CallSyncService
from app.services.claude import ClaudeService
from app.services.elevenlabs import ElevenLabsService
from app.services.sentiment import SentimentService
from app.services.supabase import SupabaseService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    app.state.job_store = JobStore()
    app.state.scheduler = None

    async with httpx.AsyncClient(timeout=settings.request_timeout_seconds) as client:
        # Polling needs both the provider and the store (conditional, like sentiment)
        if settings.elevenlabs_api_key and settings.supabase_url and settings.supabase_service_key:
            elevenlabs = ElevenLabsService(
                client, settings.elevenlabs_api_key, settings.elevenlabs_agent_id
            )
            supabase = SupabaseService(
                client, settings.supabase_url, settings.supabase_service_key
            )

            sentiment: SentimentService | None = None
            if settings.anthropic_api_key:
                sentiment = SentimentService(ClaudeService(settings.anthropic_api_key), supabase)

            sync = CallSyncService(
                elevenlabs,
                supabase,
                sentiment,
                cache=ProcessedCallCache(
                    settings.processed_cache_max, settings.processed_cache_keep
                ),
                default_organization_id=settings.default_organization_id,
                page_size=settings.conversation_page_size,
                batch_size=settings.polling_batch_size,
                batch_pause=settings.polling_batch_pause_seconds,
                transcript_max_retries=settings.transcript_max_retries,
                transcript_retry_delay=settings.transcript_retry_delay_seconds,
            )
            app.state.scheduler = PollingScheduler(sync, settings.polling_interval_seconds)
            if settings.polling_enabled:
                app.state.scheduler.start()
        else:
            logger.warning("ElevenLabs or Supabase not configured, call polling disabled")

        try:
            yield
        finally:
            if app.state.scheduler is not None:
                await app.state.scheduler.shutdown()


app = FastAPI(title="Voter Call Sync", lifespan=lifespan)

app.include_router(polling_router)
