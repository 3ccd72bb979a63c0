import logging

import httpx

from app.exceptions.custom import RateLimitError, SupabaseError
from app.schemas.calls import ProcessedCallRecord, SentimentAnalysisRecord

logger = logging.getLogger(__name__)

CALLS_TABLE = "voter_calls"
SENTIMENT_TABLE = "call_sentiment_analysis"


class SupabaseService:
    """Service-role access to the PostgREST API (bypasses row-level security)."""

    def __init__(self, client: httpx.AsyncClient, url: str, service_key: str):
        self._client = client
        self._rest_url = f"{url.rstrip('/')}/rest/v1"
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    def _table_url(self, table: str) -> str:
        return f"{self._rest_url}/{table}"

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError("Supabase")
        if resp.status_code >= 400:
            raise SupabaseError(resp.text, status_code=resp.status_code)

    async def get_call_by_external_id(self, call_id: str) -> ProcessedCallRecord | None:
        resp = await self._client.get(
            self._table_url(CALLS_TABLE),
            params={"call_id": f"eq.{call_id}", "select": "*", "limit": "1"},
            headers=self._headers,
        )
        self._raise_for_status(resp)

        rows = resp.json()
        if not rows:
            return None
        return ProcessedCallRecord(**rows[0])

    async def create_call(self, record: ProcessedCallRecord) -> ProcessedCallRecord | None:
        """Insert a call row; a row that already exists for ``call_id`` wins."""
        payload = record.model_dump(mode="json", exclude={"id"}, exclude_none=True)
        resp = await self._client.post(
            self._table_url(CALLS_TABLE),
            params={"on_conflict": "call_id"},
            json=payload,
            headers={
                **self._headers,
                "Prefer": "resolution=ignore-duplicates,return=representation",
            },
        )
        self._raise_for_status(resp)

        rows = resp.json()
        if rows:
            saved = ProcessedCallRecord(**rows[0])
            logger.info("Saved call %s as %s", record.call_id, saved.id)
            return saved

        logger.info("Call %s already stored, returning existing row", record.call_id)
        return await self.get_call_by_external_id(record.call_id)

    async def create_sentiment_analysis(
        self, record: SentimentAnalysisRecord
    ) -> SentimentAnalysisRecord | None:
        resp = await self._client.post(
            self._table_url(SENTIMENT_TABLE),
            json=record.model_dump(mode="json", exclude={"id"}, exclude_none=True),
            headers={**self._headers, "Prefer": "return=representation"},
        )
        self._raise_for_status(resp)

        rows = resp.json()
        if not rows:
            return None
        return SentimentAnalysisRecord(**rows[0])
