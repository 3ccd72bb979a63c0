import logging

import httpx
from pydantic import ValidationError

from app.exceptions.custom import ElevenLabsError, RateLimitError
from app.schemas.elevenlabs import ConversationResponse, ExternalConversation, TranscriptResult

logger = logging.getLogger(__name__)

CONVERSATIONS_URL = "https://api.elevenlabs.io/v1/convai/conversations"

MAX_PAGE_SIZE = 100

_ROLE_LABELS = {"agent": "Agent", "user": "Voter"}


class ElevenLabsService:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        agent_id: str = "",
    ):
        self._client = client
        self._headers = {"xi-api-key": api_key}
        self._agent_id = agent_id

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError("ElevenLabs")
        if resp.status_code >= 400:
            raise ElevenLabsError(resp.text, status_code=resp.status_code)

    async def list_conversations(
        self, limit: int = 100, offset: int = 0
    ) -> list[ExternalConversation]:
        """Most recent conversations first.

        The API pages by cursor, so ``offset`` only slices the first page.
        """
        params: dict = {"page_size": min(limit + offset, MAX_PAGE_SIZE)}
        if self._agent_id:
            params["agent_id"] = self._agent_id

        resp = await self._client.get(
            CONVERSATIONS_URL, params=params, headers=self._headers
        )
        self._raise_for_status(resp)

        items = resp.json().get("conversations", [])
        conversations = []
        for item in items:
            try:
                conversations.append(ExternalConversation.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping malformed conversation %r: %s", item, exc)
        logger.info("Listed %d conversations", len(conversations))
        return conversations[offset:offset + limit]

    async def get_conversation(
        self, conversation_id: str
    ) -> ConversationResponse:
        url = f"{CONVERSATIONS_URL}/{conversation_id}"
        resp = await self._client.get(url, headers=self._headers)
        self._raise_for_status(resp)

        return ConversationResponse(**resp.json())

    async def get_transcript(self, conversation_id: str) -> TranscriptResult:
        conversation = await self.get_conversation(conversation_id)

        lines: list[str] = []
        for entry in conversation.transcript:
            if not entry.message:
                continue
            role = _ROLE_LABELS.get(entry.role, entry.role.capitalize())
            lines.append(f"{role}: {entry.message}")

        duration: int | None = None
        if conversation.metadata:
            raw = conversation.metadata.get("call_duration_secs")
            if raw is not None:
                try:
                    duration = int(raw)
                except (TypeError, ValueError):
                    duration = None

        return TranscriptResult(transcript="\n".join(lines), duration_seconds=duration)
