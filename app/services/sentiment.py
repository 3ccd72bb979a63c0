import logging

from app.exceptions.custom import SentimentAnalysisError
from app.schemas.calls import SentimentAnalysis, SentimentAnalysisRecord
from app.services.claude import ClaudeService
from app.services.supabase import SupabaseService

logger = logging.getLogger(__name__)

SENTIMENTS = {"positive", "neutral", "negative"}

SYSTEM_PROMPT = """You analyse transcripts of phone calls between a political \
campaign's voice agent and a voter in Tamil Nadu. Transcripts are usually in \
Tamil, sometimes mixed with English.

Reply with a single JSON object and nothing else:
{
  "sentiment": "positive" | "neutral" | "negative",
  "sentiment_score": number between 0 (very negative) and 1 (very positive),
  "key_issues": [short English labels of the issues the voter raised],
  "summary": "one or two English sentences",
  "language": "ISO 639-1 code of the voter's main language"
}"""


def _parse_score(value: object) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.5
    return min(max(score, 0.0), 1.0)


def _parse_issues(value: object) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


class SentimentService:
    def __init__(self, claude: ClaudeService, calls: SupabaseService):
        self._claude = claude
        self._calls = calls

    @property
    def model_name(self) -> str:
        return self._claude.model

    async def analyze(self, transcript: str, call_id: str) -> SentimentAnalysis:
        raw = await self._claude.analyze(
            SYSTEM_PROMPT, f"Call {call_id} transcript:\n\n{transcript}"
        )
        if raw is None:
            raise SentimentAnalysisError("Model returned no usable analysis", call_id=call_id)

        sentiment = str(raw.get("sentiment") or "neutral").strip().lower()
        if sentiment not in SENTIMENTS:
            logger.warning("Unexpected sentiment %r for call %s, using neutral", sentiment, call_id)
            sentiment = "neutral"

        return SentimentAnalysis(
            sentiment=sentiment,
            sentiment_score=_parse_score(raw.get("sentiment_score")),
            key_issues=_parse_issues(raw.get("key_issues")),
            summary=str(raw["summary"]) if raw.get("summary") else None,
            language=str(raw["language"]) if raw.get("language") else None,
        )

    async def save_analysis(
        self,
        call_record_id: str,
        organization_id: str,
        analysis: SentimentAnalysis,
        model_name: str,
    ) -> SentimentAnalysisRecord | None:
        record = SentimentAnalysisRecord(
            call_id=call_record_id,
            organization_id=organization_id,
            model_used=model_name,
            **analysis.model_dump(),
        )
        return await self._calls.create_sentiment_analysis(record)
