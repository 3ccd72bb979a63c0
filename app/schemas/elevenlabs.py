from pydantic import BaseModel, ConfigDict


class ConversationTranscriptEntry(BaseModel):
    role: str  # "agent" | "user"
    message: str | None = ""


class ConversationResponse(BaseModel):
    conversation_id: str = ""
    agent_id: str | None = None
    status: str = ""  # initiated | in-progress | processing | done | failed
    transcript: list[ConversationTranscriptEntry] = []
    metadata: dict | None = None


class ExternalConversation(BaseModel):
    """A conversation as listed by the provider.

    Only the fields the sync pipeline reads are declared. The provider is
    inconsistent about field names for ids, phone numbers and timestamps, so
    unknown keys are kept and read through the fallback helpers in
    ``app.mappers.field_extraction``.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    conversation_id: str | None = None
    agent_id: str | None = None
    status: str | None = None
    call_successful: str | bool | None = None
    error_message: str | None = None
    metadata: dict | None = None
    conversation_initiation_client_data: dict | None = None

    @property
    def raw(self) -> dict:
        return self.model_dump()


class TranscriptResult(BaseModel):
    transcript: str = ""
    duration_seconds: int | None = None
