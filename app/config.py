from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    elevenlabs_api_key: str = ""
    elevenlabs_agent_id: str = ""
    supabase_url: str = ""
    supabase_service_key: str = ""
    anthropic_api_key: str = ""
    log_level: str = "INFO"

    polling_enabled: bool = True
    polling_interval_seconds: float = 120.0
    polling_batch_size: int = 3
    polling_batch_pause_seconds: float = 0.5
    conversation_page_size: int = 100
    processed_cache_max: int = 1000
    processed_cache_keep: int = 500
    transcript_max_retries: int = 3
    transcript_retry_delay_seconds: float = 2.0
    request_timeout_seconds: float = 30.0
    # Fallback when a call carries no organization in its client data
    default_organization_id: str = "00000000-0000-0000-0000-000000000001"
