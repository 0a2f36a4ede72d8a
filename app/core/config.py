"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Azure Communication Services
    acs_connection_string: str
    callback_uri: str  # Public https base address of this service

    # Azure OpenAI realtime
    azure_openai_service_endpoint: str
    azure_openai_service_key: str
    azure_openai_deployment_model_name: str
    azure_openai_api_version: str = "2024-10-01-preview"
    realtime_voice: str = "shimmer"
    transcription_model: str = "whisper-1"

    # Knowledge retrieval
    openai_api_key: str = ""
    embedding_model: str = "text-embedding-ada-002"
    pinecone_api_key: str = ""
    knowledge_collection: str = "tenant-a"
    relevance_threshold: float = 0.5
    retrieval_top_k: int = 4

    # Telephony media transport
    send_max_attempts: int = 5
    send_retry_interval_seconds: float = 1.0
    outbound_queue_size: int = 500

    # Caller profiles
    caller_profiles_file: str = ""

    # Database
    database_url: str = "sqlite+aiosqlite:///./calls.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
