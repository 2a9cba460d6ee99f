"""Application settings loaded from environment variables and .env files"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the chat server"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    app_name: str = Field(default="chat-core", alias="APP_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Persistence
    database_path: str = Field(default="chat_history.db", alias="CHAT_DB_PATH")
    history_limit: int = Field(default=50, ge=1, alias="HISTORY_LIMIT")

    # Delivery: envelopes a session may have queued before it is dropped as stalled
    outbox_max_size: int = Field(default=1000, ge=1, alias="OUTBOX_MAX_SIZE")

    # Auth collaborator (resolves bearer tokens to identities)
    auth_base_url: str = Field(default="http://localhost:8001", alias="AUTH_BASE_URL")
    auth_timeout_seconds: float = Field(default=10.0, gt=0, alias="AUTH_TIMEOUT_SECONDS")

    # HTTP server
    host: str = Field(default="localhost", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    cors_allow_origins: list[str] = Field(default=["*"], alias="CORS_ALLOW_ORIGINS")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance"""
    return Settings()
