"""
Application configuration using Pydantic Settings.

One Settings object serves both sides of the sync: the hosted persistence API
(database, auth, server) and the on-device client (local store, sync policy,
realtime, LLM backend).
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Hosted store database
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./chatsync.db"

    # ===========================================
    # Auth
    # ===========================================
    # When disabled, every request is served as the development user.
    AUTH_ENABLED: bool = True

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000"]
    )

    # ===========================================
    # Remote store client
    # ===========================================
    REMOTE_API_BASE_URL: str = "http://localhost:8000"
    REMOTE_TIMEOUT_SECONDS: float = 10.0

    # ===========================================
    # Local store (on-device cache)
    # ===========================================
    LOCAL_STORE_PATH: str = "./local_store"
    LOCAL_SESSIONS_KEY: str = "chat_sessions"
    LOCAL_PENDING_KEY: str = "pending_sync_sessions"
    LOCAL_DEVICE_ID_KEY: str = "device_id"

    # ===========================================
    # Sessions
    # ===========================================
    DEFAULT_SESSION_TITLE: str = "New Chat"
    TITLE_MAX_LENGTH: int = 30

    # ===========================================
    # Sync policy
    # ===========================================
    SYNC_DEBOUNCE_SECONDS: float = 1.0
    SYNC_MAX_RETRIES: int = 3
    SYNC_RETRY_DELAY_SECONDS: float = 1.0
    PENDING_SYNC_INTERVAL_SECONDS: int = 60

    # Heuristic title + time dedup for sessions created on two devices
    SESSION_DEDUP_ENABLED: bool = True
    SESSION_DEDUP_WINDOW_SECONDS: int = 300

    # ===========================================
    # Realtime
    # ===========================================
    REALTIME_SUBSCRIBE_TIMEOUT_SECONDS: float = 10.0
    REALTIME_KEEPALIVE_SECONDS: float = 15.0
    # Per-stream buffer; the oldest change is dropped when full
    REALTIME_QUEUE_SIZE: int = 1000

    # ===========================================
    # LLM backend (Dify)
    # ===========================================
    DIFY_API_BASE_URL: str = "https://api.dify.ai/v1"
    DIFY_API_KEY: str = ""
    DIFY_TIMEOUT_SECONDS: float = 60.0
    LLM_ERROR_MESSAGE: str = "(An error occurred)"

    @property
    def is_local(self) -> bool:
        """Local mode owns the SQLite schema and creates it on startup."""
        return self.ENVIRONMENT == "local"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
