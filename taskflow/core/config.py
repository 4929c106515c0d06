"""
Taskflow Configuration
Central configuration management using Pydantic Settings
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TASKFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== Application =====
    app_name: str = "Taskflow Comments"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    frontend_url: str = "http://localhost:5173"

    # ===== Database =====
    database_url: str = "sqlite+aiosqlite:///./taskflow.db"
    database_echo: bool = False

    # ===== Comments =====
    comment_edit_window_seconds: int = 300  # 5 minutes
    comment_min_length: int = 1
    comment_max_length: int = 5000
    comment_topic_max_length: int = 100

    # ===== Mentions =====
    mention_suggestion_limit: int = 5

    # ===== Notifications =====
    notification_preview_length: int = 100
    notification_badge_cap: int = 99

    # ===== Event Bus =====
    event_handler_retries: int = 1  # one retry, then dead-letter
    event_retry_wait_seconds: float = 0.5

    # ===== Logging =====
    log_level: str = "INFO"
    log_json: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
