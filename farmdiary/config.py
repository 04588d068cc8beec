"""Application settings loaded from environment variables via pydantic-settings."""

from enum import StrEnum
from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreBackend(StrEnum):
    memory = "memory"
    redis = "redis"
    sql = "sql"


class LogFormat(StrEnum):
    json = "json"
    console = "console"


class Settings(BaseSettings):
    """Central configuration, sourced from env vars or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── Record store ────────────────────────────────────────────────────────
    store_backend: StoreBackend = StoreBackend.memory
    store_namespace: str = "localDB"

    # ── Redis ───────────────────────────────────────────────────────────────
    redis_url: str = "redis://localhost:6379/0"

    # ── Database ────────────────────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./farmdiary.db"

    # ── Diary defaults ──────────────────────────────────────────────────────
    diary_timezone: str = "UTC"
    default_page_size: int = 50
    schedule_window_days: int = 30
    seed_demo_data: bool = False

    # ── Observability ───────────────────────────────────────────────────────
    log_level: str = "info"
    log_format: LogFormat = LogFormat.json

    @property
    def tzinfo(self) -> ZoneInfo:
        """Zone whose calendar days define "today" for scheduling."""
        return ZoneInfo(self.diary_timezone)


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance (cached after first call)."""
    return Settings()
