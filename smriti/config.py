"""Smriti configuration — loaded from environment / .env file."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="SMRITI_", extra="ignore")

    env: str = "development"
    database_url: str = "sqlite+aiosqlite:///./smriti.db"
    log_level: str = "INFO"

    # Autosave tuning
    autosave_delay_ms: int = Field(default=1200, ge=0)  # quiet period before a flush
    snapshot_limit: int = Field(default=20, ge=1)  # history ring size per draft

    @property
    def autosave_delay(self) -> float:
        return self.autosave_delay_ms / 1000


settings = Settings()
