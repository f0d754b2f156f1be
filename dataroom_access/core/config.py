from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DATAROOM_ACCESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="dataroom-access", description="Application name")
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment mode"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log output format"
    )

    # Persistence endpoint
    api_base_url: str = Field(
        default="http://localhost:3000", description="Base URL of the permissions API"
    )
    api_token: Optional[str] = Field(
        default=None, description="Bearer token for the permissions API"
    )
    team_id: Optional[str] = Field(
        default=None, description="Team owning the datarooms being edited"
    )
    request_timeout_seconds: float = Field(
        default=30.0, description="Timeout for a single persistence request"
    )

    # Change batching
    quiescence_seconds: float = Field(
        default=2.0,
        description="Seconds without edits before pending changes are flushed",
    )
    flush_poll_interval_seconds: float = Field(
        default=0.25, description="Background flusher polling interval"
    )
    flush_on_teardown: bool = Field(
        default=True,
        description="Flush pending changes when a session closes (drop them otherwise)",
    )

    @model_validator(mode="after")
    def force_json_logs_in_production(self) -> "Settings":
        if self.is_production:
            self.log_format = "json"
        return self

    @field_validator("quiescence_seconds", "flush_poll_interval_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


settings = get_settings()
