"""Application configuration."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from schemagate.models.enums import CompatibilityMode


class Settings(BaseSettings):  # type: ignore[misc]
    """Settings loaded from environment variables (SCHEMAGATE_*) or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SCHEMAGATE_",
        extra="ignore",
    )

    # Analysis defaults
    default_mode: CompatibilityMode = CompatibilityMode.BACKWARD

    # Logging
    log_level: str = "WARNING"

    # Resource constraints (CLI file loading)
    max_schema_size_bytes: int = 1_000_000  # 1MB

    # Output
    json_indent: int = 2

    @field_validator("default_mode", mode="before")
    @classmethod
    def parse_mode(cls, v: str | CompatibilityMode) -> str | CompatibilityMode:
        """Accept mode names in any case (e.g. 'backward')."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("log_level")
    @classmethod
    def parse_log_level(cls, v: str) -> str:
        return v.strip().upper()


settings = Settings()
