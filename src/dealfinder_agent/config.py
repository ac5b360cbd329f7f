"""
Configuration management for DealFinder-Agent

Uses pydantic-settings for environment variable parsing and validation.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "DealFinder-Agent"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/dealfinder.db",
        description="Database connection URL for persona storage"
    )

    # Conversation compaction
    compaction_enabled: bool = Field(default=True, description="Compact long histories before each model call")
    compaction_max_tokens: int = Field(default=6000, description="Estimated token budget for compacted history")

    # Persona
    persona_learning_enabled: bool = Field(default=True, description="Learn persona signals from chat messages")
    persona_injection_enabled: bool = Field(default=True, description="Inject the persona block into the system prompt")

    @field_validator("compaction_max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("compaction_max_tokens must be positive")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper() if v else "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
