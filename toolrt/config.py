"""Configuration management for the tool runtime."""

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class DuplicatePolicy(str, Enum):
    """What to do when two tools are registered under the same name."""

    ERROR = "error"
    OVERWRITE = "overwrite"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLRT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Declarations
    schema_enabled: bool = True

    # Registration
    on_duplicate_registration: DuplicatePolicy = DuplicatePolicy.ERROR

    # Logging
    debug: bool = False
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
