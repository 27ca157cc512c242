"""
Bootstrap settings.

Uses pydantic-settings for type-safe environment variable parsing.
Only the handful of values needed before the properties file is read
live here (directory overrides, the explicit config location, logging);
everything else comes from catalina.properties via ConfigSource.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process-level overrides with validation and type coercion.

    Values are loaded from environment variables or .env file.
    All fields default to "not overridden".
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Directory overrides (CATALINA_HOME / CATALINA_BASE)
    catalina_home: Optional[str] = None
    catalina_base: Optional[str] = None

    # Explicit location of the properties file, as a URL
    catalina_config: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    debug: bool = False

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings singleton.

    The @lru_cache ensures we only parse environment once.
    """
    return Settings()


# Convenience export for direct import
settings = get_settings()
