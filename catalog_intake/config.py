"""Runtime configuration.

Settings are read from environment variables prefixed ``CATALOG_INTAKE_`` and
from an optional ``.env`` file, e.g.::

    CATALOG_INTAKE_DRAFT_DIR=/var/lib/onboarding/drafts
    CATALOG_INTAKE_AUTOSAVE_DELAY_SECONDS=0.5
    CATALOG_INTAKE_LOG_LEVEL=DEBUG
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CATALOG_INTAKE_", env_file=".env", extra="ignore")

    # Drafts
    draft_dir: Path = Path("~/.catalog_intake/drafts")
    autosave_delay_seconds: float = Field(default=0.8, ge=0)

    # Logging
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Apply the configured log level to the root logger."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
]
