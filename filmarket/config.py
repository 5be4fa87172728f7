"""Application settings for the FilMarket registry."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment variables."""

    state_path: Path | None = Field(
        default=None,
        description="JSON file holding the committed registry state. In-memory when unset.",
    )
    reject_unauthorized: bool = Field(
        default=False,
        description="Raise on non-owner mutations instead of silently ignoring them.",
    )

    class Config:
        env_prefix = "FILMARKET_"
        env_file = ".env"
        extra = "ignore"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance."""

    return Settings()
