"""
worker-inline: Configuration Management

Uses pydantic Settings for validated, environment-aware configuration.
Loads from .env files and environment variables (prefix WORKER_INLINE_).

Usage:
    from worker_inline.utils.config import get_settings
    settings = get_settings()
"""

from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from worker_inline.utils.constants import (
    API_HOST,
    API_PORT,
    BLOB_MIME_TYPE,
    DEFAULT_SOURCE_ROOT,
    DEFAULT_STRATEGY,
    IGNORE_DIRS,
    LOG_LEVEL,
    MAX_CONCURRENCY,
    PROJECT_ROOT,
    SOURCE_EXTENSIONS,
    SUPPORTED_STRATEGIES,
    WORKER_MARKERS,
)


class Settings(BaseSettings):
    """Transform configuration with validation and defaults."""

    # --- General ---
    project_name: str = "worker-inline"
    log_level: str = LOG_LEVEL

    # --- Discovery ---
    source_root: str = DEFAULT_SOURCE_ROOT
    strategy: str = Field(default=DEFAULT_STRATEGY, description="reference | naming")
    source_extensions: List[str] = Field(default_factory=lambda: list(SOURCE_EXTENSIONS))
    worker_markers: List[str] = Field(default_factory=lambda: list(WORKER_MARKERS))
    ignore_dirs: List[str] = Field(default_factory=lambda: list(IGNORE_DIRS))

    # --- Transform ---
    max_concurrency: int = Field(default=MAX_CONCURRENCY, ge=1)
    blob_mime_type: str = BLOB_MIME_TYPE

    # --- API ---
    api_host: str = API_HOST
    api_port: int = API_PORT

    model_config = {
        "env_file": str(PROJECT_ROOT / ".env"),
        "env_file_encoding": "utf-8",
        "env_prefix": "WORKER_INLINE_",
        "case_sensitive": False,
    }

    @field_validator("strategy")
    @classmethod
    def _check_strategy(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_STRATEGIES:
            raise ValueError(f"strategy must be one of {SUPPORTED_STRATEGIES}, got {value!r}")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings instance (cached after first call).
    """
    return Settings()


if __name__ == "__main__":
    settings = get_settings()
    print(f"Project: {settings.project_name}")
    print(f"Source root: {settings.source_root}")
    print(f"Strategy: {settings.strategy}")
    print(f"Markers: {settings.worker_markers}")
