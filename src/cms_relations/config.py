# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    database_url: str
    environment: str = "production"
    log_level: str = "info"
    log_format: str = "json"
    cors_origins: list[str] = []
    database_pool_size: int = 20

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 200

    # Candidate picker
    search_timeout_seconds: float = 10.0

    # Relation writes
    # Off by default: concurrent edits of the same field are last-write-wins.
    # When on, a batch commit fails if the stored edge set changed since the
    # edit session was opened.
    relation_optimistic_locking: bool = False
    relation_write_rate_limit: str = "60/minute"

    model_config = {"env_file": ".env"}

    @model_validator(mode="after")
    def _validate_page_sizes(self) -> "Settings":
        if self.default_page_size < 1 or self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must be between 1 and max_page_size")
        if self.log_format not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance. Lazy-loaded to avoid import-time failures."""
    return Settings()
