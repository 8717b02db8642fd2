"""Centralized configuration for mail-search using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed runtime configuration.

    Values come from defaults, ``MAIL_SEARCH_*`` environment variables or an
    optional ``.env`` file. Command-line flags override individual fields via
    :meth:`with_overrides`; nothing here is written back to disk.
    """

    model_config = SettingsConfigDict(
        env_prefix="MAIL_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Storage
    db_path: Path = Field(default=Path("mail_search.db"), description="SQLite index location")

    # Ingestion
    batch_size: int = Field(default=10_000, ge=1, description="Documents committed per transaction")
    max_records: int | None = Field(default=500_000, ge=1, description="Hard ceiling on processed records")
    min_body_length: int = Field(default=50, ge=0, description="Minimum normalized body length to index")
    dedup_policy: Literal["content", "path"] = Field(
        default="content",
        description="content: digest of subject+body; path: hash of the source path only",
    )

    # Search
    max_results: int = Field(default=10, ge=1, description="Ranked results printed per search")
    max_related_shown: int = Field(default=5, ge=0, description="Related documents printed per search")
    related_strategy: Literal["sender", "shared-terms"] = Field(
        default="sender", description="Algorithm used to surface related documents"
    )
    fuzzy_prefix_limit: int = Field(default=5, ge=1, description="Prefix candidates considered per term")
    fuzzy_max_distance: int = Field(default=2, ge=0, le=4, description="Maximum edit distance for fuzzy terms")
    fuzzy_min_term_length: int = Field(default=4, ge=1, description="Shortest term eligible for fuzzy expansion")
    fuzzy_candidate_limit: int | None = Field(
        default=None,
        ge=1,
        description="Vocabulary terms scanned per term for edit-distance candidates (unbounded when unset)",
    )

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=False, description="Emit structured JSON logs")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        allowed = {"debug", "info", "warning", "error", "critical"}
        if value.lower() not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return value.lower()

    def with_overrides(self, **overrides: object) -> "Settings":
        """Return a copy with non-None overrides applied and re-validated."""
        updates = {key: value for key, value in overrides.items() if value is not None}
        if not updates:
            return self
        return Settings.model_validate({**self.model_dump(), **updates})
