"""
manuscript_engine/models/project.py -- The project descriptor model.

One ``dialogoi.yaml`` marks one project root.  Unknown top-level keys are
kept so that a round trip through the engine does not drop data written
by other tools.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _check_iso(value: str) -> str:
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(
            f"'{value}' is not an ISO 8601 timestamp (e.g. 2024-01-01T00:00:00Z)"
        ) from None
    return value


class ProjectSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    readme_filename: Optional[str] = None
    exclude_patterns: Optional[list[str]] = None


class ProjectDescriptor(BaseModel):
    """Title, author, timestamps, tags and project-wide settings."""

    model_config = ConfigDict(extra="allow")

    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    created_at: str
    updated_at: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    project_settings: ProjectSettings = Field(default_factory=ProjectSettings)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamp_text(cls, value: Any) -> Any:
        # YAML loads unquoted timestamps as datetime objects.
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value.isoformat().replace("+00:00", "Z")
        if isinstance(value, date):
            return value.isoformat() + "T00:00:00Z"
        return value

    @field_validator("created_at", "updated_at")
    @classmethod
    def _iso(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _check_iso(value)

    @field_validator("title", "author")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
