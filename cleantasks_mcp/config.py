"""Environment-driven settings.

Reads ``.env`` (via python-dotenv) on import, like the API clients do.

    CLEANTASKS_TIMEZONE   IANA zone used for calendar fields (default: system local)
"""

from __future__ import annotations

import os
from datetime import tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


def resolve_zone(name: str | None) -> tzinfo | None:
    """Turn an IANA zone name into a tzinfo. None/empty means system local."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone '{name}' (e.g., 'America/New_York')") from e


class Settings(BaseModel):
    """Server-wide defaults, handed to tools through the lifespan context."""

    time_zone: Optional[str] = Field(
        default=None,
        description="Default IANA time zone for evaluations",
    )

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v: str | None) -> str | None:
        resolve_zone(v)
        return v or None

    @property
    def zone(self) -> tzinfo | None:
        return resolve_zone(self.time_zone)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(time_zone=os.getenv("CLEANTASKS_TIMEZONE") or None)
