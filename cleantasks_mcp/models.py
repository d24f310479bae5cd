"""Pydantic input models for CleanTasks MCP tools.

Every tool uses a Pydantic BaseModel for input validation.
Schedules inside tasks are deliberately left as raw objects here: a bad
schedule must only disable that one task's reset, not reject the batch.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cleantasks_mcp.config import resolve_zone


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ResponseFormat(str, Enum):
    """Output format for tool responses."""
    MARKDOWN = "markdown"
    JSON = "json"


# ---------------------------------------------------------------------------
# Shared model config
# ---------------------------------------------------------------------------

_STRICT_CONFIG = ConfigDict(
    str_strip_whitespace=True,
    validate_assignment=True,
    extra="forbid",
)


def _validate_instant(v: str | None) -> str | None:
    if v is not None and "T" not in v:
        raise ValueError(
            f"Instant must be in ISO format 'yyyy-MM-ddTHH:mm:ss' (e.g., '2026-03-15T09:00:00Z'), got: {v}"
        )
    return v


def _validate_zone(v: str | None) -> str | None:
    resolve_zone(v)
    return v


# ---------------------------------------------------------------------------
# Task record
# ---------------------------------------------------------------------------

class Task(BaseModel):
    """A persisted task record, as far as the reset engine cares.

    Unknown keys (text, priority, category, ...) are kept and returned
    untouched.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[Union[str, int]] = Field(default=None, description="Task ID")
    completed: bool = Field(default=False, description="Whether the task is currently done")
    last_completed_at: Optional[Any] = Field(
        default=None,
        alias="lastCompletedAt",
        description="ISO instant of the last manual completion (e.g., '2026-02-20T18:04:11.000Z')",
    )
    schedule: Optional[Any] = Field(
        default=None,
        description="Recurrence rule: {'kind': 'weekly_friday', 'time': '09:00', 'dayOfWeek': 5, 'dayOfMonth': 1}",
    )

    def to_record(self) -> dict:
        """Dump back to the persisted camelCase shape, omitting unset fields."""
        record = self.model_dump(by_alias=True)
        for name, field in type(self).model_fields.items():
            if name not in self.model_fields_set:
                record.pop(field.alias or name, None)
        return record


# ---------------------------------------------------------------------------
# Tool inputs
# ---------------------------------------------------------------------------

class ResetTasksInput(BaseModel):
    """Input for evaluating a task list for auto-reset."""
    model_config = _STRICT_CONFIG

    tasks: list[Task] = Field(
        ...,
        description="Task records to evaluate, in display order",
    )
    now: Optional[str] = Field(
        default=None,
        description="Evaluation instant in ISO format (default: current time)",
    )
    time_zone: Optional[str] = Field(
        default=None,
        description="IANA time zone for calendar fields (e.g., 'America/New_York'); default from server settings",
    )
    response_format: ResponseFormat = Field(
        default=ResponseFormat.MARKDOWN,
        description="Output format: 'markdown' (human-readable) or 'json' (machine-readable)",
    )

    @field_validator("now")
    @classmethod
    def validate_now(cls, v: str | None) -> str | None:
        return _validate_instant(v)

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v: str | None) -> str | None:
        return _validate_zone(v)


class ToggleTaskInput(BaseModel):
    """Input for toggling a task's completion."""
    model_config = _STRICT_CONFIG

    task: Task = Field(..., description="Task record to toggle")
    now: Optional[str] = Field(
        default=None,
        description="Completion instant in ISO format (default: current time)",
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN, description="Output format")

    @field_validator("now")
    @classmethod
    def validate_now(cls, v: str | None) -> str | None:
        return _validate_instant(v)


class CheckScheduleInput(BaseModel):
    """Input for validating a schedule and previewing its reset decision."""
    model_config = _STRICT_CONFIG

    schedule: dict[str, Any] = Field(
        ...,
        description="Recurrence rule to check (e.g., {'kind': 'monthly', 'dayOfMonth': 1})",
    )
    last_completed_at: Optional[str] = Field(
        default=None,
        description="ISO instant the task was last completed; omit to only validate",
    )
    now: Optional[str] = Field(default=None, description="Evaluation instant (default: current time)")
    time_zone: Optional[str] = Field(default=None, description="IANA time zone for calendar fields")
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN, description="Output format")

    @field_validator("now", "last_completed_at")
    @classmethod
    def validate_instants(cls, v: str | None) -> str | None:
        return _validate_instant(v)

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v: str | None) -> str | None:
        return _validate_zone(v)


class ListRecurrenceKindsInput(BaseModel):
    """Input for listing the recurrence kind catalog."""
    model_config = _STRICT_CONFIG

    response_format: ResponseFormat = Field(
        default=ResponseFormat.MARKDOWN,
        description="Output format: 'markdown' or 'json'",
    )
