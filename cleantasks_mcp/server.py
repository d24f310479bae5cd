"""CleanTasks MCP Server: recurring-task auto-reset as tools.

The server holds no task state. Callers send their task list, get back the
evaluated list, and persist it themselves.

Usage:
    python -m cleantasks_mcp          # stdio transport (default)
    uv run python -m cleantasks_mcp   # via uv
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from fastmcp import FastMCP, Context
from pydantic import ValidationError

from cleantasks_mcp.calendar_utils import parse_instant
from cleantasks_mcp.config import Settings, resolve_zone
from cleantasks_mcp.evaluator import (
    changed_task_ids,
    evaluate,
    should_reset,
    toggle_completion,
)
from cleantasks_mcp.formatting import (
    FAMILY_LABELS,
    format_json,
    format_kinds_md,
    format_reset_summary_md,
    format_task_md,
    kind_label,
    schedule_label,
    truncate_response,
)
from cleantasks_mcp.models import (
    CheckScheduleInput,
    ListRecurrenceKindsInput,
    ResetTasksInput,
    ResponseFormat,
    ToggleTaskInput,
)
from cleantasks_mcp.recurrence import RecurrenceKind, RecurrenceRule

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: settings read once at startup
# ---------------------------------------------------------------------------

@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[dict]:
    """Load settings at startup and share them with every tool call."""
    settings = Settings.from_env()
    logger.info(f"CleanTasks settings loaded (time_zone={settings.time_zone or 'system local'})")
    yield {"settings": settings}


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "cleantasks_mcp",
    instructions=(
        "Recurring-task auto-reset for CleanTasks. Tools are prefixed with "
        "'cleantasks_' and support both Markdown and JSON response formats. "
        "Send the whole task list to cleantasks_reset_tasks (e.g., once a minute) "
        "and persist the returned list only if any task was reset. "
        "Use cleantasks_toggle_task when the user checks a task off, and "
        "cleantasks_list_recurrence_kinds to discover valid schedule kinds."
    ),
    lifespan=app_lifespan,
)


# ---------------------------------------------------------------------------
# Error handler
# ---------------------------------------------------------------------------

def _handle_error(e: Exception) -> str:
    """Convert exceptions to LLM-friendly error messages."""
    if isinstance(e, ValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'schedule'}: {err['msg']}"
            for err in e.errors()
        )
        return f"Error: Invalid schedule: {problems}"
    if isinstance(e, ValueError):
        return f"Error: Invalid input: {e}"
    return f"Error: {type(e).__name__}: {e}"


def _get_settings(ctx) -> Settings:
    """Extract server settings from request context."""
    return ctx.request_context.lifespan_context["settings"]


def _resolve_now(value: str | None) -> datetime:
    """Parse an explicit evaluation instant, or take the current time."""
    if value is None:
        return datetime.now(timezone.utc)
    parsed = parse_instant(value)
    if parsed is None:
        raise ValueError(f"Could not parse instant '{value}'")
    return parsed


# ===================================================================
# RESET TOOLS
# ===================================================================


@mcp.tool(
    name="cleantasks_reset_tasks",
    annotations={
        "title": "Auto-reset Recurring Tasks",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False,
    },
)
async def cleantasks_reset_tasks(params: ResetTasksInput, ctx: Context) -> str:
    """Clear 'completed' on every task whose schedule has started a new period.

    Returns the full task list in the same order, plus the ids of tasks that
    were reset. Tasks without a schedule, not completed, or never completed
    are returned unchanged. A task with an invalid schedule is never reset.

    Args:
        params: Contains tasks, optional now / time_zone, and response_format.

    Returns:
        Markdown summary and task list, or JSON {"count", "reset", "tasks"}.

    Examples:
        - "Reset my chores for today" -> tasks=[...]
        - "What would reset on Friday at 10am?" -> now='2026-02-20T10:00:00'
    """
    try:
        settings = _get_settings(ctx)
        tz = resolve_zone(params.time_zone) if params.time_zone else settings.zone
        now = _resolve_now(params.now)
        records = [t.to_record() for t in params.tasks]
        updated = evaluate(records, now, tz)
        reset_ids = changed_task_ids(records, updated)
        logger.info(f"Evaluated {len(updated)} task(s), reset {len(reset_ids)}")

        if params.response_format == ResponseFormat.JSON:
            return truncate_response(format_json({
                "count": len(updated),
                "reset": reset_ids,
                "tasks": updated,
            }))
        return truncate_response(format_reset_summary_md(updated, reset_ids, now.isoformat()))
    except Exception as e:
        return _handle_error(e)


@mcp.tool(
    name="cleantasks_toggle_task",
    annotations={
        "title": "Toggle Task Completion",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": False,
    },
)
async def cleantasks_toggle_task(params: ToggleTaskInput, ctx: Context) -> str:
    """Flip a task's completion, stamping lastCompletedAt when it becomes done.

    Un-completing a task keeps its previous lastCompletedAt.
    """
    try:
        now = _resolve_now(params.now)
        updated = toggle_completion(params.task.to_record(), now)
        if params.response_format == ResponseFormat.JSON:
            return format_json(updated)
        return format_task_md(updated)
    except Exception as e:
        return _handle_error(e)


@mcp.tool(
    name="cleantasks_check_schedule",
    annotations={"title": "Check Schedule", "readOnlyHint": True, "destructiveHint": False, "idempotentHint": True, "openWorldHint": False},
)
async def cleantasks_check_schedule(params: CheckScheduleInput, ctx: Context) -> str:
    """Validate a recurrence rule and preview whether it would reset a task.

    Unlike cleantasks_reset_tasks (which quietly skips bad schedules), this
    reports exactly why a schedule is invalid.
    """
    try:
        rule = RecurrenceRule.model_validate(params.schedule)
        settings = _get_settings(ctx)
        tz = resolve_zone(params.time_zone) if params.time_zone else settings.zone
        now = _resolve_now(params.now)

        would_reset = None
        if params.last_completed_at is not None:
            task = {
                "completed": True,
                "lastCompletedAt": params.last_completed_at,
                "schedule": params.schedule,
            }
            would_reset = should_reset(task, now, tz)

        if params.response_format == ResponseFormat.JSON:
            return format_json({
                "valid": True,
                "kind": rule.kind.value,
                "family": rule.family.value,
                "label": schedule_label(rule),
                "reset_hour": rule.reset_hour,
                "would_reset": would_reset,
            })
        lines = [
            f"# {schedule_label(rule)}",
            f"- **Kind**: `{rule.kind.value}`",
            f"- **Family**: {FAMILY_LABELS[rule.family]}",
        ]
        if would_reset is not None:
            verdict = "yes" if would_reset else "no"
            lines.append(f"- **Would reset at {now.isoformat()}**: {verdict}")
        return "\n".join(lines)
    except Exception as e:
        return _handle_error(e)


@mcp.tool(
    name="cleantasks_list_recurrence_kinds",
    annotations={"title": "List Recurrence Kinds", "readOnlyHint": True, "destructiveHint": False, "idempotentHint": True, "openWorldHint": False},
)
async def cleantasks_list_recurrence_kinds(params: ListRecurrenceKindsInput, ctx: Context) -> str:
    """List every supported recurrence kind with its label and family."""
    try:
        if params.response_format == ResponseFormat.JSON:
            return format_json([
                {"kind": k.value, "label": kind_label(k), "family": k.family.value}
                for k in RecurrenceKind
            ])
        return format_kinds_md()
    except Exception as e:
        return _handle_error(e)
