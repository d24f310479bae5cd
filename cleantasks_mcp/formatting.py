"""Response formatting helpers for CleanTasks MCP.

Provides consistent Markdown and JSON formatting across all tools.
Markdown is the default, optimized for LLM readability with minimal tokens.
"""

from __future__ import annotations

import json
from typing import Any

from cleantasks_mcp.recurrence import (
    ORDINALS,
    WEEKDAY_NAMES,
    RecurrenceFamily,
    RecurrenceKind,
    RecurrenceRule,
    parse_rule,
)

CHARACTER_LIMIT = 25_000

# ---------------------------------------------------------------------------
# Schedule display
# ---------------------------------------------------------------------------

KIND_LABELS = {
    RecurrenceKind.NONE: "No schedule",
    RecurrenceKind.DAILY: "Daily",
    RecurrenceKind.WEEKDAYS: "Weekdays (Mon-Fri)",
    RecurrenceKind.WEEKENDS: "Weekends (Sat-Sun)",
    RecurrenceKind.WEEKLY: "Weekly",
    RecurrenceKind.BIWEEKLY: "Every 2 weeks",
    RecurrenceKind.BIWEEKLY_EVEN: "Every 2 weeks (even weeks)",
    RecurrenceKind.BIWEEKLY_ODD: "Every 2 weeks (odd weeks)",
    RecurrenceKind.MONTHLY: "Monthly",
    RecurrenceKind.MONTHLY_15: "Monthly on the 15th",
    RecurrenceKind.MONTHLY_LAST: "End of month",
    RecurrenceKind.QUARTERLY: "Quarterly",
    RecurrenceKind.YEARLY: "Yearly",
}

FAMILY_LABELS = {
    RecurrenceFamily.DISABLED: "Disabled",
    RecurrenceFamily.ELAPSED: "Elapsed time",
    RecurrenceFamily.WEEK_PARITY: "Week parity",
    RecurrenceFamily.DAY_OF_WEEK: "Day of week",
    RecurrenceFamily.WEEKDAY_CLASS: "Weekday class",
    RecurrenceFamily.DAY_OF_MONTH: "Day of month",
    RecurrenceFamily.NTH_WEEKDAY: "Nth weekday of month",
    RecurrenceFamily.PERIOD_INDEX: "Calendar period",
}


def kind_label(kind: RecurrenceKind) -> str:
    """Human label for a kind, e.g. 'second_friday' -> 'Second Friday of the month'."""
    if kind in KIND_LABELS:
        return KIND_LABELS[kind]
    prefix, _, day = kind.value.partition("_")
    if prefix == "weekly":
        return f"Weekly on {day.capitalize()}"
    if prefix in ORDINALS:
        return f"{prefix.capitalize()} {day.capitalize()} of the month"
    return kind.value


def schedule_label(schedule: dict | RecurrenceRule | None) -> str:
    """Describe a task's schedule, including legacy weekly/monthly fields."""
    if schedule is None:
        return KIND_LABELS[RecurrenceKind.NONE]
    rule = parse_rule(schedule)
    if rule is None:
        return "Invalid schedule"
    label = kind_label(rule.kind)
    if rule.kind is RecurrenceKind.WEEKLY and rule.day_of_week is not None:
        label = f"Weekly on {WEEKDAY_NAMES[rule.day_of_week].capitalize()}"
    elif rule.kind is RecurrenceKind.MONTHLY and rule.day_of_month is not None:
        label = f"Monthly on day {rule.day_of_month}"
    if rule.family is RecurrenceFamily.DAY_OF_WEEK:
        label += f" after {rule.reset_hour:02d}:00"
    return label


# ---------------------------------------------------------------------------
# Markdown formatters
# ---------------------------------------------------------------------------

def task_title(task: dict) -> str:
    return task.get("text") or task.get("name") or task.get("title") or "Untitled"


def format_task_md(task: dict) -> str:
    """Format a single task as Markdown."""
    check = "x" if task.get("completed") else " "
    lines = [f"- [{check}] **{task_title(task)}**"]
    if task.get("id") is not None:
        lines.append(f"  - **ID**: `{task['id']}`")
    lines.append(f"  - **Schedule**: {schedule_label(task.get('schedule'))}")
    last = task.get("lastCompletedAt") or task.get("lastCompleted")
    if last:
        lines.append(f"  - **Last completed**: {last}")
    return "\n".join(lines)


def format_tasks_md(tasks: list[dict], heading: str = "") -> str:
    """Format a list of tasks as Markdown."""
    if not tasks:
        return "No tasks found."
    header = f"# {heading}" if heading else "# Tasks"
    lines = [f"{header} ({len(tasks)})", ""]
    for t in tasks:
        lines.append(format_task_md(t))
    return "\n".join(lines)


def format_reset_summary_md(tasks: list[dict], reset_ids: list[Any], now: str) -> str:
    """Summarize an evaluation: which tasks were reset, then the full list."""
    lines = [f"# Auto-reset at {now}", ""]
    if reset_ids:
        lines.append(f"**Reset {len(reset_ids)} task(s)**: " + ", ".join(f"`{i}`" for i in reset_ids))
    else:
        lines.append("No tasks were reset.")
    lines.append("")
    lines.append(format_tasks_md(tasks))
    return "\n".join(lines)


def format_kinds_md() -> str:
    """Format the recurrence kind catalog grouped by family."""
    lines = [f"# Recurrence kinds ({len(RecurrenceKind)})"]
    for family in RecurrenceFamily:
        kinds = [k for k in RecurrenceKind if k.family is family]
        lines.append("")
        lines.append(f"## {FAMILY_LABELS[family]}")
        for k in kinds:
            lines.append(f"- `{k.value}`: {kind_label(k)}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

def format_json(data: Any) -> str:
    """Format data as indented JSON string."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


# ---------------------------------------------------------------------------
# Truncation
# ---------------------------------------------------------------------------

def truncate_response(response: str) -> str:
    """Truncate response if it exceeds CHARACTER_LIMIT."""
    if len(response) <= CHARACTER_LIMIT:
        return response
    truncated = response[:CHARACTER_LIMIT]
    return (
        truncated
        + "\n\n---\n"
        + f"**Response truncated** ({len(response):,} chars -> {CHARACTER_LIMIT:,} chars). "
        + "Send fewer tasks per call to reduce output."
    )
