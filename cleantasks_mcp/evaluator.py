"""Recurrence evaluator: clears ``completed`` on tasks whose period rolled over.

Tasks are plain dicts in the persisted record shape::

    {
        "id": "1",
        "text": "Take out trash",
        "completed": True,
        "lastCompletedAt": "2026-02-20T18:04:11.000Z",
        "schedule": {"kind": "weekly_friday", "time": "19:00"},
    }

Pure functions (no I/O, no clock reads beyond defaulting ``now``), so a
periodic driver can call ``evaluate`` as often as it likes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any

from cleantasks_mcp.calendar_utils import localize, parse_instant
from cleantasks_mcp.recurrence import RecurrenceKind, is_new_period, parse_rule

logger = logging.getLogger(__name__)


def last_completed_at(task: dict) -> datetime | None:
    """Parse the task's last completion instant (legacy ``lastCompleted`` too)."""
    raw = task.get("lastCompletedAt")
    if raw is None:
        raw = task.get("lastCompleted")
    parsed = parse_instant(raw)
    if raw is not None and parsed is None:
        logger.warning(f"Task {task.get('id', '?')}: unparseable lastCompletedAt {raw!r}")
    return parsed


def should_reset(task: dict, now: datetime, tz: tzinfo | None = None) -> bool:
    """Decide whether a single task's completion belongs to a finished period."""
    if not task.get("completed") or task.get("schedule") is None:
        return False
    rule = parse_rule(task["schedule"])
    if rule is None or rule.kind is RecurrenceKind.NONE:
        return False
    last = last_completed_at(task)
    if last is None:
        return False
    return is_new_period(rule, localize(now, tz), localize(last, tz))


def evaluate(
    tasks: list[dict],
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> list[dict]:
    """Return a new list with ``completed`` cleared wherever a new period began.

    The output has the same length and order as ``tasks``. Reset tasks are
    shallow copies; untouched tasks are passed through as-is. The input is
    never mutated.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    result = []
    for task in tasks:
        if should_reset(task, now, tz):
            logger.debug(f"Resetting task {task.get('id', '?')} ({task['schedule']})")
            result.append({**task, "completed": False})
        else:
            result.append(task)
    return result


def toggle_completion(task: dict, now: datetime | None = None) -> dict:
    """Flip ``completed``; stamp ``lastCompletedAt`` when it becomes True.

    Un-completing leaves the previous ``lastCompletedAt`` in place.
    """
    updated = dict(task)
    updated["completed"] = not task.get("completed", False)
    if updated["completed"]:
        stamp = now if now is not None else datetime.now(timezone.utc)
        updated["lastCompletedAt"] = stamp.isoformat()
    return updated


def changed_task_ids(before: list[dict], after: list[dict]) -> list[Any]:
    """Ids (or positions, for id-less tasks) whose ``completed`` flag differs."""
    if len(before) != len(after):
        raise ValueError(
            f"Task lists differ in length ({len(before)} vs {len(after)}); "
            "expected the output of evaluate() for the same input"
        )
    return [
        new.get("id", index)
        for index, (old, new) in enumerate(zip(before, after))
        if bool(old.get("completed")) != bool(new.get("completed"))
    ]
