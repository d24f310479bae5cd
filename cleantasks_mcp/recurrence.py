"""Recurrence rules and the per-kind reset predicates.

A rule answers one question: given the evaluation instant and the instant a
task was last completed, has a new occurrence of the schedule begun since?
Both instants must already be localised (see ``calendar_utils.localize``);
every predicate below reads calendar fields straight off them.

Kinds fall into families with different comparison strategies:

- elapsed duration (``daily``, ``biweekly``)
- week parity (``biweekly_even``, ``biweekly_odd``)
- day of week (``weekly``, ``weekly_<day>``)
- weekday class (``weekdays``, ``weekends``)
- day of month (``monthly``, ``monthly_15``, ``monthly_last``)
- nth weekday of month (``first_<day>`` .. ``fourth_<day>``, ``last_<day>``)
- period index (``quarterly``, ``yearly``)
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from cleantasks_mcp.calendar_utils import (
    days_in_month,
    js_weekday,
    last_weekday_of_month,
    nth_weekday_of_month,
    parse_reset_hour,
    quarter_index,
    same_month,
    week_number,
)

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)

# -1 marks the last occurrence in the month
ORDINALS = {"first": 1, "second": 2, "third": 3, "fourth": 4, "last": -1}

WEEKDAY_CLASSES = {
    "weekdays": frozenset({1, 2, 3, 4, 5}),
    "weekends": frozenset({0, 6}),
}


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RecurrenceFamily(str, Enum):
    """How a kind decides that a new period has begun."""
    DISABLED = "disabled"
    ELAPSED = "elapsed"
    WEEK_PARITY = "week_parity"
    DAY_OF_WEEK = "day_of_week"
    WEEKDAY_CLASS = "weekday_class"
    DAY_OF_MONTH = "day_of_month"
    NTH_WEEKDAY = "nth_weekday"
    PERIOD_INDEX = "period_index"


class RecurrenceKind(str, Enum):
    """Catalog of recurrence kinds (the persisted wire strings)."""
    NONE = "none"
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"

    WEEKLY = "weekly"
    WEEKLY_SUNDAY = "weekly_sunday"
    WEEKLY_MONDAY = "weekly_monday"
    WEEKLY_TUESDAY = "weekly_tuesday"
    WEEKLY_WEDNESDAY = "weekly_wednesday"
    WEEKLY_THURSDAY = "weekly_thursday"
    WEEKLY_FRIDAY = "weekly_friday"
    WEEKLY_SATURDAY = "weekly_saturday"

    BIWEEKLY = "biweekly"
    BIWEEKLY_EVEN = "biweekly_even"
    BIWEEKLY_ODD = "biweekly_odd"

    MONTHLY = "monthly"
    MONTHLY_15 = "monthly_15"
    MONTHLY_LAST = "monthly_last"

    FIRST_SUNDAY = "first_sunday"
    FIRST_MONDAY = "first_monday"
    FIRST_TUESDAY = "first_tuesday"
    FIRST_WEDNESDAY = "first_wednesday"
    FIRST_THURSDAY = "first_thursday"
    FIRST_FRIDAY = "first_friday"
    FIRST_SATURDAY = "first_saturday"

    SECOND_SUNDAY = "second_sunday"
    SECOND_MONDAY = "second_monday"
    SECOND_TUESDAY = "second_tuesday"
    SECOND_WEDNESDAY = "second_wednesday"
    SECOND_THURSDAY = "second_thursday"
    SECOND_FRIDAY = "second_friday"
    SECOND_SATURDAY = "second_saturday"

    THIRD_SUNDAY = "third_sunday"
    THIRD_MONDAY = "third_monday"
    THIRD_TUESDAY = "third_tuesday"
    THIRD_WEDNESDAY = "third_wednesday"
    THIRD_THURSDAY = "third_thursday"
    THIRD_FRIDAY = "third_friday"
    THIRD_SATURDAY = "third_saturday"

    FOURTH_SUNDAY = "fourth_sunday"
    FOURTH_MONDAY = "fourth_monday"
    FOURTH_TUESDAY = "fourth_tuesday"
    FOURTH_WEDNESDAY = "fourth_wednesday"
    FOURTH_THURSDAY = "fourth_thursday"
    FOURTH_FRIDAY = "fourth_friday"
    FOURTH_SATURDAY = "fourth_saturday"

    LAST_SUNDAY = "last_sunday"
    LAST_MONDAY = "last_monday"
    LAST_TUESDAY = "last_tuesday"
    LAST_WEDNESDAY = "last_wednesday"
    LAST_THURSDAY = "last_thursday"
    LAST_FRIDAY = "last_friday"
    LAST_SATURDAY = "last_saturday"

    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def family(self) -> RecurrenceFamily:
        return _FAMILIES[self]

    @property
    def encoded_weekday(self) -> int | None:
        """Weekday (Sunday=0) spelled in the kind name, e.g. weekly_friday -> 5."""
        _, _, suffix = self.value.partition("_")
        if suffix in WEEKDAY_NAMES:
            return WEEKDAY_NAMES.index(suffix)
        return None

    @property
    def ordinal(self) -> int | None:
        """Occurrence number for nth-weekday kinds (last = -1)."""
        prefix, _, _ = self.value.partition("_")
        return ORDINALS.get(prefix)


def _family_of(kind: RecurrenceKind) -> RecurrenceFamily:
    prefix, _, _ = kind.value.partition("_")
    if kind is RecurrenceKind.NONE:
        return RecurrenceFamily.DISABLED
    if kind in (RecurrenceKind.DAILY, RecurrenceKind.BIWEEKLY):
        return RecurrenceFamily.ELAPSED
    if kind in (RecurrenceKind.BIWEEKLY_EVEN, RecurrenceKind.BIWEEKLY_ODD):
        return RecurrenceFamily.WEEK_PARITY
    if prefix == "weekly":
        return RecurrenceFamily.DAY_OF_WEEK
    if kind.value in WEEKDAY_CLASSES:
        return RecurrenceFamily.WEEKDAY_CLASS
    if prefix == "monthly":
        return RecurrenceFamily.DAY_OF_MONTH
    if prefix in ORDINALS:
        return RecurrenceFamily.NTH_WEEKDAY
    return RecurrenceFamily.PERIOD_INDEX


_FAMILIES = {kind: _family_of(kind) for kind in RecurrenceKind}


# ---------------------------------------------------------------------------
# Rule model
# ---------------------------------------------------------------------------

class RecurrenceRule(BaseModel):
    """A validated recurrence rule.

    Accepts the persisted record shape, including the legacy ``type`` key
    in place of ``kind``. Fields that make no sense for the kind (or that
    contradict the weekday spelled in the kind name) are rejected, so a
    valid rule is always unambiguous.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
        frozen=True,
    )

    kind: RecurrenceKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "type"),
        description="Recurrence kind (e.g., 'daily', 'weekly_friday', 'second_friday')",
    )
    time: Optional[str] = Field(
        default=None,
        description="Reset time 'HH:MM' for day-of-week kinds (default '09:00')",
    )
    day_of_week: Optional[int] = Field(
        default=None,
        alias="dayOfWeek",
        description="Target weekday for legacy 'weekly' (0=Sunday .. 6=Saturday)",
        ge=0,
        le=6,
    )
    day_of_month: Optional[int] = Field(
        default=None,
        alias="dayOfMonth",
        description="Target day of month for legacy 'monthly' (1-31)",
        ge=1,
        le=31,
    )

    @field_validator("time", mode="before")
    @classmethod
    def drop_non_string_time(cls, v: Any) -> Any:
        # Non-string times fall back to the default reset hour
        return v if isinstance(v, str) else None

    @model_validator(mode="after")
    def check_fields_match_kind(self) -> "RecurrenceRule":
        family = self.kind.family
        if self.day_of_week is not None:
            if family is not RecurrenceFamily.DAY_OF_WEEK:
                raise ValueError(f"dayOfWeek is not allowed for kind '{self.kind.value}'")
            encoded = self.kind.encoded_weekday
            if encoded is not None and encoded != self.day_of_week:
                raise ValueError(
                    f"dayOfWeek={self.day_of_week} conflicts with kind '{self.kind.value}'"
                )
        if self.day_of_month is not None:
            if self.kind is RecurrenceKind.MONTHLY_15:
                if self.day_of_month != 15:
                    raise ValueError(
                        f"dayOfMonth={self.day_of_month} conflicts with kind 'monthly_15'"
                    )
            elif self.kind is not RecurrenceKind.MONTHLY:
                raise ValueError(f"dayOfMonth is not allowed for kind '{self.kind.value}'")
        return self

    @property
    def family(self) -> RecurrenceFamily:
        return self.kind.family

    @property
    def target_weekday(self) -> int | None:
        """Weekday (Sunday=0) for day-of-week and nth-weekday kinds."""
        encoded = self.kind.encoded_weekday
        return encoded if encoded is not None else self.day_of_week

    @property
    def reset_hour(self) -> int:
        return parse_reset_hour(self.time)


def parse_rule(raw: Any) -> RecurrenceRule | None:
    """Build a rule from a persisted schedule, or None if there is no usable rule.

    Never raises: a malformed schedule is logged and treated as absent.
    """
    if raw is None:
        return None
    if isinstance(raw, RecurrenceRule):
        return raw
    if not isinstance(raw, dict):
        logger.warning(f"Ignoring schedule of type {type(raw).__name__}: expected an object")
        return None
    try:
        return RecurrenceRule.model_validate(raw)
    except ValidationError as e:
        kind = raw.get("kind", raw.get("type"))
        logger.warning(f"Ignoring invalid schedule (kind={kind!r}): {e.error_count()} error(s)")
        return None


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

Predicate = Callable[[datetime, datetime, RecurrenceRule], bool]


def _elapsed(now: datetime, last: datetime) -> timedelta:
    """Real elapsed time. Same-tzinfo subtraction would use wall clock across DST."""
    return now.astimezone(timezone.utc) - last.astimezone(timezone.utc)


def _reset_daily(now: datetime, last: datetime, rule: RecurrenceRule) -> bool:
    return _elapsed(now, last) > timedelta(hours=24)


def _reset_biweekly(now: datetime, last: datetime, rule: RecurrenceRule) -> bool:
    return _elapsed(now, last) // timedelta(days=7) >= 2


def _reset_week_parity(now: datetime, last: datetime, rule: RecurrenceRule) -> bool:
    parity = 0 if rule.kind is RecurrenceKind.BIWEEKLY_EVEN else 1
    current = week_number(now.date())
    if current % 2 != parity:
        return False
    return (now.year, current) != (last.year, week_number(last.date()))


def _reset_day_of_week(now: datetime, last: datetime, rule: RecurrenceRule) -> bool:
    target = rule.target_weekday
    if target is None:
        return False
    delta = (js_weekday(now) - target + 7) % 7
    if delta > 0:
        return True
    return now.hour >= rule.reset_hour


def _reset_weekday_class(now: datetime, last: datetime, rule: RecurrenceRule) -> bool:
    today = js_weekday(now)
    if today not in WEEKDAY_CLASSES[rule.kind.value]:
        return False
    return today != js_weekday(last)


def _reset_on_or_after_day(now: datetime, last: datetime, day: int) -> bool:
    """True once today reaches ``day`` of this month and ``last`` predates it."""
    boundary = date(now.year, now.month, min(day, days_in_month(now.year, now.month)))
    return now.date() >= boundary and last.date() < boundary


def _reset_month_end(now: datetime, last: datetime) -> bool:
    # Three-day trailing window: 29-31 in January, 26-28 in a common February
    window_start = days_in_month(now.year, now.month) - 2
    return _reset_on_or_after_day(now, last, window_start)


def _reset_day_of_month(now: datetime, last: datetime, rule: RecurrenceRule) -> bool:
    if rule.kind is RecurrenceKind.MONTHLY_15:
        return _reset_on_or_after_day(now, last, 15)
    if rule.kind is RecurrenceKind.MONTHLY_LAST:
        return _reset_month_end(now, last)

    day = rule.day_of_month
    if day is None:
        return False
    if day == 1:
        return now.day == 1 and not same_month(now, last)
    if day == 31:
        return _reset_month_end(now, last)
    return _reset_on_or_after_day(now, last, day)


def occurrence_in_month(rule: RecurrenceRule, year: int, month: int) -> date:
    """Date of the rule's nth (or last) weekday within the given month."""
    weekday = rule.target_weekday
    ordinal = rule.kind.ordinal
    if ordinal == -1:
        return last_weekday_of_month(year, month, weekday)
    return nth_weekday_of_month(year, month, weekday, ordinal)


def _reset_nth_weekday(now: datetime, last: datetime, rule: RecurrenceRule) -> bool:
    occurrence = occurrence_in_month(rule, now.year, now.month)
    if now.date() < occurrence:
        return False
    if not same_month(now, last):
        return True
    return last.date() < occurrence_in_month(rule, last.year, last.month)


def _reset_period_index(now: datetime, last: datetime, rule: RecurrenceRule) -> bool:
    if rule.kind is RecurrenceKind.QUARTERLY:
        return (now.year, quarter_index(now)) != (last.year, quarter_index(last))
    return now.year != last.year


_FAMILY_PREDICATES: dict[RecurrenceFamily, Predicate] = {
    RecurrenceFamily.WEEK_PARITY: _reset_week_parity,
    RecurrenceFamily.DAY_OF_WEEK: _reset_day_of_week,
    RecurrenceFamily.WEEKDAY_CLASS: _reset_weekday_class,
    RecurrenceFamily.DAY_OF_MONTH: _reset_day_of_month,
    RecurrenceFamily.NTH_WEEKDAY: _reset_nth_weekday,
    RecurrenceFamily.PERIOD_INDEX: _reset_period_index,
}

RESET_PREDICATES: dict[RecurrenceKind, Predicate] = {
    kind: _FAMILY_PREDICATES[kind.family]
    for kind in RecurrenceKind
    if kind.family in _FAMILY_PREDICATES
}
RESET_PREDICATES[RecurrenceKind.DAILY] = _reset_daily
RESET_PREDICATES[RecurrenceKind.BIWEEKLY] = _reset_biweekly


def is_new_period(rule: RecurrenceRule, now: datetime, last_completed_at: datetime) -> bool:
    """Dispatch to the predicate for ``rule.kind``. Kinds without one never reset."""
    predicate = RESET_PREDICATES.get(rule.kind)
    if predicate is None:
        return False
    return predicate(now, last_completed_at, rule)
