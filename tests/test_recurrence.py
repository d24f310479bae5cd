"""Tests for recurrence rules and the per-kind reset predicates.

Dates used throughout (2026): Jan 1 is a Thursday, Feb 1 is a Sunday,
Feb 13 is the second Friday of February, Feb 27 the last.
"""

import logging

import pytest
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError


def _at(year, month, day, hour=12, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def _resets(schedule, now, last):
    from cleantasks_mcp.recurrence import RecurrenceRule, is_new_period
    rule = RecurrenceRule.model_validate(schedule)
    return is_new_period(rule, now, last)


# ---------------------------------------------------------------------------
# Rule model
# ---------------------------------------------------------------------------

def test_rule_accepts_legacy_type_key():
    from cleantasks_mcp.recurrence import RecurrenceKind, RecurrenceRule
    rule = RecurrenceRule.model_validate({"type": "weekly", "dayOfWeek": 1, "time": "09:00"})
    assert rule.kind == RecurrenceKind.WEEKLY
    assert rule.day_of_week == 1
    assert rule.target_weekday == 1


def test_rule_rejects_unknown_kind():
    from cleantasks_mcp.recurrence import RecurrenceRule
    with pytest.raises(ValidationError):
        RecurrenceRule.model_validate({"kind": "fortnightly_blah"})


def test_named_weekly_kind_accepts_matching_day_of_week():
    from cleantasks_mcp.recurrence import RecurrenceRule
    rule = RecurrenceRule.model_validate({"kind": "weekly_friday", "dayOfWeek": 5})
    assert rule.target_weekday == 5


def test_named_weekly_kind_rejects_conflicting_day_of_week():
    from cleantasks_mcp.recurrence import RecurrenceRule
    with pytest.raises(ValidationError, match="conflicts"):
        RecurrenceRule.model_validate({"kind": "weekly_friday", "dayOfWeek": 3})


def test_fields_not_allowed_for_kind():
    from cleantasks_mcp.recurrence import RecurrenceRule
    with pytest.raises(ValidationError):
        RecurrenceRule.model_validate({"kind": "daily", "dayOfWeek": 2})
    with pytest.raises(ValidationError):
        RecurrenceRule.model_validate({"kind": "weekly", "dayOfMonth": 2})
    with pytest.raises(ValidationError):
        RecurrenceRule.model_validate({"kind": "monthly_15", "dayOfMonth": 14})
    RecurrenceRule.model_validate({"kind": "monthly_15", "dayOfMonth": 15})


def test_out_of_range_fields():
    from cleantasks_mcp.recurrence import RecurrenceRule
    with pytest.raises(ValidationError):
        RecurrenceRule.model_validate({"kind": "weekly", "dayOfWeek": 7})
    with pytest.raises(ValidationError):
        RecurrenceRule.model_validate({"kind": "monthly", "dayOfMonth": 0})


def test_non_string_time_falls_back_to_default_hour():
    from cleantasks_mcp.recurrence import RecurrenceRule
    rule = RecurrenceRule.model_validate({"kind": "weekly_monday", "time": 930})
    assert rule.time is None
    assert rule.reset_hour == 9


def test_parse_rule_is_lenient(caplog):
    from cleantasks_mcp.recurrence import parse_rule
    assert parse_rule(None) is None
    assert parse_rule("daily") is None
    with caplog.at_level(logging.WARNING, logger="cleantasks_mcp.recurrence"):
        assert parse_rule({"kind": "fortnightly_blah"}) is None
    assert "fortnightly_blah" in caplog.text


def test_kind_metadata():
    from cleantasks_mcp.recurrence import RecurrenceFamily, RecurrenceKind
    assert RecurrenceKind.SECOND_FRIDAY.family == RecurrenceFamily.NTH_WEEKDAY
    assert RecurrenceKind.SECOND_FRIDAY.ordinal == 2
    assert RecurrenceKind.SECOND_FRIDAY.encoded_weekday == 5
    assert RecurrenceKind.LAST_SUNDAY.ordinal == -1
    assert RecurrenceKind.WEEKLY_SATURDAY.encoded_weekday == 6
    assert RecurrenceKind.WEEKLY.encoded_weekday is None
    assert RecurrenceKind.MONTHLY_LAST.family == RecurrenceFamily.DAY_OF_MONTH
    assert RecurrenceKind.WEEKDAYS.family == RecurrenceFamily.WEEKDAY_CLASS
    assert RecurrenceKind.BIWEEKLY.family == RecurrenceFamily.ELAPSED
    assert RecurrenceKind.YEARLY.family == RecurrenceFamily.PERIOD_INDEX


def test_every_kind_but_none_has_a_predicate():
    from cleantasks_mcp.recurrence import RESET_PREDICATES, RecurrenceKind
    assert set(RESET_PREDICATES) == set(RecurrenceKind) - {RecurrenceKind.NONE}


def test_catalog_wire_strings_parse():
    from cleantasks_mcp.recurrence import RecurrenceRule
    catalog = [
        "none", "daily", "weekdays", "weekends", "weekly",
        "weekly_sunday", "weekly_monday", "weekly_tuesday", "weekly_wednesday",
        "weekly_thursday", "weekly_friday", "weekly_saturday",
        "biweekly", "biweekly_even", "biweekly_odd",
        "monthly", "monthly_15", "monthly_last",
        "first_sunday", "first_saturday", "second_sunday", "second_friday",
        "second_saturday", "third_friday", "fourth_tuesday",
        "last_sunday", "last_monday", "last_friday",
        "quarterly", "yearly",
    ]
    for kind in catalog:
        assert RecurrenceRule.model_validate({"kind": kind}).kind.value == kind


# ---------------------------------------------------------------------------
# Elapsed duration
# ---------------------------------------------------------------------------

def test_daily():
    now = _at(2026, 2, 20, 12)
    assert _resets({"kind": "daily"}, now, now - timedelta(hours=25))
    assert not _resets({"kind": "daily"}, now, now - timedelta(hours=5))
    assert not _resets({"kind": "daily"}, now, now - timedelta(hours=24))


def test_biweekly_needs_two_full_weeks():
    now = _at(2026, 2, 20, 12)
    assert _resets({"kind": "biweekly"}, now, now - timedelta(days=14))
    assert _resets({"kind": "biweekly"}, now, now - timedelta(days=20))
    assert not _resets({"kind": "biweekly"}, now, now - timedelta(days=13, hours=23))
    assert not _resets({"kind": "biweekly"}, now, now - timedelta(days=7))


# ---------------------------------------------------------------------------
# Week parity
# ---------------------------------------------------------------------------

def test_biweekly_even():
    # Jan 5 is week 1, Jan 8 week 2, Jan 15 week 3, Jan 22 week 4
    assert _resets({"kind": "biweekly_even"}, _at(2026, 1, 8), _at(2026, 1, 5))
    assert not _resets({"kind": "biweekly_even"}, _at(2026, 1, 8, 12), _at(2026, 1, 8, 8))
    assert not _resets({"kind": "biweekly_even"}, _at(2026, 1, 15), _at(2026, 1, 5))
    # Completed on an even week, next even week still resets
    assert _resets({"kind": "biweekly_even"}, _at(2026, 1, 22), _at(2026, 1, 10))


def test_biweekly_odd():
    assert _resets({"kind": "biweekly_odd"}, _at(2026, 1, 15), _at(2026, 1, 8))
    assert not _resets({"kind": "biweekly_odd"}, _at(2026, 1, 8), _at(2026, 1, 5))


def test_week_parity_across_year_boundary():
    assert _resets({"kind": "biweekly_even"}, _at(2027, 1, 8), _at(2026, 1, 10))


# ---------------------------------------------------------------------------
# Day of week
# ---------------------------------------------------------------------------

def test_weekly_friday_after_target_day():
    saturday = _at(2026, 2, 21, 12)
    assert _resets({"kind": "weekly_friday"}, saturday, _at(2026, 2, 20, 10))


def test_weekly_friday_on_target_day_uses_reset_hour():
    last = _at(2026, 2, 20, 7)
    assert not _resets({"kind": "weekly_friday"}, _at(2026, 2, 20, 8), last)
    assert _resets({"kind": "weekly_friday"}, _at(2026, 2, 20, 9), last)
    assert _resets({"kind": "weekly_friday"}, _at(2026, 2, 20, 10), last)


def test_weekly_custom_time():
    schedule = {"kind": "weekly_friday", "time": "19:00"}
    last = _at(2026, 2, 20, 7)
    assert not _resets(schedule, _at(2026, 2, 20, 18, 59), last)
    assert _resets(schedule, _at(2026, 2, 20, 19), last)


def test_weekly_unparseable_time_defaults_to_nine():
    schedule = {"kind": "weekly_friday", "time": "soon"}
    last = _at(2026, 2, 20, 7)
    assert not _resets(schedule, _at(2026, 2, 20, 8), last)
    assert _resets(schedule, _at(2026, 2, 20, 9), last)


def test_legacy_weekly_with_day_of_week():
    schedule = {"kind": "weekly", "dayOfWeek": 1, "time": "09:00"}
    assert _resets(schedule, _at(2026, 2, 23, 10), _at(2026, 2, 16, 10))
    assert not _resets(schedule, _at(2026, 2, 23, 8), _at(2026, 2, 16, 10))


def test_legacy_weekly_without_day_never_resets():
    assert not _resets({"kind": "weekly"}, _at(2026, 2, 23, 10), _at(2026, 1, 1))


# ---------------------------------------------------------------------------
# Weekday class
# ---------------------------------------------------------------------------

def test_weekdays():
    assert _resets({"kind": "weekdays"}, _at(2026, 2, 20), _at(2026, 2, 19))
    # Saturday is not a weekday
    assert not _resets({"kind": "weekdays"}, _at(2026, 2, 21), _at(2026, 2, 20))
    # Same day
    assert not _resets({"kind": "weekdays"}, _at(2026, 2, 20, 17), _at(2026, 2, 20, 8))


def test_weekends():
    assert _resets({"kind": "weekends"}, _at(2026, 2, 22), _at(2026, 2, 21))
    assert not _resets({"kind": "weekends"}, _at(2026, 2, 23), _at(2026, 2, 21))


# ---------------------------------------------------------------------------
# Day of month
# ---------------------------------------------------------------------------

def test_monthly_first():
    schedule = {"kind": "monthly", "dayOfMonth": 1, "time": "09:00"}
    assert _resets(schedule, _at(2026, 2, 1, 10), _at(2026, 1, 1, 9))
    assert not _resets(schedule, _at(2026, 2, 2, 10), _at(2026, 1, 1, 9))
    assert not _resets(schedule, _at(2026, 2, 1, 10), _at(2026, 2, 1, 8))


def test_monthly_arbitrary_day():
    schedule = {"kind": "monthly", "dayOfMonth": 10}
    # Last completion after the 10th of a previous month still resets
    assert _resets(schedule, _at(2026, 2, 10), _at(2026, 1, 25))
    assert not _resets(schedule, _at(2026, 2, 9), _at(2026, 1, 25))
    assert not _resets(schedule, _at(2026, 2, 12), _at(2026, 2, 10))


def test_monthly_day_clamped_to_month_length():
    schedule = {"kind": "monthly", "dayOfMonth": 30}
    assert _resets(schedule, _at(2026, 2, 28), _at(2026, 1, 30))
    assert not _resets(schedule, _at(2026, 2, 27), _at(2026, 1, 30))


def test_monthly_31_uses_month_end_window():
    schedule = {"kind": "monthly", "dayOfMonth": 31}
    assert _resets(schedule, _at(2026, 1, 29), _at(2026, 1, 10))
    assert not _resets(schedule, _at(2026, 1, 28), _at(2026, 1, 10))


def test_monthly_without_day_never_resets():
    assert not _resets({"kind": "monthly"}, _at(2026, 2, 1), _at(2025, 1, 1))


def test_monthly_15():
    assert _resets({"kind": "monthly_15"}, _at(2026, 2, 15), _at(2026, 2, 14))
    assert _resets({"kind": "monthly_15"}, _at(2026, 2, 20), _at(2026, 1, 10))
    assert not _resets({"kind": "monthly_15"}, _at(2026, 2, 14), _at(2026, 1, 10))
    assert not _resets({"kind": "monthly_15"}, _at(2026, 2, 20), _at(2026, 2, 16))


def test_monthly_last():
    # February 2026 has 28 days: window is 26-28
    assert _resets({"kind": "monthly_last"}, _at(2026, 2, 26), _at(2026, 2, 3))
    assert not _resets({"kind": "monthly_last"}, _at(2026, 2, 25), _at(2026, 2, 3))
    assert not _resets({"kind": "monthly_last"}, _at(2026, 2, 27), _at(2026, 2, 26))


def test_monthly_last_leap_february():
    assert not _resets({"kind": "monthly_last"}, _at(2024, 2, 26), _at(2024, 2, 1))
    assert _resets({"kind": "monthly_last"}, _at(2024, 2, 27), _at(2024, 2, 1))


# ---------------------------------------------------------------------------
# Nth weekday of month
# ---------------------------------------------------------------------------

def test_second_friday():
    schedule = {"kind": "second_friday", "time": "09:00"}
    assert _resets(schedule, _at(2026, 2, 13, 10), _at(2026, 1, 10, 9))
    assert not _resets(schedule, _at(2026, 2, 12, 10), _at(2026, 1, 10, 9))
    assert not _resets(schedule, _at(2026, 2, 20), _at(2026, 2, 13, 10))
    # Completed early in the month, before the occurrence
    assert _resets(schedule, _at(2026, 2, 20), _at(2026, 2, 5))


def test_last_friday():
    assert _resets({"kind": "last_friday"}, _at(2026, 2, 27), _at(2026, 2, 20))
    assert not _resets({"kind": "last_friday"}, _at(2026, 2, 26), _at(2026, 1, 30))


def test_first_monday():
    assert _resets({"kind": "first_monday"}, _at(2026, 2, 2), _at(2026, 1, 5))
    assert not _resets({"kind": "first_monday"}, _at(2026, 2, 1), _at(2026, 1, 5))


# ---------------------------------------------------------------------------
# Period index
# ---------------------------------------------------------------------------

def test_quarterly():
    last = _at(2026, 1, 15)
    assert _resets({"kind": "quarterly"}, _at(2026, 4, 1), last)
    assert not _resets({"kind": "quarterly"}, _at(2026, 3, 31), last)
    assert _resets({"kind": "quarterly"}, _at(2027, 1, 15), last)


def test_yearly():
    assert _resets({"kind": "yearly"}, _at(2026, 1, 1, 1), _at(2025, 12, 31, 23))
    assert not _resets({"kind": "yearly"}, _at(2026, 12, 30), _at(2026, 1, 2))


def test_none_never_resets():
    assert not _resets({"kind": "none"}, _at(2026, 2, 20), _at(2020, 1, 1))


def test_biweekly_even_resets_on_next_even_week():
    # Completed in week 2 (Jan 8); week 3 is skipped, week 4 (Jan 22) resets
    last = _at(2026, 1, 8)
    assert not _resets({"kind": "biweekly_even"}, _at(2026, 1, 15), last)
    assert _resets({"kind": "biweekly_even"}, _at(2026, 1, 22), last)


def test_biweekly_counts_real_time_across_dst():
    from cleantasks_mcp.calendar_utils import localize
    from zoneinfo import ZoneInfo
    new_york = ZoneInfo("America/New_York")
    # Clocks spring forward on 2026-03-08: 14 wall-clock days are 13d 23h
    last = localize(datetime(2026, 2, 25, 17, 0, tzinfo=timezone.utc), new_york)
    early = localize(datetime(2026, 3, 11, 16, 30, tzinfo=timezone.utc), new_york)
    on_time = localize(datetime(2026, 3, 11, 17, 0, tzinfo=timezone.utc), new_york)
    assert not _resets({"kind": "biweekly"}, early, last)
    assert _resets({"kind": "biweekly"}, on_time, last)
