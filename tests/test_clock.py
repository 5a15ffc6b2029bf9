"""Reporting windows and date normalization."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from coinledger.common.clock import date_prefix, month_window, normalize_date_string, period_window

UTC = ZoneInfo("UTC")


def test_day_window_is_local_midnight_to_midnight():
    """Day window covers one calendar day in the report zone."""

    start, end = period_window("day", datetime(2026, 10, 21, 15, 30, tzinfo=timezone.utc), UTC)
    assert start == datetime(2026, 10, 21, tzinfo=timezone.utc)
    assert end == datetime(2026, 10, 22, tzinfo=timezone.utc)


def test_week_window_starts_on_monday():
    """Week window runs Monday to Monday."""

    # 2026-10-21 is a Wednesday.
    start, end = period_window("week", datetime(2026, 10, 21, 9, 0, tzinfo=timezone.utc), UTC)
    assert start == datetime(2026, 10, 19, tzinfo=timezone.utc)
    assert end == datetime(2026, 10, 26, tzinfo=timezone.utc)


def test_month_window_rolls_over_december():
    """December's window ends on January 1st of the next year."""

    start, end = period_window("month", datetime(2026, 12, 31, 23, 0, tzinfo=timezone.utc), UTC)
    assert start == datetime(2026, 12, 1, tzinfo=timezone.utc)
    assert end == datetime(2027, 1, 1, tzinfo=timezone.utc)


def test_day_window_follows_report_timezone():
    """03:00 UTC is still the previous evening in New York."""

    start, end = period_window("day", datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc), ZoneInfo("America/New_York"))
    assert start == datetime(2026, 10, 18, 4, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 10, 19, 4, 0, tzinfo=timezone.utc)


def test_unknown_period_raises():
    """Only day, week and month are valid periods."""

    with pytest.raises(ValueError):
        period_window("year", datetime(2026, 1, 1, tzinfo=timezone.utc), UTC)


def test_month_window_rejects_bad_month():
    """Unusable year or month values yield no window."""

    assert month_window(2026, 13, UTC) is None
    assert month_window(None, None, UTC) is None
    assert month_window(2026, 2, UTC) == (
        datetime(2026, 2, 1, tzinfo=timezone.utc),
        datetime(2026, 3, 1, tzinfo=timezone.utc),
    )


def test_date_prefix():
    """Prefixes match the stored YYYY-MM-DD date strings."""

    assert date_prefix(2024, 8) == "2024-08"
    assert date_prefix(2024, 8, 5) == "2024-08-05"
    assert date_prefix(2024, 8, 40) == "2024-08"
    assert date_prefix(2024, 0) is None


def test_normalize_date_string():
    """Dates and ISO timestamps collapse to YYYY-MM-DD."""

    assert normalize_date_string("2024-08-15") == "2024-08-15"
    assert normalize_date_string("2024-08-15T23:10:00Z") == "2024-08-15"
    assert normalize_date_string(None) is None
    with pytest.raises(ValueError):
        normalize_date_string("not-a-date")
