"""Clock and reporting-window helpers.

Windows are computed in the configured report timezone and returned as UTC
bounds `[start, end)` so they can be compared against stored `created_at`.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from coinledger.common.config import settings

PERIODS = ("day", "week", "month")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def report_zone() -> ZoneInfo:
    return ZoneInfo(settings.report_timezone)


def _to_utc(local: datetime) -> datetime:
    return local.astimezone(timezone.utc)


def period_window(period: str, now: datetime, tz: ZoneInfo | None = None) -> tuple[datetime, datetime]:
    """Return the UTC bounds of today / this week (Mon-Sun) / this month."""

    if period not in PERIODS:
        raise ValueError(f"unknown period: {period}")
    tz = tz or report_zone()
    local_now = now.astimezone(tz)
    midnight = datetime(local_now.year, local_now.month, local_now.day, tzinfo=tz)
    if period == "day":
        start, end = midnight, midnight + timedelta(days=1)
    elif period == "week":
        start = midnight - timedelta(days=local_now.weekday())
        end = start + timedelta(days=7)
    else:
        start = datetime(local_now.year, local_now.month, 1, tzinfo=tz)
        end = _first_of_next_month(start.year, start.month, tz)
    return _to_utc(start), _to_utc(end)


def month_window(year, month, tz: ZoneInfo | None = None) -> tuple[datetime, datetime] | None:
    """UTC bounds of one calendar month, or None when year/month are unusable."""

    try:
        y, m = int(year), int(month)
    except (TypeError, ValueError):
        return None
    if m < 1 or m > 12:
        return None
    tz = tz or report_zone()
    start = datetime(y, m, 1, tzinfo=tz)
    return _to_utc(start), _to_utc(_first_of_next_month(y, m, tz))


def _first_of_next_month(year: int, month: int, tz: ZoneInfo) -> datetime:
    if month == 12:
        return datetime(year + 1, 1, 1, tzinfo=tz)
    return datetime(year, month + 1, 1, tzinfo=tz)


def date_prefix(year, month, day=None) -> str | None:
    """`YYYY-MM` or `YYYY-MM-DD` prefix for filtering the `date` string field."""

    try:
        y, m = int(year), int(month)
    except (TypeError, ValueError):
        return None
    if m < 1 or m > 12:
        return None
    prefix = f"{y:04d}-{m:02d}"
    if day is None:
        return prefix
    try:
        d = int(day)
    except (TypeError, ValueError):
        return prefix
    if 1 <= d <= 31:
        return f"{prefix}-{d:02d}"
    return prefix


def normalize_date_string(value) -> str | None:
    """Normalize a date/ISO timestamp to `YYYY-MM-DD`; raises ValueError if unparseable."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if len(text) >= 10:
        try:
            return date.fromisoformat(text[:10]).isoformat()
        except ValueError:
            pass
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    return parsed.date().isoformat()
