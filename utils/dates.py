from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from flask import current_app

from utils.errors import ValidationError


def pantry_today() -> date:
    tz = ZoneInfo(current_app.config.get("PANTRY_TIMEZONE", "America/Regina"))
    return datetime.now(tz).date()


def parse_booking_date(value) -> date:
    # Expect YYYY-MM-DD; impossible dates like 2024-02-30 fail here too
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("date required (YYYY-MM-DD)")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD")


def month_range(day: date) -> tuple[date, date]:
    start = day.replace(day=1)
    next_first = (start + timedelta(days=32)).replace(day=1)
    return start, next_first - timedelta(days=1)


def is_within_booking_window(day: date, today: date) -> bool:
    """
    Clients may book the current month; the next month opens during the
    last week of the current one.
    """
    if (day.year, day.month) == (today.year, today.month):
        return True

    _, month_end = month_range(today)
    in_last_week = (month_end - today).days < 7
    next_start = month_end + timedelta(days=1)
    return in_last_week and (day.year, day.month) == (next_start.year, next_start.month)


def ensure_not_past(day: date, today: date) -> None:
    if day < today:
        raise ValidationError("Cannot book a date in the past")
