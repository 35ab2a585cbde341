from datetime import date

import pytest

from utils.dates import ensure_not_past, is_within_booking_window, month_range, parse_booking_date
from utils.errors import ValidationError


@pytest.mark.parametrize("today, day, expected", [
    (date(2026, 10, 5), date(2026, 10, 31), True),
    (date(2026, 10, 5), date(2026, 11, 1), False),
    (date(2026, 10, 25), date(2026, 11, 20), True),
    (date(2026, 10, 24), date(2026, 11, 20), False),
    (date(2026, 12, 28), date(2027, 1, 3), True),
    (date(2026, 10, 25), date(2026, 12, 1), False),
    (date(2024, 2, 23), date(2024, 3, 1), True),
])
def test_booking_window(today, day, expected):
    assert is_within_booking_window(day, today) is expected


def test_month_range():
    assert month_range(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_range(date(2026, 12, 31)) == (date(2026, 12, 1), date(2026, 12, 31))


@pytest.mark.parametrize("value", [None, "", "2024-02-30", "15/01/2099", 20990115])
def test_parse_rejects_bad_dates(value):
    with pytest.raises(ValidationError):
        parse_booking_date(value)


def test_parse_accepts_iso():
    assert parse_booking_date(" 2099-01-15 ") == date(2099, 1, 15)


def test_past_dates_rejected():
    ensure_not_past(date(2026, 10, 19), date(2026, 10, 19))
    with pytest.raises(ValidationError):
        ensure_not_past(date(2026, 10, 18), date(2026, 10, 19))
