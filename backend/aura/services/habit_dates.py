from __future__ import annotations

import calendar
from datetime import date

from aura.errors import ValidationFailed


def date_key(day: date) -> str:
    """Render a calendar day as the zero-padded YYYY-MM-DD completion key."""
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def month_key(day: date) -> str:
    """Render the month containing `day` as YYYY-MM."""
    return f"{day.year:04d}-{day.month:02d}"


def parse_month_key(value: str | None, *, today: date | None = None) -> tuple[int, int]:
    """Parse YYYY-MM; default to the current month when omitted."""
    if value is None:
        current = today or date.today()
        return current.year, current.month

    parts = value.split("-")
    if len(parts) != 2:
        raise ValidationFailed("Expected YYYY-MM")

    year_text, month_text = parts
    if len(year_text) != 4 or len(month_text) != 2 or not year_text.isdigit() or not month_text.isdigit():
        raise ValidationFailed("Expected YYYY-MM")

    year = int(year_text)
    month_number = int(month_text)

    if month_number < 1 or month_number > 12:
        raise ValidationFailed("Expected YYYY-MM")

    return year, month_number


def normalize_month_key(value: str | None, *, today: date | None = None) -> str:
    year, month_number = parse_month_key(value, today=today)
    return f"{year:04d}-{month_number:02d}"


def parse_date_key(value: str) -> date:
    """Parse a strict YYYY-MM-DD key (no unpadded or datetime forms)."""
    parts = value.split("-")
    if len(parts) != 3 or [len(p) for p in parts] != [4, 2, 2] or not all(p.isdigit() for p in parts):
        raise ValidationFailed("Expected YYYY-MM-DD")

    try:
        return date(int(parts[0]), int(parts[1]), int(parts[2]))
    except ValueError as exc:
        raise ValidationFailed(f"Invalid calendar date: {value}") from exc


def date_in_month(day_key: str, month: str) -> bool:
    return parse_date_key(day_key).strftime("%Y-%m") == month


def shift_month_key(value: str, offset: int) -> str:
    year, month_number = parse_month_key(value)

    absolute_index = (year * 12 + (month_number - 1)) + offset
    next_year, month_zero_based = divmod(absolute_index, 12)
    return f"{next_year:04d}-{month_zero_based + 1:02d}"


def month_days(value: str) -> list[str]:
    """All completion keys of a month, first day to last."""
    year, month_number = parse_month_key(value)
    _, last_day = calendar.monthrange(year, month_number)
    return [date_key(date(year, month_number, day)) for day in range(1, last_day + 1)]
