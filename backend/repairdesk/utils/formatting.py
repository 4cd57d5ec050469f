from __future__ import annotations
from datetime import date, datetime
from typing import Any, Optional


def format_currency(cents: Optional[int], symbol: str = '$') -> str:
    """Render integer cents as a dollar string: 123450 -> '$1,234.50'."""
    cents = int(cents or 0)
    sign = '-' if cents < 0 else ''
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{symbol}{whole:,}.{frac:02d}"


def format_date(value: Any) -> str:
    if value is None or value == '':
        return ''
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value)
    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).date().isoformat()
    except ValueError:
        return text


def parse_date(value: Any, field: str = 'date') -> Optional[date]:
    """Parse YYYY-MM-DD (or a full ISO timestamp); raises ValueError naming the field."""
    if value in (None, ''):
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).date()
    except ValueError:
        raise ValueError(f'{field} must be YYYY-MM-DD')


def to_cents(value: Any, field: str = 'amount') -> int:
    """Accept an integer cents value; floats and numeric strings are read as cents too."""
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        raise ValueError(f'{field} must be a number')

__all__ = ['format_currency', 'format_date', 'parse_date', 'to_cents']
