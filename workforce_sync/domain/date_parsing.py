"""Date/time parsing for the textual formats the sources use."""
from __future__ import annotations
from datetime import date, datetime, time
from typing import Optional

MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}


def _year(value: str) -> int:
    year = int(value)
    return year + 2000 if year < 100 else year


def parse_day_month_name(value: str | None) -> Optional[date]:
    """Parse ``05-Dec-2023`` / ``5-Dec-25``; returns None when unparsable."""
    if not value:
        return None
    parts = str(value).strip().split('-')
    if len(parts) != 3:
        return None
    month = MONTHS.get(parts[1].strip()[:3].lower())
    if not month:
        return None
    try:
        return date(_year(parts[2].strip()), month, int(parts[0]))
    except ValueError:
        return None


def parse_us_date(value: str | None) -> Optional[date]:
    """Parse ``M/D/YYYY``."""
    if not value:
        return None
    parts = str(value).strip().split('/')
    if len(parts) < 3:
        return None
    try:
        return date(_year(parts[2].strip()[:4]), int(parts[0]), int(parts[1]))
    except ValueError:
        return None


def parse_attendance_date(value: str | None) -> Optional[date]:
    if not value:
        return None
    text = str(value).strip()
    if '-' in text:
        parsed = parse_day_month_name(text)
        if parsed:
            return parsed
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    if '/' in text:
        return parse_us_date(text.split(' ')[0])
    return None


def parse_clock(value: object | None) -> Optional[time]:
    """Parse ``HH:MM`` / ``HH:MM:SS``; "null" and blanks give None."""
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get('value')
    text = str(value or '').strip()
    if not text or text.lower() == 'null':
        return None
    parts = text.split(':')
    if len(parts) < 2:
        return None
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = int(float(parts[2])) if len(parts) > 2 and parts[2] else 0
        return time(hours, minutes, seconds)
    except ValueError:
        return None


def combine_with_day(value: object | None, day: date) -> Optional[datetime]:
    clock = parse_clock(value)
    if clock is None:
        return None
    return datetime.combine(day, clock)


def parse_punch(value: str | None, day: date) -> Optional[datetime]:
    """Parse a punch like ``12/5/2025 09:05``, ``2025-12-05T09:05:00`` or a bare ``09:05`` anchored to ``day``."""
    if not value:
        return None
    text = str(value).strip()
    if not text or text.lower() == 'null':
        return None
    if 'T' in text:
        try:
            return datetime.fromisoformat(text.replace('Z', '+00:00')).replace(tzinfo=None)
        except ValueError:
            return None
    pieces = text.split()
    if len(pieces) >= 2:
        punch_day = parse_attendance_date(pieces[0]) or day
        return combine_with_day(pieces[1], punch_day)
    return combine_with_day(text, day)
