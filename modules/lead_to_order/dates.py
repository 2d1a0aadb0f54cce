"""
Date handling for sheet cells.

Sheet cells arrive either as ISO strings (Apps Script serializes Date cells
that way) or as en-GB text such as ``11/01/2025 09:30:00`` or
``11-01-2025``. Parsing never raises: unparsable input falls back to the
current instant and the result says so.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

_DATE_PART = re.compile(r'^(\d{1,4})/(\d{1,2})/(\d{1,4})$')
_TIME_PART = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2}))?$')


@dataclass(frozen=True)
class ParsedDate:
    """Outcome of parsing a date-like cell."""
    value: datetime
    fallback: bool = False

    @property
    def sort_key(self) -> float:
        """Epoch seconds; fallback values sort as the oldest possible."""
        if self.fallback:
            return 0.0
        return self.value.timestamp()

    def local_date(self) -> date:
        try:
            return self.value.astimezone().date()
        except (ValueError, OverflowError):
            return self.value.date()


def _aware(value: datetime) -> datetime:
    # Naive values are wall-clock times in the local zone
    if value.tzinfo is None:
        return value.astimezone()
    return value


def _now(now: Optional[datetime]) -> datetime:
    return _aware(now) if now is not None else datetime.now().astimezone()


def _parse_iso(text: str) -> Optional[datetime]:
    candidate = text[:-1] + '+00:00' if text.endswith('Z') else text
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def _parse_sheet_text(text: str) -> Optional[datetime]:
    parts = text.replace('-', '/').split()
    if not parts or len(parts) > 2:
        return None

    date_match = _DATE_PART.match(parts[0])
    time_match = _TIME_PART.match(parts[1] if len(parts) > 1 else '00:00:00')
    if not date_match or not time_match:
        return None

    first, second, third = date_match.groups()
    if len(first) == 4:
        year, month, day = int(first), int(second), int(third)
    else:
        day, month, year = int(first), int(second), int(third)
        if len(third) <= 2:
            year += 2000

    hour, minute, second_ = time_match.groups()
    try:
        return datetime(year, month, day, int(hour), int(minute), int(second_ or 0))
    except ValueError:
        return None


def parse_sheet_datetime(value, now: Optional[datetime] = None) -> ParsedDate:
    """
    Parse a sheet cell into an aware datetime.

    Args:
        value: Raw cell value (string, datetime, or None)
        now: Instant to use as the fallback (defaults to the current time)

    Returns:
        ParsedDate whose ``fallback`` flag is set when the cell could not be
        parsed and ``value`` is the fallback instant.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip() if value is not None else ''
        parsed = (_parse_iso(text) or _parse_sheet_text(text)) if text else None

    if parsed is None:
        return ParsedDate(_now(now), fallback=True)

    try:
        result = _aware(parsed)
        # Must also be expressible in the local zone (year 1 / year 9999 edges)
        result.astimezone()
    except (ValueError, OverflowError):
        return ParsedDate(_now(now), fallback=True)
    return ParsedDate(result)


def parse_optional_date(value) -> Optional[date]:
    """Calendar day of a date cell, or None when blank or unparsable."""
    parsed = parse_sheet_datetime(value)
    if parsed.fallback:
        return None
    return parsed.local_date()


def format_day(value, fmt: str = '%b %d, %Y') -> str:
    """Display form of a date cell ('-' when it has no usable date)."""
    parsed = parse_sheet_datetime(value)
    if parsed.fallback:
        return '-'
    return parsed.value.astimezone().strftime(fmt)


def sheet_timestamp(moment: Optional[datetime] = None) -> str:
    """Timestamp text in the sheet's en-GB layout (dd/mm/yyyy HH:MM:SS)."""
    moment = moment or datetime.now()
    return moment.strftime('%d/%m/%Y %H:%M:%S')
