"""Service date parsing and formatting - CoolTrack

Service dates are calendar dates. They are stored as YYYY-MM-DD strings and
compared as whole days; clients may still send full ISO timestamps
(e.g. "2025-01-01T00:00:00.000Z"), which are reduced to their date part.
"""
from datetime import date, datetime, timezone
from typing import Optional, Union

DateLike = Union[date, datetime, str]


def today_utc() -> date:
    """Current calendar date in UTC."""
    return datetime.now(timezone.utc).date()


def parse_service_date(value: DateLike) -> date:
    """Parse a service date from a date, datetime or ISO string.

    Raises:
        ValueError: If the value cannot be read as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date '{value}'. Expected YYYY-MM-DD")

    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError as e:
        raise ValueError(f"Invalid date '{value}'. Expected YYYY-MM-DD") from e


def parse_optional_service_date(value: Optional[DateLike]) -> Optional[date]:
    if value is None or value == "":
        return None
    return parse_service_date(value)


def format_date_for_email(value: date) -> str:
    """Format a date as "Monday, April 1, 2025"."""
    return f"{value.strftime('%A')}, {value.strftime('%B')} {value.day}, {value.year}"
