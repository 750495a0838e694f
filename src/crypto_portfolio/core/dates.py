"""Calendar-date helpers shared by the ledger and the price service."""

from datetime import date, datetime, timezone
from typing import Optional, Union


def today() -> date:
    return date.today()


def parse_date(
    value: Union[str, date, datetime, None], default: Optional[date] = None
) -> date:
    """Parse an ISO-8601 calendar date.

    ``datetime`` values and ISO datetime strings (``T`` or space separated)
    are truncated to their date. Empty input returns ``default`` (today
    when no default is given). Raises ValueError for anything else that is
    not a valid ISO date, including trailing characters after the day.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = "" if value is None else str(value).strip()
    if text == "":
        return default if default is not None else today()
    if len(text) > 10:
        if text[10] not in ("T", " "):
            raise ValueError(f"Invalid isoformat string: {text!r}")
        return datetime.fromisoformat(text).date()
    return date.fromisoformat(text)


def from_timestamp_ms(ms: float) -> date:
    """UTC calendar day of a millisecond epoch timestamp."""
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).date()
