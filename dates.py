# dates.py
"""
Calendar-date helpers.

Completions are keyed by calendar date only. Every value entering either
store goes through ``to_iso_date`` so both backends persist ``YYYY-MM-DD``.
"""
from datetime import date, datetime, timezone
from numbers import Real
from typing import Any

from errors import ValidationError


def to_iso_date(value: Any) -> str:
    # datetime is a subclass of date, check it first
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        raise ValidationError(f"Invalid date: {value!r}")
    if isinstance(value, Real):
        # legacy epoch milliseconds, read as UTC
        try:
            moment = datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise ValidationError(f"Invalid date: {value!r}")
        return moment.date().isoformat()
    if isinstance(value, str):
        # either exactly YYYY-MM-DD or a complete ISO timestamp
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            if len(text) == 10:
                return date.fromisoformat(text).isoformat()
            return datetime.fromisoformat(text).date().isoformat()
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}")
    raise ValidationError("date is required")


def utcnow() -> datetime:
    """Naive UTC now, the form SQLite DateTime columns round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)
