from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from ..core.constants import CLOCK_FORMAT, DAY_KEY_FORMAT
from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, DAY_KEY_FORMAT).date()


def to_day_key(value: date | datetime | str) -> str:
    """Normalize a date-like value into an opaque YYYY-MM-DD day key.

    Day keys are compared as strings, never converted to instants.
    """
    if value is None:
        raise ValidationError("A day (YYYY-MM-DD) is required")
    if isinstance(value, str):
        try:
            return parse_iso_date(value.strip()).strftime(DAY_KEY_FORMAT)
        except ValueError:
            raise ValidationError(f"Invalid day key: {value!r} (expected YYYY-MM-DD)")
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime(DAY_KEY_FORMAT)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, floored (negative when end < start)."""
    return int((end - start).total_seconds() // 60)


def format_clock(value: Optional[datetime]) -> str:
    return value.strftime(CLOCK_FORMAT) if value else "-"


def utcnow() -> datetime:
    """Current UTC time, naive (matches what MySQL DATETIME columns hand back).

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class DayRange:
    """Inclusive range of day keys."""

    start: str
    end: str

    @classmethod
    def of(cls, start: date | datetime | str, end: date | datetime | str) -> "DayRange":
        start_key = to_day_key(start)
        end_key = to_day_key(end)
        if end_key < start_key:
            raise ValidationError(f"Invalid date range: {start_key} is after {end_key}")
        return cls(start=start_key, end=end_key)

    def contains(self, day: str) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, other: "DayRange") -> bool:
        return self.start <= other.end and other.start <= self.end
