"""Time windows and the compact UTC timestamp format used by the search API."""

from datetime import datetime
from typing import Optional

import pendulum
from pydantic import BaseModel, model_validator

COMPACT_FORMAT = "YYYYMMDDHHmmss"


class TimeWindow(BaseModel):
    """Half-open interval [start, end) in UTC."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_order(self) -> "TimeWindow":
        if self.end <= self.start:
            raise ValueError("window end must be after start")
        return self

    def contains(self, moment: Optional[datetime]) -> bool:
        """Unknown times are eligible for every window."""
        if moment is None:
            return True
        return self.start <= moment < self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()} .. {self.end.isoformat()}"


def utcnow() -> pendulum.DateTime:
    return pendulum.now("UTC")


def lookback_window(hours: int, end: Optional[datetime] = None) -> TimeWindow:
    """Window of ``hours`` ending at ``end`` (default now), truncated to the second."""
    end_dt = pendulum.instance(end).in_timezone("UTC") if end else utcnow()
    end_dt = end_dt.replace(microsecond=0)
    return TimeWindow(start=end_dt.subtract(hours=hours), end=end_dt)


def aligned_window(hours: int, now: Optional[datetime] = None) -> TimeWindow:
    """Most recent complete window whose end is a multiple of ``hours`` since the epoch.

    Re-running at any moment within the same period yields the same window.
    """
    now_dt = pendulum.instance(now).in_timezone("UTC") if now else utcnow()
    span = hours * 3600
    end_ts = (int(now_dt.timestamp()) // span) * span
    end_dt = pendulum.from_timestamp(end_ts, tz="UTC")
    return TimeWindow(start=end_dt.subtract(hours=hours), end=end_dt)


def compact_utc(moment: datetime) -> str:
    """Format as yyyyMMddHHmmss in UTC."""
    return pendulum.instance(moment).in_timezone("UTC").format(COMPACT_FORMAT)


def parse_compact_utc(value: Optional[str]) -> Optional[pendulum.DateTime]:
    """Parse ``20250101123000`` or ``20250101T123000Z``; anything else is None."""
    if not value or not isinstance(value, str):
        return None
    digits = value.strip().replace("T", "").replace("Z", "")
    if len(digits) != 14 or not digits.isdigit():
        return None
    try:
        return pendulum.from_format(digits, COMPACT_FORMAT, tz="UTC")
    except ValueError:
        return None


def parse_iso(value: str) -> pendulum.DateTime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given."""
    parsed = pendulum.parse(value, tz="UTC")
    if not isinstance(parsed, pendulum.DateTime):
        raise ValueError(f"Not a timestamp: {value}")
    return parsed.in_timezone("UTC")
