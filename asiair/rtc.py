"""A simulated real-time clock that can be set and keeps running."""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta, timezone
from datetime import time as clock_time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class RTC:
    """Clock whose time is set once and then advances with the monotonic clock."""

    def __init__(self) -> None:
        self._base_datetime = datetime.now(timezone.utc)
        self._base_instant = time.monotonic()

    def set_time(
        self,
        year: int,
        month: int,
        day: int,
        hour: int,
        minute: int,
        second: int,
        time_zone: str,
    ) -> None:
        """Set the clock to a local time in the named zone."""
        try:
            zone = ZoneInfo(time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Invalid timezone: {time_zone}") from exc
        try:
            local_date = date(year, month, day)
        except (ValueError, OverflowError) as exc:
            raise ValueError("Invalid date") from exc
        try:
            local_time = clock_time(hour, minute, second)
        except ValueError as exc:
            raise ValueError("Invalid time") from exc

        local = datetime.combine(local_date, local_time, tzinfo=zone)
        offset = local.replace(fold=0).utcoffset()
        if offset != local.replace(fold=1).utcoffset():
            raise ValueError("Ambiguous or nonexistent local time")

        self._base_datetime = local.astimezone(timezone(offset))
        self._base_instant = time.monotonic()

    def now(self) -> datetime:
        """Return the current simulated time with a fixed UTC offset."""
        elapsed = time.monotonic() - self._base_instant
        return self._base_datetime + timedelta(seconds=elapsed)