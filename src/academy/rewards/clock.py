"""Reference-timezone clock.

Every day-granular rule (streak days, weekend bonus, daily QR uniqueness)
is evaluated against one configured timezone, never the host's local time.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

BONUS_MULTIPLIER = 2


class Clock:
    """Wall clock pinned to a reference timezone."""

    def __init__(self, tz_name: str, now_fn: Callable[[], datetime] | None = None) -> None:
        self.tz = ZoneInfo(tz_name)
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        """Current instant, expressed in the reference timezone."""
        return self._now_fn().astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def localize(self, dt: datetime) -> datetime:
        """Attach the reference timezone to a naive datetime."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=self.tz)
        return dt


def is_bonus_day(day: date) -> bool:
    """Saturday and Sunday pay double XP."""
    return day.weekday() >= 5
