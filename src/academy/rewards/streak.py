"""Daily training streak."""

from __future__ import annotations

from datetime import date, timedelta


def next_streak(last_training_date: date | None, today: date, current_streak: int) -> int:
    """Streak after a training-counting event on ``today``.

    Yesterday extends the streak, a second event today leaves it alone,
    anything else (gap, no history, clock skew) restarts at day one.
    """
    if last_training_date == today - timedelta(days=1):
        return current_streak + 1
    if last_training_date != today:
        return 1
    return current_streak
