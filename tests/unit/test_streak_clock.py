"""Streak rule and reference-timezone clock tests."""

from datetime import date, datetime, timezone

from academy.rewards.clock import BONUS_MULTIPLIER, Clock, is_bonus_day
from academy.rewards.streak import next_streak

TODAY = date(2026, 10, 14)


class TestNextStreak:
    def test_yesterday_extends(self):
        assert next_streak(date(2026, 10, 13), TODAY, 5) == 6

    def test_gap_resets_to_one(self):
        assert next_streak(date(2026, 10, 11), TODAY, 5) == 1

    def test_same_day_unchanged(self):
        assert next_streak(TODAY, TODAY, 5) == 5

    def test_first_ever_training(self):
        assert next_streak(None, TODAY, 0) == 1

    def test_future_date_resets(self):
        """A last training date ahead of today (clock skew) restarts the streak."""
        assert next_streak(date(2026, 10, 20), TODAY, 9) == 1

    def test_across_month_boundary(self):
        assert next_streak(date(2026, 9, 30), date(2026, 10, 1), 2) == 3


class TestBonusDay:
    def test_weekend_is_bonus(self):
        assert is_bonus_day(date(2026, 10, 17)) is True  # Saturday
        assert is_bonus_day(date(2026, 10, 18)) is True  # Sunday

    def test_weekdays_are_not_bonus(self):
        for day in range(12, 17):  # Monday..Friday
            assert is_bonus_day(date(2026, 10, day)) is False

    def test_multiplier_is_double(self):
        assert BONUS_MULTIPLIER == 2


class TestClock:
    def test_now_in_reference_timezone(self):
        clock = Clock("Europe/Minsk", lambda: datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc))
        now = clock.now()
        assert now.hour == 12
        assert now.utcoffset().total_seconds() == 3 * 3600

    def test_today_follows_reference_timezone_not_utc(self):
        # 22:30 UTC Friday is already Saturday in Minsk.
        clock = Clock("Europe/Minsk", lambda: datetime(2026, 10, 16, 22, 30, tzinfo=timezone.utc))
        assert clock.today() == date(2026, 10, 17)
        assert is_bonus_day(clock.today()) is True

    def test_localize_attaches_timezone_to_naive(self):
        clock = Clock("Europe/Minsk")
        local = clock.localize(datetime(2026, 10, 14, 12, 0))
        assert local.tzinfo is not None
        assert local.astimezone(timezone.utc).hour == 9

    def test_localize_keeps_aware(self):
        clock = Clock("Europe/Minsk")
        aware = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)
        assert clock.localize(aware) is aware

    def test_default_source_is_aware(self):
        assert Clock("UTC").now().tzinfo is not None
