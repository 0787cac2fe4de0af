"""Reward ledger tests: bonus, skills, levels, streaks, achievements, history."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest

from academy.rewards.domain import QRCode, QRRedemption, SkillLine, TrainingLog
from academy.rewards.errors import InvalidArgumentError, NotFoundError
from academy.rewards.ledger import RewardLedger
from academy.rewards.notifications import ACHIEVEMENT_CHANNEL, LEVEL_UP_CHANNEL

SATURDAY = datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc)


def _lines(*pairs: tuple[str, int]) -> list[SkillLine]:
    return [SkillLine(skill_id=s, xp_amount=xp) for s, xp in pairs]


class TestManualAward:
    @pytest.mark.asyncio
    async def test_general_award(self, ledger, store, account):
        result = await ledger.award_xp("u1", 100)
        assert result.xp_awarded == 100
        assert result.is_bonus_day is False
        assert result.account.total_xp == 100
        assert result.account.level_xp == 100
        assert result.account.skills == account.skills

        stored = await store.get_account("u1")
        assert stored.total_xp == 100

    @pytest.mark.asyncio
    async def test_does_not_count_as_training(self, ledger, account):
        result = await ledger.award_xp("u1", 50, "serve")
        assert result.account.trainings_completed == 0
        assert result.account.streak == 0
        assert result.account.last_training_date is None

    @pytest.mark.asyncio
    async def test_skill_award_adds_to_skill(self, ledger, account):
        result = await ledger.award_xp("u1", 14, "serve")
        assert result.account.skills["serve"] == 15
        assert result.newly_unlocked == ["ach_serve_1"]

    @pytest.mark.asyncio
    async def test_weekend_doubles_award(self, ledger, account, now):
        now.set(SATURDAY)
        result = await ledger.award_xp("u1", 100)
        assert result.is_bonus_day is True
        assert result.xp_awarded == 200
        assert result.account.total_xp == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -10])
    async def test_non_positive_rejected(self, ledger, store, account, amount):
        with pytest.raises(InvalidArgumentError):
            await ledger.award_xp("u1", amount)
        assert await store.list_history("u1") == []

    @pytest.mark.asyncio
    async def test_unknown_account(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.award_xp("ghost", 10)

    @pytest.mark.asyncio
    async def test_history_entry(self, ledger, store, account):
        await ledger.award_xp("u1", 30, "block")
        [entry] = await store.list_history("u1")
        assert entry.source == "xp_bonus"
        assert entry.label == "block"
        assert entry.xp_earned == 30
        assert entry.day == date(2026, 10, 14)
        assert entry.skill_xp == {"block": 30}


class TestTrainingLog:
    @pytest.mark.asyncio
    async def test_saturday_doubles_each_line(self, ledger, account, now):
        """Two lines of 10 on a Saturday: 40 total, +20 per skill."""
        now.set(SATURDAY)
        result = await ledger.log_training("u1", _lines(("serve", 10), ("block", 10)))

        assert result.xp_awarded == 40
        assert result.account.total_xp == 40
        assert result.account.skills["serve"] == 21
        assert result.account.skills["block"] == 21
        assert result.account.trainings_completed == 1
        assert result.history_entry.skill_xp == {"serve": 20, "block": 20}

    @pytest.mark.asyncio
    async def test_weekday_no_bonus(self, ledger, account):
        result = await ledger.log_training("u1", _lines(("serve", 10), ("block", 10)))
        assert result.xp_awarded == 20
        assert result.account.skills["serve"] == 11

    @pytest.mark.asyncio
    async def test_general_line_only_adds_to_total(self, ledger, account):
        result = await ledger.log_training("u1", _lines(("general", 25)))
        assert result.account.total_xp == 25
        assert "general" not in result.account.skills

    @pytest.mark.asyncio
    async def test_unknown_skill_starts_at_floor(self, ledger, account):
        result = await ledger.log_training("u1", _lines(("jump", 10)))
        assert result.account.skills["jump"] == 11

    @pytest.mark.asyncio
    async def test_zero_line_allowed(self, ledger, account):
        result = await ledger.log_training("u1", _lines(("serve", 0)))
        assert result.xp_awarded == 0
        assert result.account.trainings_completed == 1

    @pytest.mark.asyncio
    async def test_empty_skills_rejected(self, ledger, account):
        with pytest.raises(InvalidArgumentError):
            await ledger.log_training("u1", [])

    @pytest.mark.asyncio
    async def test_negative_line_rejects_whole_event(self, ledger, store, account):
        with pytest.raises(InvalidArgumentError):
            await ledger.log_training("u1", _lines(("serve", 10), ("block", -1)))
        stored = await store.get_account("u1")
        assert stored.skills["serve"] == 1
        assert stored.total_xp == 0

    @pytest.mark.asyncio
    async def test_not_counting_as_training(self, ledger, account):
        result = await ledger.log_training("u1", _lines(("serve", 10)), counts_as_training=False)
        assert result.account.trainings_completed == 0
        assert result.account.streak == 0

    @pytest.mark.asyncio
    async def test_labels_and_sources(self, ledger, store, account):
        await ledger.log_training("u1", _lines(("serve", 5), ("set", 5)))
        await ledger.log_training("u1", _lines(("attack", 5)), label="Attack drill", is_preset=True)

        latest, first = await store.list_history("u1")
        assert latest.label == "Attack drill"
        assert latest.source == "preset"
        assert first.label == "serve+set"
        assert first.source == "training"

    @pytest.mark.asyncio
    async def test_apply_rejects_qr_redemption(self, ledger, account):
        event = QRRedemption(account_id="u1", qr_code=QRCode(id="qr_default_branch"))
        with pytest.raises(InvalidArgumentError):
            await ledger.apply(event)

    @pytest.mark.asyncio
    async def test_apply_accepts_event_object(self, ledger, account):
        result = await ledger.apply(TrainingLog(account_id="u1", skills=_lines(("stamina", 3))))
        assert result.account.skills["stamina"] == 4


class TestLevelUp:
    @pytest.mark.asyncio
    async def test_carry_over_into_next_level(self, ledger, store, account):
        await store.save_account(account.model_copy(update={"level_xp": 900, "total_xp": 900}))
        result = await ledger.award_xp("u1", 150)

        assert result.account.level == 2
        assert result.account.level_xp == 50
        assert result.account.total_xp == 1050
        assert result.previous_level == 1
        assert result.leveled_up is True

    @pytest.mark.asyncio
    async def test_multi_level_jump(self, ledger, account):
        result = await ledger.award_xp("u1", 3700)
        assert result.account.level == 4
        assert result.account.level_xp == 60

    @pytest.mark.asyncio
    async def test_uses_stored_config(self, ledger, store, account, xp_config):
        await store.set_xp_config(xp_config.model_copy(update={"xp_per_level": 100}))
        result = await ledger.award_xp("u1", 100)
        assert result.account.level == 2
        assert result.account.level_xp == 0


class TestStreak:
    @pytest.mark.asyncio
    async def test_consecutive_day_extends(self, ledger, store, account):
        await store.save_account(
            account.model_copy(update={"streak": 5, "last_training_date": date(2026, 10, 13)})
        )
        result = await ledger.log_training("u1", _lines(("serve", 1)))
        assert result.account.streak == 6
        assert result.account.last_training_date == date(2026, 10, 14)

    @pytest.mark.asyncio
    async def test_second_training_same_day_unchanged(self, ledger, account):
        await ledger.log_training("u1", _lines(("serve", 1)))
        result = await ledger.log_training("u1", _lines(("serve", 1)))
        assert result.account.streak == 1
        assert result.account.trainings_completed == 2

    @pytest.mark.asyncio
    async def test_gap_resets(self, ledger, account, now):
        await ledger.log_training("u1", _lines(("serve", 1)))
        now.advance(days=1)
        assert (await ledger.log_training("u1", _lines(("serve", 1)))).account.streak == 2
        now.advance(days=3)
        assert (await ledger.log_training("u1", _lines(("serve", 1)))).account.streak == 1

    @pytest.mark.asyncio
    async def test_seven_day_streak_unlocks(self, ledger, store, account):
        await store.save_account(
            account.model_copy(update={"streak": 6, "last_training_date": date(2026, 10, 13)})
        )
        result = await ledger.log_training("u1", _lines(("stamina", 1)))
        assert "ach_streak_7" in result.newly_unlocked


class TestAchievements:
    @pytest.mark.asyncio
    async def test_unlock_reports_definitions(self, ledger, store, account):
        await store.save_account(account.model_copy(update={"trainings_completed": 9}))
        result = await ledger.log_training("u1", _lines(("set", 1)))

        assert result.newly_unlocked == ["ach_train_10"]
        assert [d.title for d in result.new_achievements] == ["Getting Started"]
        assert (await store.get_account("u1")).unlocked_achievements == ["ach_train_10"]

    @pytest.mark.asyncio
    async def test_not_unlocked_twice(self, ledger, account):
        first = await ledger.award_xp("u1", 20, "serve")
        second = await ledger.award_xp("u1", 20, "serve")
        assert first.newly_unlocked == ["ach_serve_1"]
        assert second.newly_unlocked == []
        assert second.account.unlocked_achievements == ["ach_serve_1"]

    @pytest.mark.asyncio
    async def test_multiple_in_one_event(self, ledger, store, account):
        await store.save_account(account.model_copy(update={"trainings_completed": 9}))
        result = await ledger.log_training("u1", _lines(("serve", 20)))
        assert result.newly_unlocked == ["ach_serve_1", "ach_train_10"]


class TestPublishing:
    @pytest.mark.asyncio
    async def test_publishes_unlock_and_level_up(self, store, clock, account):
        redis = AsyncMock()
        ledger = RewardLedger(store, clock, redis=redis)
        await ledger.award_xp("u1", 1000, "serve")

        channels = [call.args[0] for call in redis.publish.await_args_list]
        assert channels == [ACHIEVEMENT_CHANNEL, LEVEL_UP_CHANNEL]
        level_payload = json.loads(redis.publish.await_args_list[1].args[1])
        assert level_payload == {"account_id": "u1", "old_level": 1, "new_level": 2}

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_reward(self, store, clock, account):
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        ledger = RewardLedger(store, clock, redis=redis)

        result = await ledger.award_xp("u1", 1000)
        assert result.account.level == 2
        assert (await store.get_account("u1")).level == 2
