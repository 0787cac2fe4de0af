"""Reward ledger: turns one reward event into a committed account update.

Order of operations for every event:
1. Weekend bonus doubles each XP line (once, never compounded)
2. Real skills get the bonus-adjusted line amount added to their cumulative XP
3. The running total goes through the level-up loop
4. Training-counting events bump the training counter and the daily streak
5. A history entry is built
6. Achievements are evaluated against the updated account
7. Account, history entry and QR use count are committed together
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from academy.rewards.achievements import newly_unlocked
from academy.rewards.clock import BONUS_MULTIPLIER, Clock, is_bonus_day
from academy.rewards.domain import (
    GENERAL_SKILL,
    AchievementDefinition,
    ManualAward,
    QRRedemption,
    RewardEvent,
    RewardResult,
    SkillLine,
    TrainingHistoryEntry,
    TrainingLog,
)
from academy.rewards.errors import InvalidArgumentError, NotFoundError
from academy.rewards.level_math import apply_xp
from academy.rewards.locks import KeyedLocks, account_key
from academy.rewards.notifications import publish_reward
from academy.rewards.store import RewardStore
from academy.rewards.streak import next_streak

logger = logging.getLogger(__name__)

SOURCE_BONUS = "xp_bonus"
SOURCE_TRAINING = "training"
SOURCE_PRESET = "preset"
SOURCE_QR = "qr"


class RewardLedger:
    """Applies reward events to accounts, one account at a time."""

    def __init__(
        self,
        store: RewardStore,
        clock: Clock,
        locks: KeyedLocks | None = None,
        redis: object | None = None,
        default_skill_value: int = 1,
    ) -> None:
        self.store = store
        self.clock = clock
        self.locks = locks if locks is not None else KeyedLocks()
        self.redis = redis
        self.default_skill_value = default_skill_value

    async def apply(self, event: RewardEvent) -> RewardResult:
        """Apply a manual award or training log under the account lock."""
        if isinstance(event, QRRedemption):
            raise InvalidArgumentError("QR redemptions must go through the redemption guard")
        async with self.locks.hold(account_key(event.account_id)):
            result = await self.apply_locked(event)
        await self.publish(result)
        return result

    async def publish(self, result: RewardResult) -> None:
        """Fan out unlocks and level-ups. Call after the locks are released."""
        await publish_reward(self.redis, result)

    async def award_xp(self, account_id: str, xp_amount: int, skill_id: str | None = None) -> RewardResult:
        return await self.apply(ManualAward(account_id=account_id, xp_amount=xp_amount, skill_id=skill_id))

    async def log_training(
        self,
        account_id: str,
        skills: Sequence[SkillLine],
        label: str | None = None,
        is_preset: bool = False,
        counts_as_training: bool = True,
    ) -> RewardResult:
        return await self.apply(
            TrainingLog(
                account_id=account_id,
                skills=list(skills),
                label=label,
                is_preset=is_preset,
                counts_as_training=counts_as_training,
            )
        )

    async def apply_locked(
        self,
        event: RewardEvent,
        force_achievement_id: str | None = None,
    ) -> RewardResult:
        """Apply ``event``. The caller must already hold the account lock.

        Raises before any write; once ``store.commit`` returns the event is
        fully applied. Nothing is published here: the caller publishes once
        its locks are released.
        """
        lines = _event_lines(event)

        account = await self.store.get_account(event.account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {event.account_id}")

        config = await self.store.get_xp_config()
        definitions = await self.store.list_achievements()

        now = self.clock.now()
        today = now.date()
        bonus_day = is_bonus_day(today)
        factor = BONUS_MULTIPLIER if bonus_day else 1
        previous_level = account.level

        total = 0
        skill_xp: dict[str, int] = {}
        for line in lines:
            amount = line.xp_amount * factor
            total += amount
            if line.skill_id and line.skill_id != GENERAL_SKILL:
                base = account.skills.get(line.skill_id, self.default_skill_value)
                account.skills[line.skill_id] = base + amount
                skill_xp[line.skill_id] = skill_xp.get(line.skill_id, 0) + amount

        account.level_xp, account.level, account.total_xp = apply_xp(
            account.level_xp, account.level, account.total_xp, total, config
        )

        if _counts_as_training(event):
            account.trainings_completed += 1
            account.streak = next_streak(account.last_training_date, today, account.streak)
            account.last_training_date = today

        label, source, qr_id = _describe(event)
        entry = TrainingHistoryEntry(
            account_id=account.id,
            day=today,
            label=label,
            xp_earned=total,
            source=source,
            qr_id=qr_id,
            skill_xp=skill_xp,
            created_at=now,
        )

        unlocked: list[str] = []
        if force_achievement_id and account.unlock(force_achievement_id):
            unlocked.append(force_achievement_id)
        for achievement_id in newly_unlocked(account, definitions):
            account.unlock(achievement_id)
            unlocked.append(achievement_id)

        await self.store.commit(account, entry, redeemed_qr_id=qr_id)

        result = RewardResult(
            account=account,
            xp_awarded=total,
            is_bonus_day=bonus_day,
            newly_unlocked=unlocked,
            new_achievements=_definitions_for(unlocked, definitions),
            previous_level=previous_level,
            history_entry=entry,
        )

        logger.info(
            "Reward applied: account=%s source=%s xp=%d bonus=%s level=%d->%d unlocked=%s",
            account.id, source, total, bonus_day, previous_level, account.level, unlocked,
        )
        return result


def _event_lines(event: RewardEvent) -> list[SkillLine]:
    """Validated XP lines for ``event``."""
    if isinstance(event, ManualAward):
        if event.xp_amount <= 0:
            raise InvalidArgumentError("xp_amount must be positive")
        return [SkillLine(skill_id=event.skill_id or GENERAL_SKILL, xp_amount=event.xp_amount)]

    if isinstance(event, TrainingLog):
        if not event.skills:
            raise InvalidArgumentError("Training log has no skills to award")
        lines = list(event.skills)
    else:
        lines = event.qr_code.payout_lines()

    for line in lines:
        if line.xp_amount < 0:
            raise InvalidArgumentError(f"Negative xp_amount for skill {line.skill_id}")
    return lines


def _counts_as_training(event: RewardEvent) -> bool:
    if isinstance(event, ManualAward):
        return False
    if isinstance(event, TrainingLog):
        return event.counts_as_training
    return True


def _describe(event: RewardEvent) -> tuple[str, str, str | None]:
    """(label, source, qr_id) for the history entry."""
    if isinstance(event, ManualAward):
        return event.skill_id or GENERAL_SKILL, SOURCE_BONUS, None
    if isinstance(event, TrainingLog):
        label = event.label or "+".join(line.skill_id for line in event.skills)
        return label, SOURCE_PRESET if event.is_preset else SOURCE_TRAINING, None
    return event.qr_code.history_label(), SOURCE_QR, event.qr_code.id


def _definitions_for(
    achievement_ids: list[str],
    definitions: list[AchievementDefinition],
) -> list[AchievementDefinition]:
    by_id = {d.id: d for d in definitions}
    return [by_id[a] for a in achievement_ids if a in by_id]
