"""Engine types: accounts, XP config, achievements, QR codes and reward events.

Stored shapes (conditions, skill lines) keep camelCase aliases so definitions
written by the admin UI round-trip unchanged.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

GENERAL_SKILL = "general"

# Leaderboard orderings: total XP, one skill's cumulative XP, or current streak.
RankMetric = Literal["total_xp", "skill", "streak"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class XPConfig(CamelModel):
    """Account-level curve: threshold(level) = floor(xp_per_level * multiplier^(level-1))."""

    xp_per_level: int = Field(gt=0)
    multiplier: float = Field(gt=1)


class SkillLine(CamelModel):
    skill_id: str
    xp_amount: int


class SkillThreshold(CamelModel):
    skill: str
    value: int = Field(ge=0)


class AchievementConditions(CamelModel):
    """Conjunction of optional thresholds. Empty means always satisfied."""

    min_level: int | None = Field(default=None, ge=0)
    min_trainings: int | None = Field(default=None, ge=0)
    min_streak: int | None = Field(default=None, ge=0)
    min_total_xp: int | None = Field(default=None, ge=0)
    min_skill_value: SkillThreshold | None = None


class AchievementDefinition(CamelModel):
    id: str
    title: str
    description: str = ""
    image_url: str | None = None
    conditions: AchievementConditions = Field(default_factory=AchievementConditions)


class QRCode(CamelModel):
    """A check-in code. ``skills`` (preset form) wins over ``skill_id``/``xp_amount``."""

    id: str
    title: str = ""
    xp_amount: int = 150
    skill_id: str | None = None
    skills: list[SkillLine] | None = None
    achievement_id: str | None = None
    max_uses: int | None = None
    uses_count: int = 0
    expires_at: datetime | None = None
    created_at: datetime | None = None

    def payout_lines(self) -> list[SkillLine]:
        if self.skills:
            return list(self.skills)
        return [SkillLine(skill_id=self.skill_id or GENERAL_SKILL, xp_amount=self.xp_amount)]

    def history_label(self) -> str:
        if self.skills:
            return self.title
        return self.skill_id or GENERAL_SKILL


class QRStats(CamelModel):
    """Scan totals for one code, counted from training history."""

    total_scans: int = 0
    unique_users: int = 0
    total_xp_awarded: int = 0


class Account(CamelModel):
    id: str
    level_xp: int = 0
    level: int = 1
    total_xp: int = 0
    skills: dict[str, int] = Field(default_factory=dict)
    trainings_completed: int = 0
    streak: int = 0
    last_training_date: date | None = None
    # Ordered set: unlock order is kept for display.
    unlocked_achievements: list[str] = Field(default_factory=list)

    def has_achievement(self, achievement_id: str) -> bool:
        return achievement_id in self.unlocked_achievements

    def unlock(self, achievement_id: str) -> bool:
        """Record an unlock. Returns False if it was already unlocked."""
        if achievement_id in self.unlocked_achievements:
            return False
        self.unlocked_achievements.append(achievement_id)
        return True


# --- Reward events (ephemeral, consumed once by the ledger) ---


class ManualAward(CamelModel):
    """Bonus-only XP from a trainer. Never counts as a training."""

    account_id: str
    xp_amount: int
    skill_id: str | None = None


class TrainingLog(CamelModel):
    account_id: str
    skills: list[SkillLine]
    counts_as_training: bool = True
    label: str | None = None
    is_preset: bool = False


class QRRedemption(CamelModel):
    account_id: str
    qr_code: QRCode


RewardEvent = Union[ManualAward, TrainingLog, QRRedemption]


class TrainingHistoryEntry(CamelModel):
    account_id: str
    day: date
    label: str
    xp_earned: int
    source: str
    qr_id: str | None = None
    # Bonus-adjusted XP per real skill, used to rebuild skill totals.
    skill_xp: dict[str, int] = Field(default_factory=dict)
    created_at: datetime | None = None


class RewardResult(BaseModel):
    """Outcome of one committed reward event."""

    account: Account
    xp_awarded: int
    is_bonus_day: bool
    newly_unlocked: list[str] = Field(default_factory=list)
    new_achievements: list[AchievementDefinition] = Field(default_factory=list)
    previous_level: int = 1
    history_entry: TrainingHistoryEntry | None = None

    @property
    def leveled_up(self) -> bool:
        return self.account.level > self.previous_level
