"""Request/response models for the rewards endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from academy.rewards.domain import (
    Account,
    AchievementDefinition,
    CamelModel,
    QRCode,
    QRStats,
    RewardResult,
    SkillLine,
    TrainingHistoryEntry,
)

# --- Requests ---


class AwardXPRequest(CamelModel):
    xp_amount: int
    skill_id: str | None = None


class LogTrainingRequest(CamelModel):
    skills: list[SkillLine]
    label: str | None = None
    is_preset: bool = False
    counts_as_training: bool = True


class UpdateStatsRequest(CamelModel):
    level_xp: int | None = None
    total_xp: int | None = None
    level: int | None = None
    trainings_completed: int | None = None
    streak: int | None = None


class XPConfigRequest(CamelModel):
    xp_per_level: int
    multiplier: float


class CreateQRCodeRequest(CamelModel):
    title: str
    xp_amount: int | None = None
    skill_id: str | None = None
    skills: list[SkillLine] | None = None
    achievement_id: str | None = None
    max_uses: int | None = None
    expires_at: datetime | None = None


class UpdateQRCodeRequest(CamelModel):
    """Partial edit: omitted fields are kept, an explicit null clears the field."""

    title: str | None = None
    xp_amount: int | None = None
    skill_id: str | None = None
    skills: list[SkillLine] | None = None
    achievement_id: str | None = None
    max_uses: int | None = None
    expires_at: datetime | None = None


# --- Responses ---


class RewardResponse(CamelModel):
    account: Account
    xp_awarded: int
    is_bonus_day: bool
    new_achievements: list[AchievementDefinition]

    @classmethod
    def from_result(cls, result: RewardResult) -> RewardResponse:
        return cls(
            account=result.account,
            xp_awarded=result.xp_awarded,
            is_bonus_day=result.is_bonus_day,
            new_achievements=result.new_achievements,
        )


class LevelProgress(CamelModel):
    level: int
    title: str
    level_xp: int
    xp_for_level: int
    progress_percent: int


class SkillProgress(CamelModel):
    level: int
    xp_in_current_level: int
    xp_for_next_level: int
    progress_percent: int
    is_max_level: bool


class AccountProgressResponse(CamelModel):
    account: Account
    level: LevelProgress
    skills: dict[str, SkillProgress]


class AccountRegisteredResponse(CamelModel):
    account: Account
    created: bool


class HistoryEntryResponse(CamelModel):
    day: date
    label: str
    xp_earned: int
    source: str
    qr_id: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_entry(cls, entry: TrainingHistoryEntry) -> HistoryEntryResponse:
        return cls(
            day=entry.day,
            label=entry.label,
            xp_earned=entry.xp_earned,
            source=entry.source,
            qr_id=entry.qr_id,
            created_at=entry.created_at,
        )


class HistoryResponse(CamelModel):
    entries: list[HistoryEntryResponse]


class AchievementChangeResponse(CamelModel):
    success: bool
    changed: bool


class RecalculateSkillsResponse(CamelModel):
    account: Account
    new_achievements: list[str] = Field(default_factory=list)


class AllAchievementsResponse(CamelModel):
    achievements: list[AchievementDefinition]


class XPConfigResponse(CamelModel):
    xp_per_level: int
    multiplier: float


class QRCodeListResponse(CamelModel):
    qr_codes: list[QRCode]


class QRCodeDetailResponse(CamelModel):
    qr_code: QRCode
    stats: QRStats


class QRCodeDeletedResponse(CamelModel):
    success: bool
    deleted: str


class LeaderboardEntryResponse(CamelModel):
    rank: int
    account_id: str
    level: int
    title: str
    total_xp: int
    streak: int
    skill_value: int | None = None


class LeaderboardResponse(CamelModel):
    metric: str
    entries: list[LeaderboardEntryResponse]
