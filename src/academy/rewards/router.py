"""Rewards API endpoints: thin translation over the ledger, QR guard and admin service.

Engine errors propagate to the global handler (404 / 400 / 409).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from academy.dependencies import get_admin, get_guard, get_ledger, get_store
from academy.rewards.admin_service import AdminService
from academy.rewards.domain import QRCode
from academy.rewards.ledger import RewardLedger
from academy.rewards.rankings import DEFAULT_LIMIT, MAX_LIMIT, PLAYERS_LIMIT, get_leaderboard
from academy.rewards.redemption import RedemptionGuard
from academy.rewards.schemas import (
    AccountProgressResponse,
    AccountRegisteredResponse,
    AchievementChangeResponse,
    AllAchievementsResponse,
    AwardXPRequest,
    CreateQRCodeRequest,
    HistoryEntryResponse,
    HistoryResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    LogTrainingRequest,
    QRCodeDeletedResponse,
    QRCodeDetailResponse,
    QRCodeListResponse,
    RecalculateSkillsResponse,
    RewardResponse,
    UpdateQRCodeRequest,
    UpdateStatsRequest,
    XPConfigRequest,
    XPConfigResponse,
)
from academy.rewards.store import RewardStore

router = APIRouter(prefix="/api/v1", tags=["Rewards"])


# ── Accounts ──


@router.post("/accounts/{account_id}", response_model=AccountRegisteredResponse)
async def register_account(account_id: str, admin: AdminService = Depends(get_admin)):
    """Register a member (idempotent)."""
    account, created = await admin.register_account(account_id)
    return AccountRegisteredResponse(account=account, created=created)


@router.get("/accounts/{account_id}", response_model=AccountProgressResponse)
async def get_account(account_id: str, admin: AdminService = Depends(get_admin)):
    """Account snapshot with level and skill progress."""
    return AccountProgressResponse.model_validate(await admin.account_progress(account_id))


@router.get("/accounts/{account_id}/history", response_model=HistoryResponse)
async def get_history(
    account_id: str,
    limit: int | None = Query(None, ge=1, le=500),
    admin: AdminService = Depends(get_admin),
):
    """Most recent reward events first."""
    entries = await admin.history(account_id, limit)
    return HistoryResponse(entries=[HistoryEntryResponse.from_entry(e) for e in entries])


# ── Rewards ──


@router.post("/accounts/{account_id}/award-xp", response_model=RewardResponse)
async def award_xp(
    account_id: str,
    body: AwardXPRequest,
    ledger: RewardLedger = Depends(get_ledger),
):
    """Bonus XP from a trainer. Does not count as a training."""
    result = await ledger.award_xp(account_id, body.xp_amount, body.skill_id)
    return RewardResponse.from_result(result)


@router.post("/accounts/{account_id}/trainings", response_model=RewardResponse)
async def log_training(
    account_id: str,
    body: LogTrainingRequest,
    ledger: RewardLedger = Depends(get_ledger),
):
    """Log a multi-skill training session."""
    result = await ledger.log_training(
        account_id,
        body.skills,
        label=body.label,
        is_preset=body.is_preset,
        counts_as_training=body.counts_as_training,
    )
    return RewardResponse.from_result(result)


@router.post("/accounts/{account_id}/redeem/{qr_id}", response_model=RewardResponse)
async def redeem_qr(
    account_id: str,
    qr_id: str,
    guard: RedemptionGuard = Depends(get_guard),
):
    """Redeem a scanned QR code."""
    result = await guard.redeem(account_id, qr_id)
    return RewardResponse.from_result(result)


# ── Admin overrides ──


@router.put("/accounts/{account_id}/stats", response_model=AccountProgressResponse)
async def update_stats(
    account_id: str,
    body: UpdateStatsRequest,
    admin: AdminService = Depends(get_admin),
):
    """Overwrite stored counters."""
    await admin.update_stats(account_id, **body.model_dump())
    return AccountProgressResponse.model_validate(await admin.account_progress(account_id))


@router.post("/accounts/{account_id}/achievements/{achievement_id}", response_model=AchievementChangeResponse)
async def grant_achievement(
    account_id: str,
    achievement_id: str,
    admin: AdminService = Depends(get_admin),
):
    changed = await admin.grant_achievement(account_id, achievement_id)
    return AchievementChangeResponse(success=True, changed=changed)


@router.delete("/accounts/{account_id}/achievements/{achievement_id}", response_model=AchievementChangeResponse)
async def revoke_achievement(
    account_id: str,
    achievement_id: str,
    admin: AdminService = Depends(get_admin),
):
    changed = await admin.revoke_achievement(account_id, achievement_id)
    return AchievementChangeResponse(success=True, changed=changed)


@router.post("/accounts/{account_id}/recalculate-skills", response_model=RecalculateSkillsResponse)
async def recalculate_skills(account_id: str, admin: AdminService = Depends(get_admin)):
    """Rebuild skill totals from training history."""
    account, unlocked = await admin.recalculate_skills(account_id)
    return RecalculateSkillsResponse(account=account, new_achievements=unlocked)


# ── Catalog / settings ──


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements(store: RewardStore = Depends(get_store)):
    return AllAchievementsResponse(achievements=await store.list_achievements())


@router.get("/settings/xp", response_model=XPConfigResponse)
async def get_xp_config(store: RewardStore = Depends(get_store)):
    config = await store.get_xp_config()
    return XPConfigResponse(xp_per_level=config.xp_per_level, multiplier=config.multiplier)


@router.put("/settings/xp", response_model=XPConfigResponse)
async def set_xp_config(body: XPConfigRequest, admin: AdminService = Depends(get_admin)):
    """Change the XP curve. Stored levels are not recomputed."""
    config = await admin.set_xp_config(body.xp_per_level, body.multiplier)
    return XPConfigResponse(xp_per_level=config.xp_per_level, multiplier=config.multiplier)


# ── QR codes ──


@router.get("/qr-codes", response_model=QRCodeListResponse)
async def list_qr_codes(admin: AdminService = Depends(get_admin)):
    """Every check-in code, newest first."""
    return QRCodeListResponse(qr_codes=await admin.list_qr_codes())


@router.post("/qr-codes", response_model=QRCode, status_code=201)
async def create_qr_code(body: CreateQRCodeRequest, admin: AdminService = Depends(get_admin)):
    return await admin.create_qr_code(**body.model_dump())


@router.get("/qr-codes/{qr_id}", response_model=QRCodeDetailResponse)
async def get_qr_code(qr_id: str, admin: AdminService = Depends(get_admin)):
    """A check-in code with its scan statistics."""
    qr, stats = await admin.qr_code_details(qr_id)
    return QRCodeDetailResponse(qr_code=qr, stats=stats)


@router.put("/qr-codes/{qr_id}", response_model=QRCode)
async def update_qr_code(qr_id: str, body: UpdateQRCodeRequest, admin: AdminService = Depends(get_admin)):
    return await admin.update_qr_code(qr_id, **body.model_dump(exclude_unset=True))


@router.delete("/qr-codes/{qr_id}", response_model=QRCodeDeletedResponse)
async def delete_qr_code(qr_id: str, admin: AdminService = Depends(get_admin)):
    await admin.delete_qr_code(qr_id)
    return QRCodeDeletedResponse(success=True, deleted=qr_id)


# ── Rankings ──


def _leaderboard(metric: str, entries: list[dict]) -> LeaderboardResponse:
    return LeaderboardResponse(metric=metric, entries=[LeaderboardEntryResponse(**e) for e in entries])


@router.get("/rankings/players", response_model=LeaderboardResponse)
async def rank_players(
    limit: int = Query(PLAYERS_LIMIT, ge=1, le=MAX_LIMIT),
    store: RewardStore = Depends(get_store),
):
    """Members by total XP."""
    return _leaderboard("total_xp", await get_leaderboard(store, "total_xp", limit))


@router.get("/rankings/skills/{skill_id}", response_model=LeaderboardResponse)
async def rank_skill(
    skill_id: str,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    store: RewardStore = Depends(get_store),
):
    """Members by cumulative XP in one skill."""
    return _leaderboard("skill", await get_leaderboard(store, "skill", limit, skill_id))


@router.get("/rankings/streaks", response_model=LeaderboardResponse)
async def rank_streaks(
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    store: RewardStore = Depends(get_store),
):
    """Members with an active streak, longest first."""
    return _leaderboard("streak", await get_leaderboard(store, "streak", limit))
