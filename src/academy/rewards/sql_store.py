"""SQLAlchemy-backed reward store.

Each call runs in its own session; ``commit`` writes the account, the
history entry and the QR use in a single transaction. The QR increment is a
conditional UPDATE so the use cap also holds across processes.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.db.models import (
    AccountRow,
    AchievementRow,
    QRCodeRow,
    SettingRow,
    SkillRow,
    TrainingHistoryRow,
)
from academy.rewards.domain import (
    Account,
    AchievementConditions,
    AchievementDefinition,
    QRCode,
    QRStats,
    RankMetric,
    SkillLine,
    TrainingHistoryEntry,
    XPConfig,
)
from academy.rewards.errors import ConflictError, NotFoundError
from academy.rewards.store import RewardStore

logger = logging.getLogger(__name__)

XP_PER_LEVEL_KEY = "xp_per_level"
XP_MULTIPLIER_KEY = "xp_multiplier"


class SqlRewardStore(RewardStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        default_xp_config: XPConfig | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.default_xp_config = default_xp_config or XPConfig(xp_per_level=1000, multiplier=1.2)

    # --- Accounts ---

    async def get_account(self, account_id: str) -> Account | None:
        async with self.session_factory() as db:
            row = await db.get(AccountRow, account_id)
            return _account_from_row(row) if row else None

    async def save_account(self, account: Account) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                await _upsert_account(db, account)

    # --- QR codes ---

    async def get_qr_code(self, qr_id: str) -> QRCode | None:
        async with self.session_factory() as db:
            row = await db.get(QRCodeRow, qr_id)
            return _qr_from_row(row) if row else None

    async def save_qr_code(self, qr_code: QRCode) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                row = await db.get(QRCodeRow, qr_code.id)
                if row is None:
                    row = QRCodeRow(id=qr_code.id)
                    db.add(row)
                row.title = qr_code.title
                row.xp_amount = qr_code.xp_amount
                row.skill_id = qr_code.skill_id
                row.skills = (
                    [line.model_dump(by_alias=True) for line in qr_code.skills]
                    if qr_code.skills is not None
                    else None
                )
                row.achievement_id = qr_code.achievement_id
                row.max_uses = qr_code.max_uses
                row.uses_count = qr_code.uses_count
                row.expires_at = qr_code.expires_at.isoformat() if qr_code.expires_at else None
                row.created_at = qr_code.created_at.isoformat() if qr_code.created_at else None

    async def delete_qr_code(self, qr_id: str) -> bool:
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(delete(QRCodeRow).where(QRCodeRow.id == qr_id))
                return result.rowcount > 0

    async def list_qr_codes(self) -> list[QRCode]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(QRCodeRow).order_by(QRCodeRow.created_at.desc().nulls_last(), QRCodeRow.id)
            )
            return [_qr_from_row(row) for row in result.scalars()]

    async def qr_code_stats(self, qr_id: str) -> QRStats:
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    func.count(TrainingHistoryRow.id),
                    func.count(func.distinct(TrainingHistoryRow.account_id)),
                    func.coalesce(func.sum(TrainingHistoryRow.xp_earned), 0),
                ).where(TrainingHistoryRow.qr_id == qr_id)
            )
            scans, users, xp = result.one()
        return QRStats(total_scans=scans, unique_users=users, total_xp_awarded=xp)

    # --- Achievements ---

    async def list_achievements(self) -> list[AchievementDefinition]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(AchievementRow).order_by(AchievementRow.sort_order, AchievementRow.id)
            )
            return [_achievement_from_row(row) for row in result.scalars()]

    async def save_achievement(self, definition: AchievementDefinition) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                row = await db.get(AchievementRow, definition.id)
                if row is None:
                    last = await db.scalar(select(func.max(AchievementRow.sort_order)))
                    row = AchievementRow(id=definition.id, sort_order=(last or 0) + 1)
                    db.add(row)
                row.title = definition.title
                row.description = definition.description
                row.image_url = definition.image_url
                row.conditions = definition.conditions.model_dump(by_alias=True, exclude_none=True)

    # --- Skills ---

    async def list_skills(self) -> dict[str, str]:
        async with self.session_factory() as db:
            result = await db.execute(select(SkillRow).where(SkillRow.enabled.is_(True)).order_by(SkillRow.id))
            return {row.id: row.label for row in result.scalars()}

    async def save_skill(self, skill_id: str, label: str) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                row = await db.get(SkillRow, skill_id)
                if row is None:
                    db.add(SkillRow(id=skill_id, label=label, enabled=True))
                else:
                    row.label = label

    # --- XP config ---

    async def get_xp_config(self) -> XPConfig:
        async with self.session_factory() as db:
            result = await db.execute(
                select(SettingRow).where(SettingRow.key.in_([XP_PER_LEVEL_KEY, XP_MULTIPLIER_KEY]))
            )
            values = {row.key: row.value for row in result.scalars()}

        return XPConfig(
            xp_per_level=int(values.get(XP_PER_LEVEL_KEY, self.default_xp_config.xp_per_level)),
            multiplier=float(values.get(XP_MULTIPLIER_KEY, self.default_xp_config.multiplier)),
        )

    async def set_xp_config(self, config: XPConfig) -> None:
        now = datetime.now(timezone.utc)
        async with self.session_factory() as db:
            async with db.begin():
                for key, value in (
                    (XP_PER_LEVEL_KEY, str(config.xp_per_level)),
                    (XP_MULTIPLIER_KEY, str(config.multiplier)),
                ):
                    row = await db.get(SettingRow, key)
                    if row is None:
                        db.add(SettingRow(key=key, value=value, updated_at=now))
                    else:
                        row.value = value
                        row.updated_at = now

    # --- History ---

    async def list_history(self, account_id: str, limit: int | None = None) -> list[TrainingHistoryEntry]:
        stmt = (
            select(TrainingHistoryRow)
            .where(TrainingHistoryRow.account_id == account_id)
            .order_by(TrainingHistoryRow.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return [_history_from_row(row) for row in result.scalars()]

    async def has_redeemed(self, account_id: str, qr_id: str, day: date) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                select(TrainingHistoryRow.id)
                .where(
                    TrainingHistoryRow.account_id == account_id,
                    TrainingHistoryRow.qr_id == qr_id,
                    TrainingHistoryRow.day == day,
                )
                .limit(1)
            )
            return result.first() is not None

    # --- Rankings ---

    async def top_accounts(
        self,
        metric: RankMetric,
        limit: int,
        skill_id: str | None = None,
    ) -> list[Account]:
        if metric == "total_xp":
            value = AccountRow.total_xp
            stmt = select(AccountRow)
        elif metric == "streak":
            value = AccountRow.streak
            stmt = select(AccountRow).where(value > 0)
        else:
            if not skill_id:
                return []
            value = AccountRow.skills[skill_id].as_integer()
            stmt = select(AccountRow).where(value.is_not(None))

        async with self.session_factory() as db:
            result = await db.execute(stmt.order_by(value.desc(), AccountRow.id).limit(limit))
            return [_account_from_row(row) for row in result.scalars()]

    # --- Unit of work ---

    async def commit(
        self,
        account: Account,
        entry: TrainingHistoryEntry | None = None,
        redeemed_qr_id: str | None = None,
    ) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                if redeemed_qr_id is not None:
                    await _consume_qr_use(db, redeemed_qr_id)
                await _upsert_account(db, account)
                if entry is not None:
                    # History rows reference the account row.
                    await db.flush()
                    db.add(
                        TrainingHistoryRow(
                            account_id=entry.account_id,
                            day=entry.day,
                            label=entry.label,
                            xp_earned=entry.xp_earned,
                            source=entry.source,
                            qr_id=entry.qr_id,
                            skill_xp=dict(entry.skill_xp),
                            created_at=entry.created_at,
                        )
                    )


async def _consume_qr_use(db: AsyncSession, qr_id: str) -> None:
    result = await db.execute(
        update(QRCodeRow)
        .where(
            QRCodeRow.id == qr_id,
            or_(QRCodeRow.max_uses.is_(None), QRCodeRow.uses_count < QRCodeRow.max_uses),
        )
        .values(uses_count=QRCodeRow.uses_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        if await db.get(QRCodeRow, qr_id) is None:
            raise NotFoundError(f"QR code not found: {qr_id}")
        logger.info("QR %s lost the use-cap race", qr_id)
        raise ConflictError("QR code max uses reached")


async def _upsert_account(db: AsyncSession, account: Account) -> None:
    row = await db.get(AccountRow, account.id)
    if row is None:
        row = AccountRow(id=account.id)
        db.add(row)
    row.level_xp = account.level_xp
    row.level = account.level
    row.total_xp = account.total_xp
    # Fresh containers so the JSON columns are flagged dirty.
    row.skills = dict(account.skills)
    row.trainings_completed = account.trainings_completed
    row.streak = account.streak
    row.last_training_date = account.last_training_date
    row.unlocked_achievements = list(account.unlocked_achievements)
    row.updated_at = datetime.now(timezone.utc)


def _account_from_row(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        level_xp=row.level_xp,
        level=row.level,
        total_xp=row.total_xp,
        skills=dict(row.skills or {}),
        trainings_completed=row.trainings_completed,
        streak=row.streak,
        last_training_date=row.last_training_date,
        unlocked_achievements=list(row.unlocked_achievements or []),
    )


def _qr_from_row(row: QRCodeRow) -> QRCode:
    return QRCode(
        id=row.id,
        title=row.title,
        xp_amount=row.xp_amount,
        skill_id=row.skill_id,
        skills=[SkillLine.model_validate(s) for s in row.skills] if row.skills is not None else None,
        achievement_id=row.achievement_id,
        max_uses=row.max_uses,
        uses_count=row.uses_count,
        expires_at=datetime.fromisoformat(row.expires_at) if row.expires_at else None,
        created_at=datetime.fromisoformat(row.created_at) if row.created_at else None,
    )


def _achievement_from_row(row: AchievementRow) -> AchievementDefinition:
    return AchievementDefinition(
        id=row.id,
        title=row.title,
        description=row.description,
        image_url=row.image_url,
        conditions=AchievementConditions.model_validate(row.conditions or {}),
    )


def _history_from_row(row: TrainingHistoryRow) -> TrainingHistoryEntry:
    return TrainingHistoryEntry(
        account_id=row.account_id,
        day=row.day,
        label=row.label,
        xp_earned=row.xp_earned,
        source=row.source,
        qr_id=row.qr_id,
        skill_xp=dict(row.skill_xp or {}),
        created_at=row.created_at,
    )
