"""Explicit administrative overrides and read models.

These are the only paths besides the ledger that touch an account: stat
corrections, granting or revoking achievements, rebuilding skill totals from
history, and changing the XP curve. None of them re-runs the level-up loop.
Check-in codes are managed here too; edits hold the code lock so they never
overwrite a use consumed by a concurrent scan.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from academy.rewards.achievements import newly_unlocked
from academy.rewards.clock import Clock
from academy.rewards.domain import Account, QRCode, QRStats, SkillLine, TrainingHistoryEntry, XPConfig
from academy.rewards.errors import InvalidArgumentError, NotFoundError
from academy.rewards.level_math import level_progress, skill_level_info
from academy.rewards.locks import KeyedLocks, account_key, qr_key
from academy.rewards.store import RewardStore

logger = logging.getLogger(__name__)

QR_EDITABLE_FIELDS = frozenset(
    {"title", "xp_amount", "skill_id", "skills", "achievement_id", "max_uses", "expires_at"}
)


class AdminService:
    def __init__(
        self,
        store: RewardStore,
        locks: KeyedLocks | None = None,
        default_skill_value: int = 1,
        history_limit: int = 50,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.locks = locks if locks is not None else KeyedLocks()
        self.clock = clock if clock is not None else Clock("UTC")
        self.default_skill_value = default_skill_value
        self.history_limit = history_limit

    async def _require_account(self, account_id: str) -> Account:
        account = await self.store.get_account(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    async def register_account(self, account_id: str) -> tuple[Account, bool]:
        """Create an account at level 1 with every known skill at the floor value.

        Returns ``(account, created)``; an existing account is returned untouched.
        """
        async with self.locks.hold(account_key(account_id)):
            existing = await self.store.get_account(account_id)
            if existing is not None:
                return existing, False

            skills = await self.store.list_skills()
            account = Account(
                id=account_id,
                skills={skill_id: self.default_skill_value for skill_id in skills},
            )
            await self.store.save_account(account)

        logger.info("Registered account %s", account_id)
        return account, True

    async def update_stats(
        self,
        account_id: str,
        level_xp: int | None = None,
        total_xp: int | None = None,
        level: int | None = None,
        trainings_completed: int | None = None,
        streak: int | None = None,
    ) -> Account:
        """Overwrite stored counters as given. Values are taken verbatim."""
        updates = {
            "level_xp": level_xp,
            "total_xp": total_xp,
            "level": level,
            "trainings_completed": trainings_completed,
            "streak": streak,
        }
        updates = {k: v for k, v in updates.items() if v is not None}
        if not updates:
            raise InvalidArgumentError("No valid fields to update")
        for field, value in updates.items():
            minimum = 1 if field == "level" else 0
            if value < minimum:
                raise InvalidArgumentError(f"{field} must be >= {minimum}")

        async with self.locks.hold(account_key(account_id)):
            account = await self._require_account(account_id)
            for field, value in updates.items():
                setattr(account, field, value)
            await self.store.save_account(account)

        logger.info("Stats overridden for account %s: %s", account_id, updates)
        return account

    async def grant_achievement(self, account_id: str, achievement_id: str) -> bool:
        """Unlock unconditionally. Returns False if it was already unlocked."""
        if await self.store.get_achievement(achievement_id) is None:
            raise NotFoundError(f"Achievement not found: {achievement_id}")

        async with self.locks.hold(account_key(account_id)):
            account = await self._require_account(account_id)
            if not account.unlock(achievement_id):
                return False
            await self.store.save_account(account)

        logger.info("Achievement %s granted to account %s", achievement_id, account_id)
        return True

    async def revoke_achievement(self, account_id: str, achievement_id: str) -> bool:
        """Remove an unlock. Returns False if the account did not have it."""
        async with self.locks.hold(account_key(account_id)):
            account = await self._require_account(account_id)
            if not account.has_achievement(achievement_id):
                return False
            account.unlocked_achievements.remove(achievement_id)
            await self.store.save_account(account)

        logger.info("Achievement %s revoked from account %s", achievement_id, account_id)
        return True

    async def recalculate_skills(self, account_id: str) -> tuple[Account, list[str]]:
        """Rebuild skill totals from the full training history.

        Every skill is the floor value plus its logged XP, the same base the
        ledger adds onto. Returns the
        updated account and any achievements the new totals unlock.
        """
        async with self.locks.hold(account_key(account_id)):
            account = await self._require_account(account_id)
            history = await self.store.list_history(account_id)
            totals = _skill_totals(history)

            known = set(await self.store.list_skills()) | set(account.skills) | set(totals)
            account.skills = {
                skill_id: self.default_skill_value + totals.get(skill_id, 0)
                for skill_id in sorted(known)
            }

            unlocked = newly_unlocked(account, await self.store.list_achievements())
            for achievement_id in unlocked:
                account.unlock(achievement_id)
            await self.store.save_account(account)

        logger.info("Skills recalculated for account %s: %s", account_id, totals)
        return account, unlocked

    async def set_xp_config(self, xp_per_level: int, multiplier: float) -> XPConfig:
        """Replace the XP curve. Stored levels are not recomputed."""
        try:
            config = XPConfig(xp_per_level=xp_per_level, multiplier=multiplier)
        except ValidationError as e:
            raise InvalidArgumentError("xp_per_level must be > 0 and multiplier > 1") from e
        await self.store.set_xp_config(config)
        logger.info("XP config updated: %s", config.model_dump())
        return config

    async def account_progress(self, account_id: str) -> dict:
        """Account snapshot with level and per-skill progress for display."""
        account = await self._require_account(account_id)
        config = await self.store.get_xp_config()
        return {
            "account": account,
            "level": level_progress(account.level_xp, account.level, config),
            "skills": {skill_id: skill_level_info(value) for skill_id, value in account.skills.items()},
        }

    async def history(self, account_id: str, limit: int | None = None) -> list[TrainingHistoryEntry]:
        await self._require_account(account_id)
        return await self.store.list_history(account_id, limit or self.history_limit)

    # --- Check-in codes ---

    async def list_qr_codes(self) -> list[QRCode]:
        return await self.store.list_qr_codes()

    async def qr_code_details(self, qr_id: str) -> tuple[QRCode, QRStats]:
        """The code plus scan totals from training history."""
        qr = await self.store.get_qr_code(qr_id)
        if qr is None:
            raise NotFoundError(f"QR code not found: {qr_id}")
        return qr, await self.store.qr_code_stats(qr_id)

    async def create_qr_code(
        self,
        title: str,
        xp_amount: int | None = None,
        skill_id: str | None = None,
        skills: list[SkillLine] | None = None,
        achievement_id: str | None = None,
        max_uses: int | None = None,
        expires_at: datetime | None = None,
    ) -> QRCode:
        """Create a code under a generated ``qr_<hex>`` id.

        A preset code (``skills`` given) pays the sum of its lines, and that
        sum is stored as its ``xp_amount``.
        """
        data: dict[str, Any] = {
            "id": f"qr_{uuid.uuid4().hex[:12]}",
            "title": title,
            "skill_id": skill_id,
            "skills": skills,
            "achievement_id": achievement_id,
            "max_uses": max_uses,
            "expires_at": expires_at,
            "created_at": self.clock.now(),
        }
        if xp_amount is not None:
            data["xp_amount"] = xp_amount

        qr = await self._validated_qr_code(data)
        await self.store.save_qr_code(qr)
        logger.info("QR code %s created: %s (%d XP)", qr.id, qr.title, qr.xp_amount)
        return qr

    async def update_qr_code(self, qr_id: str, **changes: Any) -> QRCode:
        """Apply a partial edit. ``uses_count`` and ``created_at`` are never edited."""
        unknown = set(changes) - QR_EDITABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Cannot update QR code fields: {', '.join(sorted(unknown))}")

        async with self.locks.hold(qr_key(qr_id)):
            qr = await self.store.get_qr_code(qr_id)
            if qr is None:
                raise NotFoundError(f"QR code not found: {qr_id}")
            updated = await self._validated_qr_code({**qr.model_dump(), **changes})
            await self.store.save_qr_code(updated)

        logger.info("QR code %s updated: %s", qr_id, sorted(changes))
        return updated

    async def delete_qr_code(self, qr_id: str) -> None:
        async with self.locks.hold(qr_key(qr_id)):
            if not await self.store.delete_qr_code(qr_id):
                raise NotFoundError(f"QR code not found: {qr_id}")
        logger.info("QR code %s deleted", qr_id)

    async def _validated_qr_code(self, data: dict[str, Any]) -> QRCode:
        try:
            qr = QRCode.model_validate(data)
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid QR code: {e.errors()[0]['msg']}") from e

        if not qr.title.strip():
            raise InvalidArgumentError("QR code title is required")
        if qr.max_uses is not None and qr.max_uses < 1:
            raise InvalidArgumentError("max_uses must be >= 1")
        if not qr.skills:
            qr.skills = None
        for line in qr.payout_lines():
            if line.xp_amount < 0:
                raise InvalidArgumentError(f"Negative xp_amount for skill {line.skill_id}")
        if qr.skills:
            qr.xp_amount = sum(line.xp_amount for line in qr.skills)

        if qr.achievement_id and await self.store.get_achievement(qr.achievement_id) is None:
            raise NotFoundError(f"Achievement not found: {qr.achievement_id}")
        return qr


def _skill_totals(history: list[TrainingHistoryEntry]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for entry in history:
        for skill_id, xp in entry.skill_xp.items():
            totals[skill_id] = totals.get(skill_id, 0) + xp
    return totals
