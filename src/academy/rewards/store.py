"""Storage contract consumed by the ledger, the QR guard and admin overrides.

The engine never talks to a database directly. Everything it reads or
writes goes through a ``RewardStore``; ``commit`` is the single write that
makes a reward event visible.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from datetime import date

from academy.rewards.domain import (
    Account,
    AchievementDefinition,
    QRCode,
    QRStats,
    RankMetric,
    TrainingHistoryEntry,
    XPConfig,
)
from academy.rewards.errors import ConflictError, NotFoundError


class RewardStore(ABC):
    """Account, QR code, achievement, history and XP config persistence."""

    @abstractmethod
    async def get_account(self, account_id: str) -> Account | None: ...

    @abstractmethod
    async def save_account(self, account: Account) -> None: ...

    @abstractmethod
    async def get_qr_code(self, qr_id: str) -> QRCode | None: ...

    @abstractmethod
    async def save_qr_code(self, qr_code: QRCode) -> None: ...

    @abstractmethod
    async def delete_qr_code(self, qr_id: str) -> bool:
        """Remove a code. Returns False if it did not exist. History is kept."""

    @abstractmethod
    async def list_qr_codes(self) -> list[QRCode]:
        """Every code, newest first."""

    @abstractmethod
    async def qr_code_stats(self, qr_id: str) -> QRStats: ...

    @abstractmethod
    async def list_achievements(self) -> list[AchievementDefinition]:
        """All definitions in evaluation order."""

    @abstractmethod
    async def save_achievement(self, definition: AchievementDefinition) -> None: ...

    @abstractmethod
    async def list_skills(self) -> dict[str, str]:
        """Enabled skills as ``{skill_id: label}``."""

    @abstractmethod
    async def save_skill(self, skill_id: str, label: str) -> None: ...

    @abstractmethod
    async def get_xp_config(self) -> XPConfig: ...

    @abstractmethod
    async def set_xp_config(self, config: XPConfig) -> None: ...

    @abstractmethod
    async def list_history(self, account_id: str, limit: int | None = None) -> list[TrainingHistoryEntry]:
        """History entries, most recent first. ``limit=None`` returns everything."""

    @abstractmethod
    async def has_redeemed(self, account_id: str, qr_id: str, day: date) -> bool: ...

    @abstractmethod
    async def top_accounts(
        self,
        metric: RankMetric,
        limit: int,
        skill_id: str | None = None,
    ) -> list[Account]:
        """Accounts ranked by ``metric``, highest first, ties broken by id.

        ``streak`` skips accounts with no active streak; ``skill`` ranks by
        ``skills[skill_id]`` and skips accounts that do not have that skill.
        """

    @abstractmethod
    async def commit(
        self,
        account: Account,
        entry: TrainingHistoryEntry | None = None,
        redeemed_qr_id: str | None = None,
    ) -> None:
        """Persist the account snapshot, history entry and QR use as one unit.

        When ``redeemed_qr_id`` is given the code's use count is incremented
        by one; a code already at its cap raises ``ConflictError`` and
        nothing is written.
        """

    async def get_achievement(self, achievement_id: str) -> AchievementDefinition | None:
        for definition in await self.list_achievements():
            if definition.id == achievement_id:
                return definition
        return None


class MemoryRewardStore(RewardStore):
    """Dict-backed store. Reads and writes are deep copies."""

    def __init__(self, xp_config: XPConfig | None = None) -> None:
        self._accounts: dict[str, Account] = {}
        self._qr_codes: dict[str, QRCode] = {}
        self._achievements: dict[str, AchievementDefinition] = {}
        self._skills: dict[str, str] = {}
        self._history: dict[str, list[TrainingHistoryEntry]] = {}
        self._xp_config = xp_config or XPConfig(xp_per_level=1000, multiplier=1.2)

    async def get_account(self, account_id: str) -> Account | None:
        account = self._accounts.get(account_id)
        return account.model_copy(deep=True) if account else None

    async def save_account(self, account: Account) -> None:
        self._accounts[account.id] = account.model_copy(deep=True)

    async def get_qr_code(self, qr_id: str) -> QRCode | None:
        qr = self._qr_codes.get(qr_id)
        return qr.model_copy(deep=True) if qr else None

    async def save_qr_code(self, qr_code: QRCode) -> None:
        self._qr_codes[qr_code.id] = qr_code.model_copy(deep=True)

    async def delete_qr_code(self, qr_id: str) -> bool:
        return self._qr_codes.pop(qr_id, None) is not None

    async def list_qr_codes(self) -> list[QRCode]:
        return [qr.model_copy(deep=True) for qr in reversed(self._qr_codes.values())]

    async def qr_code_stats(self, qr_id: str) -> QRStats:
        scans = [e for entries in self._history.values() for e in entries if e.qr_id == qr_id]
        return QRStats(
            total_scans=len(scans),
            unique_users=len({e.account_id for e in scans}),
            total_xp_awarded=sum(e.xp_earned for e in scans),
        )

    async def list_achievements(self) -> list[AchievementDefinition]:
        return [d.model_copy(deep=True) for d in self._achievements.values()]

    async def save_achievement(self, definition: AchievementDefinition) -> None:
        self._achievements[definition.id] = definition.model_copy(deep=True)

    async def list_skills(self) -> dict[str, str]:
        return dict(self._skills)

    async def save_skill(self, skill_id: str, label: str) -> None:
        self._skills[skill_id] = label

    async def get_xp_config(self) -> XPConfig:
        return self._xp_config.model_copy()

    async def set_xp_config(self, config: XPConfig) -> None:
        self._xp_config = config.model_copy()

    async def list_history(self, account_id: str, limit: int | None = None) -> list[TrainingHistoryEntry]:
        entries = list(reversed(self._history.get(account_id, [])))
        if limit is not None:
            entries = entries[:limit]
        return copy.deepcopy(entries)

    async def has_redeemed(self, account_id: str, qr_id: str, day: date) -> bool:
        return any(
            e.qr_id == qr_id and e.day == day
            for e in self._history.get(account_id, [])
        )

    async def top_accounts(
        self,
        metric: RankMetric,
        limit: int,
        skill_id: str | None = None,
    ) -> list[Account]:
        ranked = []
        for account in self._accounts.values():
            value = _rank_value(account, metric, skill_id)
            if value is not None:
                ranked.append((value, account))
        ranked.sort(key=lambda pair: (-pair[0], pair[1].id))
        return [account.model_copy(deep=True) for _, account in ranked[:limit]]

    async def commit(
        self,
        account: Account,
        entry: TrainingHistoryEntry | None = None,
        redeemed_qr_id: str | None = None,
    ) -> None:
        # Validate everything before the first write.
        qr = None
        if redeemed_qr_id is not None:
            qr = self._qr_codes.get(redeemed_qr_id)
            if qr is None:
                raise NotFoundError(f"QR code not found: {redeemed_qr_id}")
            if qr.max_uses is not None and qr.uses_count >= qr.max_uses:
                raise ConflictError("QR code max uses reached")

        if qr is not None:
            qr.uses_count += 1
        self._accounts[account.id] = account.model_copy(deep=True)
        if entry is not None:
            self._history.setdefault(account.id, []).append(entry.model_copy(deep=True))


def _rank_value(account: Account, metric: RankMetric, skill_id: str | None) -> int | None:
    if metric == "total_xp":
        return account.total_xp
    if metric == "streak":
        return account.streak if account.streak > 0 else None
    return account.skills.get(skill_id) if skill_id else None
