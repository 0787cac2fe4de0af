"""Leaderboard tests over the in-memory store."""

from __future__ import annotations

import pytest
import pytest_asyncio

from academy.rewards.domain import Account
from academy.rewards.errors import InvalidArgumentError
from academy.rewards.rankings import get_leaderboard
from academy.rewards.store import MemoryRewardStore


@pytest_asyncio.fixture
async def players() -> MemoryRewardStore:
    store = MemoryRewardStore()
    for account in (
        Account(id="anna", level=3, total_xp=2500, streak=0, skills={"serve": 40}),
        Account(id="boris", level=6, total_xp=6000, streak=4, skills={"serve": 10, "block": 80}),
        Account(id="clara", level=3, total_xp=2500, streak=9),
        Account(id="dima", level=1, total_xp=100, streak=4, skills={"serve": 40}),
    ):
        await store.save_account(account)
    return store


class TestTopAccounts:
    @pytest.mark.asyncio
    async def test_by_total_xp_ties_by_id(self, players):
        ranked = await players.top_accounts("total_xp", 10)
        assert [a.id for a in ranked] == ["boris", "anna", "clara", "dima"]

    @pytest.mark.asyncio
    async def test_limit(self, players):
        assert [a.id for a in await players.top_accounts("total_xp", 2)] == ["boris", "anna"]

    @pytest.mark.asyncio
    async def test_by_streak_skips_inactive(self, players):
        ranked = await players.top_accounts("streak", 10)
        assert [a.id for a in ranked] == ["clara", "boris", "dima"]

    @pytest.mark.asyncio
    async def test_by_skill_skips_accounts_without_it(self, players):
        ranked = await players.top_accounts("skill", 10, skill_id="serve")
        assert [a.id for a in ranked] == ["anna", "dima", "boris"]


class TestGetLeaderboard:
    @pytest.mark.asyncio
    async def test_entries(self, players):
        entries = await get_leaderboard(players, "total_xp", 2)
        assert entries[0] == {
            "rank": 1,
            "account_id": "boris",
            "level": 6,
            "title": "Court Master",
            "total_xp": 6000,
            "streak": 4,
            "skill_value": None,
        }
        assert entries[1]["rank"] == 2
        assert entries[1]["title"] == "Core Player"

    @pytest.mark.asyncio
    async def test_skill_value_filled_for_skill_ranking(self, players):
        entries = await get_leaderboard(players, "skill", skill_id="block")
        assert [(e["account_id"], e["skill_value"]) for e in entries] == [("boris", 80)]

    @pytest.mark.asyncio
    async def test_unknown_skill_is_empty(self, players):
        assert await get_leaderboard(players, "skill", skill_id="jump") == []

    @pytest.mark.asyncio
    async def test_rejections(self, players):
        with pytest.raises(InvalidArgumentError):
            await get_leaderboard(players, "total_xp", 0)
        with pytest.raises(InvalidArgumentError):
            await get_leaderboard(players, "skill")
