"""Leaderboards: members ranked by total XP, by one skill, or by streak.

Rankings are read straight from the store on every call; there is no
snapshot or cache to refresh.
"""

from __future__ import annotations

from academy.rewards.domain import RankMetric
from academy.rewards.errors import InvalidArgumentError
from academy.rewards.level_math import rank_title
from academy.rewards.store import RewardStore

PLAYERS_LIMIT = 100
DEFAULT_LIMIT = 50
MAX_LIMIT = 500


async def get_leaderboard(
    store: RewardStore,
    metric: RankMetric,
    limit: int = DEFAULT_LIMIT,
    skill_id: str | None = None,
) -> list[dict]:
    """Ranked entries, 1-based, highest first.

    ``skill_value`` is only filled for skill rankings.
    """
    if not 1 <= limit <= MAX_LIMIT:
        raise InvalidArgumentError(f"limit must be between 1 and {MAX_LIMIT}")
    if metric == "skill" and not skill_id:
        raise InvalidArgumentError("A skill ranking needs a skill id")

    accounts = await store.top_accounts(metric, limit, skill_id)
    return [
        {
            "rank": position,
            "account_id": account.id,
            "level": account.level,
            "title": rank_title(account.level),
            "total_xp": account.total_xp,
            "streak": account.streak,
            "skill_value": account.skills.get(skill_id) if metric == "skill" else None,
        }
        for position, account in enumerate(accounts, start=1)
    ]
