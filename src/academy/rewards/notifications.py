"""Redis pub/sub fan-out for unlocks and level-ups.

Publishing happens after the reward is committed, so failures are logged
and dropped rather than surfaced to the caller.
"""

from __future__ import annotations

import json
import logging

from academy.rewards.domain import AchievementDefinition, RewardResult

logger = logging.getLogger(__name__)

ACHIEVEMENT_CHANNEL = "pubsub:achievement_unlocked"
LEVEL_UP_CHANNEL = "pubsub:level_up"


async def publish_reward(redis: object | None, result: RewardResult) -> None:
    """Broadcast the notable parts of a committed reward."""
    if redis is None:
        return

    account_id = result.account.id
    for position, definition in enumerate(result.new_achievements):
        await _publish_achievement(redis, account_id, definition, first=position == 0)

    if result.leveled_up:
        await _publish(
            redis,
            LEVEL_UP_CHANNEL,
            {
                "account_id": account_id,
                "old_level": result.previous_level,
                "new_level": result.account.level,
            },
        )


async def _publish_achievement(
    redis: object,
    account_id: str,
    definition: AchievementDefinition,
    first: bool,
) -> None:
    # Only the first unlock of a batch is toasted; the UI keys off ``first``.
    await _publish(
        redis,
        ACHIEVEMENT_CHANNEL,
        {
            "account_id": account_id,
            "achievement_id": definition.id,
            "title": definition.title,
            "description": definition.description,
            "image_url": definition.image_url,
            "first": first,
        },
    )


async def _publish(redis: object, channel: str, payload: dict) -> None:
    try:
        await redis.publish(channel, json.dumps(payload))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish %s", channel, exc_info=True)
