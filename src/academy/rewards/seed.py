"""Default skills, achievements and check-in code."""

from __future__ import annotations

import logging

from academy.rewards.domain import AchievementDefinition, QRCode
from academy.rewards.store import RewardStore

logger = logging.getLogger(__name__)

SKILL_SEED_DATA: dict[str, str] = {
    "serve": "Serve",
    "receive": "Receive",
    "attack": "Attack",
    "block": "Block",
    "set": "Set",
    "stamina": "Stamina",
}

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "id": "ach_serve_1",
        "title": "First Ace",
        "description": "Reach 15 serve XP",
        "image_url": "https://api.dicebear.com/7.x/icons/svg?seed=ace&icon=star",
        "conditions": {"minSkillValue": {"skill": "serve", "value": 15}},
    },
    {
        "id": "ach_lvl_5",
        "title": "Court Tiger",
        "description": "Reach level 5",
        "image_url": "https://api.dicebear.com/7.x/icons/svg?seed=tiger&icon=trophy",
        "conditions": {"minLevel": 5},
    },
    {
        "id": "ach_train_10",
        "title": "Getting Started",
        "description": "Complete 10 trainings",
        "image_url": "https://api.dicebear.com/7.x/icons/svg?seed=train&icon=dumbbell",
        "conditions": {"minTrainings": 10},
    },
    {
        "id": "ach_streak_7",
        "title": "Week Marathon",
        "description": "Keep a 7 day streak",
        "image_url": "https://api.dicebear.com/7.x/icons/svg?seed=streak&icon=flame",
        "conditions": {"minStreak": 7},
    },
]

DEFAULT_QR_CODE: dict = {"id": "qr_default_branch", "title": "Gym training", "xp_amount": 150}


async def seed_defaults(store: RewardStore) -> int:
    """Insert any missing default. Existing rows are left alone. Returns rows added."""
    added = 0

    skills = await store.list_skills()
    for skill_id, label in SKILL_SEED_DATA.items():
        if skill_id not in skills:
            await store.save_skill(skill_id, label)
            added += 1

    existing = {d.id for d in await store.list_achievements()}
    for data in ACHIEVEMENT_SEED_DATA:
        if data["id"] not in existing:
            await store.save_achievement(AchievementDefinition.model_validate(data))
            added += 1

    if await store.get_qr_code(DEFAULT_QR_CODE["id"]) is None:
        await store.save_qr_code(QRCode(**DEFAULT_QR_CODE))
        added += 1

    logger.info("Seeded %d default rows", added)
    return added
