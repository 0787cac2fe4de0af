"""Account level curve and skill level bands.

Account levels are geometric and driven by the XP config in force at the
time of the call. Skill levels use a fixed cumulative table and only the
displayed level saturates: skill XP itself is never capped.
"""

from __future__ import annotations

import math

from academy.rewards.domain import XPConfig

SKILL_LEVEL_THRESHOLDS: list[int] = [0, 50, 150, 300, 500, 750, 1050, 1400, 1800, 2250]
MAX_SKILL_LEVEL = len(SKILL_LEVEL_THRESHOLDS)

# (highest level, title); anything above the last entry is LEGEND_TITLE.
RANK_TITLES: list[tuple[int, str]] = [
    (2, "Rookie"),
    (5, "Core Player"),
    (8, "Court Master"),
]
LEGEND_TITLE = "Volleyball Legend"


def xp_for_level(level: int, config: XPConfig) -> int:
    """XP needed to clear ``level`` (and reach ``level + 1``)."""
    return math.floor(config.xp_per_level * config.multiplier ** (level - 1))


def apply_xp(
    level_xp: int,
    level: int,
    total_xp: int,
    amount: int,
    config: XPConfig,
) -> tuple[int, int, int]:
    """Add ``amount`` XP and resolve every level-up it pays for.

    Returns ``(level_xp, level, total_xp)``. ``amount`` must be non-negative;
    callers reject negative payloads before getting here.
    """
    total_xp += amount
    level_xp += amount

    threshold = xp_for_level(level, config)
    while level_xp >= threshold:
        level_xp -= threshold
        level += 1
        threshold = xp_for_level(level, config)

    return level_xp, level, total_xp


def rank_title(level: int) -> str:
    for max_level, title in RANK_TITLES:
        if level <= max_level:
            return title
    return LEGEND_TITLE


def level_progress(level_xp: int, level: int, config: XPConfig) -> dict:
    """Progress-bar view of the current account level."""
    needed = xp_for_level(level, config)
    return {
        "level": level,
        "title": rank_title(level),
        "level_xp": level_xp,
        "xp_for_level": needed,
        "progress_percent": min(math.floor(level_xp / needed * 100), 100),
    }


def skill_level_info(total_skill_xp: int) -> dict:
    """Level band for cumulative skill XP.

    At the top band progress is pinned to 100 regardless of surplus XP.
    """
    level = 1
    for i, threshold in enumerate(SKILL_LEVEL_THRESHOLDS):
        if total_skill_xp >= threshold:
            level = i + 1

    if level >= MAX_SKILL_LEVEL:
        return {
            "level": MAX_SKILL_LEVEL,
            "xp_in_current_level": total_skill_xp - SKILL_LEVEL_THRESHOLDS[-1],
            "xp_for_next_level": 0,
            "progress_percent": 100,
            "is_max_level": True,
        }

    current = SKILL_LEVEL_THRESHOLDS[level - 1]
    nxt = SKILL_LEVEL_THRESHOLDS[level]
    xp_in_level = max(total_skill_xp - current, 0)
    band = nxt - current

    return {
        "level": level,
        "xp_in_current_level": xp_in_level,
        "xp_for_next_level": band,
        "progress_percent": min(math.floor(xp_in_level / band * 100), 100),
        "is_max_level": False,
    }
