"""Achievement condition evaluation.

Conditions are a conjunction; a skill the account has never trained counts
as 0. Results keep definition order, which the notification layer relies on
to pick the one unlock it toasts.
"""

from __future__ import annotations

from collections.abc import Iterable

from academy.rewards.domain import Account, AchievementConditions, AchievementDefinition


def is_satisfied(account: Account, conditions: AchievementConditions) -> bool:
    """True if every present sub-condition holds for ``account``."""
    if conditions.min_level is not None and account.level < conditions.min_level:
        return False
    if conditions.min_trainings is not None and account.trainings_completed < conditions.min_trainings:
        return False
    if conditions.min_streak is not None and account.streak < conditions.min_streak:
        return False
    if conditions.min_total_xp is not None and account.total_xp < conditions.min_total_xp:
        return False

    skill_cond = conditions.min_skill_value
    if skill_cond is not None and account.skills.get(skill_cond.skill, 0) < skill_cond.value:
        return False

    return True


def newly_unlocked(account: Account, definitions: Iterable[AchievementDefinition]) -> list[str]:
    """Ids of definitions not yet unlocked whose conditions now hold."""
    return [
        d.id
        for d in definitions
        if not account.has_achievement(d.id) and is_satisfied(account, d.conditions)
    ]
