"""Reward engine error taxonomy.

NotFound and InvalidArgument are caller errors. Conflict is an expected,
user-facing outcome (expired code, cap reached, already redeemed today)
and is never logged as a fault.
"""

from __future__ import annotations


class RewardError(Exception):
    """Base class for every error raised by the rewards engine."""

    code = "reward_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(RewardError, LookupError):
    """Unknown account, QR code or achievement id."""

    code = "not_found"


class InvalidArgumentError(RewardError, ValueError):
    """Empty or negative XP payload, malformed config or condition set."""

    code = "invalid_argument"


class ConflictError(RewardError):
    """Redemption rejected by a QR guard."""

    code = "conflict"
