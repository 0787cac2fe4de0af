"""Shared FastAPI dependencies: the reward engine wired to its store."""

from __future__ import annotations

from dataclasses import dataclass

from academy.config import Settings
from academy.rewards.admin_service import AdminService
from academy.rewards.clock import Clock
from academy.rewards.ledger import RewardLedger
from academy.rewards.locks import KeyedLocks
from academy.rewards.redemption import RedemptionGuard
from academy.rewards.store import RewardStore


@dataclass
class RewardServices:
    store: RewardStore
    ledger: RewardLedger
    guard: RedemptionGuard
    admin: AdminService


_services: RewardServices | None = None


def init_services(
    store: RewardStore,
    settings: Settings,
    redis: object | None = None,
    clock: Clock | None = None,
) -> RewardServices:
    """Build the engine once; ledger, guard and admin share one lock registry."""
    global _services  # noqa: PLW0603
    locks = KeyedLocks()
    clock = clock or Clock(settings.timezone)
    ledger = RewardLedger(
        store,
        clock,
        locks=locks,
        redis=redis,
        default_skill_value=settings.default_skill_value,
    )
    _services = RewardServices(
        store=store,
        ledger=ledger,
        guard=RedemptionGuard(ledger),
        admin=AdminService(
            store,
            locks=locks,
            default_skill_value=settings.default_skill_value,
            history_limit=settings.history_limit,
            clock=clock,
        ),
    )
    return _services


def close_services() -> None:
    global _services  # noqa: PLW0603
    _services = None


def get_services() -> RewardServices:
    if _services is None:
        msg = "Reward services not initialized. Call init_services() first."
        raise RuntimeError(msg)
    return _services


def get_store() -> RewardStore:
    return get_services().store


def get_ledger() -> RewardLedger:
    return get_services().ledger


def get_guard() -> RedemptionGuard:
    return get_services().guard


def get_admin() -> AdminService:
    return get_services().admin
