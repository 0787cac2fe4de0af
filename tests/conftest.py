"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from academy.config import Settings, get_settings
from academy.dependencies import RewardServices, close_services, init_services
from academy.main import create_app
from academy.rewards.admin_service import AdminService
from academy.rewards.clock import Clock
from academy.rewards.domain import Account, XPConfig
from academy.rewards.ledger import RewardLedger
from academy.rewards.locks import KeyedLocks
from academy.rewards.redemption import RedemptionGuard
from academy.rewards.seed import SKILL_SEED_DATA, seed_defaults
from academy.rewards.store import MemoryRewardStore

TZ = "Europe/Minsk"
# 09:00 UTC is 12:00 in Minsk, so the local date matches the UTC date.
WEDNESDAY = datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc)


class FakeNow:
    """Controllable ``now`` source for the clock."""

    def __init__(self, dt: datetime) -> None:
        self.dt = dt

    def __call__(self) -> datetime:
        return self.dt

    def set(self, dt: datetime) -> None:
        self.dt = dt

    def advance(self, **kwargs: float) -> None:
        self.dt += timedelta(**kwargs)


class YieldingStore(MemoryRewardStore):
    """Memory store that suspends on every account and QR read or write.

    Plain dict access never yields, so concurrent events would run one after
    another whatever the locking. Yielding lets them interleave.
    """

    async def get_account(self, account_id):
        await asyncio.sleep(0)
        return await super().get_account(account_id)

    async def save_account(self, account):
        await asyncio.sleep(0)
        await super().save_account(account)

    async def get_qr_code(self, qr_id):
        await asyncio.sleep(0)
        return await super().get_qr_code(qr_id)

    async def save_qr_code(self, qr_code):
        await asyncio.sleep(0)
        await super().save_qr_code(qr_code)

    async def has_redeemed(self, account_id, qr_id, day):
        await asyncio.sleep(0)
        return await super().has_redeemed(account_id, qr_id, day)

    async def commit(self, account, entry=None, redeemed_qr_id=None):
        await asyncio.sleep(0)
        await super().commit(account, entry, redeemed_qr_id)


@pytest.fixture
def now() -> FakeNow:
    return FakeNow(WEDNESDAY)


@pytest.fixture
def clock(now: FakeNow) -> Clock:
    return Clock(TZ, now)


@pytest.fixture
def xp_config() -> XPConfig:
    return XPConfig(xp_per_level=1000, multiplier=1.2)


@pytest_asyncio.fixture
async def store(xp_config: XPConfig) -> MemoryRewardStore:
    """In-memory store with default skills, achievements and QR code."""
    s = MemoryRewardStore(xp_config)
    await seed_defaults(s)
    return s


@pytest.fixture
def locks() -> KeyedLocks:
    return KeyedLocks()


@pytest.fixture
def ledger(store: MemoryRewardStore, clock: Clock, locks: KeyedLocks) -> RewardLedger:
    return RewardLedger(store, clock, locks=locks)


@pytest.fixture
def guard(ledger: RewardLedger) -> RedemptionGuard:
    return RedemptionGuard(ledger)


@pytest.fixture
def admin(store: MemoryRewardStore, locks: KeyedLocks, clock: Clock) -> AdminService:
    return AdminService(store, locks=locks, clock=clock)


@pytest_asyncio.fixture
async def account(store: MemoryRewardStore) -> Account:
    """A freshly registered member: level 1, zero XP, every skill at 1."""
    acc = Account(id="u1", skills={skill_id: 1 for skill_id in SKILL_SEED_DATA})
    await store.save_account(acc)
    return acc


@pytest_asyncio.fixture
async def client(store: MemoryRewardStore, clock: Clock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app, wired to the seeded in-memory store and fixed clock."""
    app = create_app()
    init_services(store, get_settings(), clock=clock)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    close_services()


@pytest_asyncio.fixture
async def wired(xp_config: XPConfig, clock: Clock) -> AsyncGenerator[RewardServices, None]:
    """Engine wired as in production, over a store whose calls interleave."""
    s = YieldingStore(xp_config)
    await seed_defaults(s)
    await s.save_account(Account(id="u1", skills={skill_id: 1 for skill_id in SKILL_SEED_DATA}))
    yield init_services(s, Settings(), clock=clock)
    close_services()
