"""Keyed asyncio lock registry tests."""

import asyncio

import pytest

from academy.rewards.locks import KeyedLocks, account_key, qr_key


class TestKeys:
    def test_namespaced(self):
        assert account_key("u1") == "account:u1"
        assert qr_key("u1") == "qr:u1"
        assert account_key("x") != qr_key("x")


class TestKeyedLocks:
    @pytest.mark.asyncio
    async def test_same_key_serializes(self):
        locks = KeyedLocks()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("k"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedLocks()
        async with locks.hold("one"):
            await asyncio.wait_for(_enter(locks, "two"), timeout=1)

    @pytest.mark.asyncio
    async def test_is_locked(self):
        locks = KeyedLocks()
        assert locks.is_locked("k") is False
        async with locks.hold("k"):
            assert locks.is_locked("k") is True
        assert locks.is_locked("k") is False

    @pytest.mark.asyncio
    async def test_released_locks_are_forgotten(self):
        locks = KeyedLocks()
        async with locks.hold("a"), locks.hold("b"):
            assert len(locks) == 2
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = KeyedLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold("k"):
                raise RuntimeError("boom")
        assert len(locks) == 0
        await asyncio.wait_for(_enter(locks, "k"), timeout=1)


async def _enter(locks: KeyedLocks, key: str) -> None:
    async with locks.hold(key):
        pass
