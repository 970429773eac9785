"""Tests for KeyedLock and RunGuard."""

import asyncio

import pytest

from dispatch.application.locks import KeyedLock, RunGuard
from dispatch.domain.errors import AlreadyRunning


@pytest.mark.asyncio
async def test_same_key_is_exclusive():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.hold("k"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))
    assert order == ["a-in", "a-out", "b-in", "b-out"]


@pytest.mark.asyncio
async def test_entries_removed_when_released():
    locks = KeyedLock()
    async with locks.hold("k"):
        assert locks.is_locked("k")
        assert len(locks) == 1
    assert not locks.is_locked("k")
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_hold_many_in_opposite_orders_does_not_deadlock():
    locks = KeyedLock()

    async def worker(keys):
        async with locks.hold_many(keys):
            await asyncio.sleep(0.01)

    await asyncio.wait_for(asyncio.gather(worker(["a", "b"]), worker(["b", "a"])), timeout=1)
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_run_guard_rejects_second_entrant():
    guard = RunGuard()
    async with guard.acquire():
        assert guard.is_running
        with pytest.raises(AlreadyRunning):
            async with guard.acquire():
                pass
    assert not guard.is_running
