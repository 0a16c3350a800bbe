from __future__ import annotations

import asyncio

import pytest

from persistence.errors import WriteLockTimeout
from persistence.locks import WriteLockManager


def test_acquire_and_release(tmp_path):
    async def _run():
        locks = WriteLockManager(timeout_ms=100, poll_ms=5)
        p = tmp_path / "club.json"

        await locks.acquire(p)
        assert locks.is_locked(p)
        locks.release(p)
        assert not locks.is_locked(p)

    asyncio.run(_run())


def test_acquire_times_out_naming_the_file(tmp_path):
    async def _run():
        locks = WriteLockManager(timeout_ms=50, poll_ms=5)
        p = tmp_path / "trackers.json"
        await locks.acquire(p)

        with pytest.raises(WriteLockTimeout, match="trackers.json") as exc:
            await locks.acquire(p)
        assert exc.value.path == p
        # the original holder keeps the lock
        assert locks.is_locked(p)

    asyncio.run(_run())


def test_waiter_gets_lock_after_release(tmp_path):
    async def _run():
        locks = WriteLockManager(timeout_ms=1000, poll_ms=5)
        p = tmp_path / "quotes.json"
        order: list[str] = []

        async def first():
            async with locks.hold(p):
                order.append("first-start")
                await asyncio.sleep(0.03)
                order.append("first-end")

        async def second():
            await asyncio.sleep(0.005)
            async with locks.hold(p):
                order.append("second")

        await asyncio.gather(first(), second())
        assert order == ["first-start", "first-end", "second"]
        assert not locks.is_locked(p)

    asyncio.run(_run())


def test_hold_releases_on_error(tmp_path):
    async def _run():
        locks = WriteLockManager(timeout_ms=100, poll_ms=5)
        p = tmp_path / "stats.json"

        with pytest.raises(RuntimeError):
            async with locks.hold(p):
                raise RuntimeError("boom")

        assert not locks.is_locked(p)

    asyncio.run(_run())


def test_different_paths_do_not_block(tmp_path):
    async def _run():
        locks = WriteLockManager(timeout_ms=20, poll_ms=5)
        await locks.acquire(tmp_path / "a.json")
        await locks.acquire(tmp_path / "b.json")
        assert locks.is_locked(tmp_path / "a.json")
        assert locks.is_locked(tmp_path / "b.json")

    asyncio.run(_run())
