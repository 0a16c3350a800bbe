from __future__ import annotations

import asyncio
import contextlib
import time
from pathlib import Path
from typing import AsyncIterator

from .errors import WriteLockTimeout


class WriteLockManager:
    """
    Per-path write reservation for one process.

    A held path is just an entry in a dict. Waiters poll until the entry is
    gone or the timeout elapses. Everything runs on the event loop, so the
    check-and-set in `acquire` cannot interleave with another task. Not fair:
    a waiter can lose repeatedly under heavy contention.
    """

    def __init__(self, *, timeout_ms: int = 5000, poll_ms: int = 10) -> None:
        self._held: dict[str, bool] = {}
        self.timeout_ms = timeout_ms
        self.poll_ms = poll_ms

    @staticmethod
    def _key(path: Path) -> str:
        return str(path.resolve())

    def is_locked(self, path: Path) -> bool:
        return self._held.get(self._key(path), False)

    async def acquire(self, path: Path, timeout_ms: int | None = None) -> None:
        key = self._key(path)
        limit = (self.timeout_ms if timeout_ms is None else timeout_ms) / 1000
        start = time.monotonic()
        while self._held.get(key):
            if time.monotonic() - start > limit:
                raise WriteLockTimeout(path, int(limit * 1000))
            await asyncio.sleep(self.poll_ms / 1000)
        self._held[key] = True

    def release(self, path: Path) -> None:
        self._held.pop(self._key(path), None)

    @contextlib.asynccontextmanager
    async def hold(self, path: Path, timeout_ms: int | None = None) -> AsyncIterator[None]:
        await self.acquire(path, timeout_ms)
        try:
            yield
        finally:
            self.release(path)
