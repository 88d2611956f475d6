"""Admission control for external tool invocations.

Spawning many git processes at once is unreliable on Windows, so there the
gate keeps a small fixed number of execution slots. Everywhere else it is a
pass-through.
"""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")

_WINDOWS_MAX_SLOTS = 2


class ProcessGate:
    """Limit how many invocations run at the same time.

    With ``slots=None`` every invocation runs immediately. Otherwise at most
    *slots* run concurrently; the rest wait on a stack and each completion
    hands its slot to the most recently queued waiter.
    """

    def __init__(self, slots: int | None = None) -> None:
        if slots is not None and slots < 1:
            raise ValueError(f"slots must be >= 1, got {slots}")
        self._slots = slots
        self._active = 0
        self._waiters: list[asyncio.Future[None]] = []

    @classmethod
    def for_platform(cls, platform: str | None = None) -> ProcessGate:
        """Build a gate sized for *platform* (default: the running one)."""
        platform = platform or sys.platform
        if platform == "win32":
            return cls(min(os.cpu_count() or 1, _WINDOWS_MAX_SLOTS))
        return cls(None)

    @property
    def slots(self) -> int | None:
        return self._slots

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    async def submit(self, invocation: Callable[[], Awaitable[T]]) -> T:
        """Run *invocation* once a slot is free and return its outcome."""
        if self._slots is None:
            return await invocation()

        await self._acquire()
        try:
            return await invocation()
        finally:
            self._release()

    async def _acquire(self) -> None:
        if self._active < self._slots:
            self._active += 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # slot was handed over just before cancellation
                self._release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.pop()
            if not waiter.done():
                # slot passes straight to the waiter, active count unchanged
                waiter.set_result(None)
                return
        self._active -= 1


_default_gate: ProcessGate | None = None


def get_default_gate() -> ProcessGate:
    """Return the process-wide gate, creating it on first use."""
    global _default_gate
    if _default_gate is None:
        _default_gate = ProcessGate.for_platform()
    return _default_gate
