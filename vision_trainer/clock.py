from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


TickCallback = Callable[[float], None]


class CancelHandle(Protocol):
    def cancel(self) -> None: ...


class TickScheduler(Protocol):
    """Request-next-frame abstraction.

    A scheduled callback fires at most once, on the next frame, with that
    frame's timestamp in monotonic seconds.
    """

    def schedule_tick(self, callback: TickCallback) -> CancelHandle: ...


class _PendingTick:
    __slots__ = ("callback", "cancelled")

    def __init__(self, callback: TickCallback) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FrameTickScheduler:
    """Scheduler drained explicitly once per frame.

    The pygame loop calls ``run_frame()`` after polling events; headless
    simulations call it after advancing a fake clock.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._pending: list[_PendingTick] = []

    @property
    def pending_count(self) -> int:
        return sum(1 for p in self._pending if not p.cancelled)

    def schedule_tick(self, callback: TickCallback) -> CancelHandle:
        pending = _PendingTick(callback)
        self._pending.append(pending)
        return pending

    def run_frame(self) -> int:
        """Fire every callback scheduled before this frame. Returns how many ran."""

        due, self._pending = self._pending, []
        now = self._clock.now()
        fired = 0
        for pending in due:
            if pending.cancelled:
                continue
            pending.cancelled = True
            pending.callback(now)
            fired += 1
        return fired
