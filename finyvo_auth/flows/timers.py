"""
Flow timers on the running asyncio loop.

`Countdown` drives the resend cooldowns (one decrement per tick).
`OneShotTimer` drives delayed actions that the user may cancel, such as
the auto-redirect after a password reset.
"""

import asyncio
from typing import Callable, Optional


class Countdown:
    """
    Whole-second countdown.

    `tick()` is public so tests can step the countdown without waiting.
    """

    def __init__(
        self,
        on_change: Optional[Callable[[int], None]] = None,
        tick_seconds: float = 1.0,
    ):
        self._on_change = on_change
        self._tick_seconds = tick_seconds
        self._remaining = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, seconds: int) -> None:
        """Restart from `seconds`. Must be called with a running loop."""
        self._cancel_task()
        self._set(seconds)
        if seconds > 0:
            self._task = asyncio.ensure_future(self._run())

    def tick(self) -> None:
        if self._remaining > 0:
            self._set(self._remaining - 1)

    def stop(self) -> None:
        self._cancel_task()
        self._set(0)

    async def _run(self) -> None:
        while self._remaining > 0:
            await asyncio.sleep(self._tick_seconds)
            self.tick()

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _set(self, value: int) -> None:
        if value == self._remaining:
            return
        self._remaining = value
        if self._on_change is not None:
            self._on_change(value)


class OneShotTimer:
    """Calls `callback` once after `delay` seconds unless cancelled first."""

    def __init__(self, delay: float, callback: Callable[[], None]):
        self._delay = delay
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self.fired = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        self.cancel()
        self.fired = False
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.fired = True
        self._callback()
