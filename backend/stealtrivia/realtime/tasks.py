"""Background work: judging, question generation and the game's timers."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from flask_socketio import SocketIO


logger = logging.getLogger(__name__)


class ScheduledCall:
    def __init__(self, delay_sec: float, fn: Callable[..., Any], args: tuple) -> None:
        self.delay_sec = delay_sec
        self.fn = fn
        self.args = args
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not self.cancelled and not self.fired

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> bool:
        if not self.active:
            return False
        self.fired = True
        self.fn(*self.args)
        return True


def _run_logged(fn: Callable[..., Any], *args: Any) -> None:
    try:
        fn(*args)
    except Exception:
        logger.exception("background task %s failed", getattr(fn, "__name__", fn))


class SocketIOTaskRunner:
    """Runs work through ``socketio.start_background_task``.

    Timers poll in short steps so a cancelled call stops within ``step_sec``.
    """

    def __init__(self, socketio: SocketIO, step_sec: float = 0.25) -> None:
        self._socketio = socketio
        self.step_sec = step_sec

    def spawn(self, fn: Callable[..., Any], *args: Any) -> None:
        self._socketio.start_background_task(_run_logged, fn, *args)

    def call_later(self, delay_sec: float, fn: Callable[..., Any], *args: Any) -> ScheduledCall:
        call = ScheduledCall(delay_sec, fn, args)
        deadline = time.monotonic() + max(0.0, delay_sec)

        def _timer() -> None:
            while not call.cancelled:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._socketio.sleep(min(self.step_sec, remaining))
            call.fire()

        self.spawn(_timer)
        return call


class InlineTaskRunner:
    """Used in TESTING: spawned work runs immediately, timers wait until fired."""

    def __init__(self) -> None:
        self.pending: list[ScheduledCall] = []

    def spawn(self, fn: Callable[..., Any], *args: Any) -> None:
        fn(*args)

    def call_later(self, delay_sec: float, fn: Callable[..., Any], *args: Any) -> ScheduledCall:
        call = ScheduledCall(delay_sec, fn, args)
        self.pending.append(call)
        return call

    def active_calls(self) -> list[ScheduledCall]:
        return [c for c in self.pending if c.active]

    def run_pending(self) -> int:
        """Fire every active call scheduled so far. Returns how many fired."""
        due, self.pending = self.pending, []
        fired = 0
        for call in due:
            if call.fire():
                fired += 1
        self.pending = [c for c in self.pending if c.active]
        return fired
