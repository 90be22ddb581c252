"""Per-operation cancellation and deadline handling."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future


def bounded_timeout(seconds: float | None) -> float | None:
    """Clamp a wait so ``Event.wait``/``time.sleep`` never overflow."""
    if seconds is None:
        return None
    if seconds != seconds:
        return 0.0
    return min(max(seconds, 0.0), threading.TIMEOUT_MAX)


class CancellationToken:
    """Cancellation signal owned by a single write.

    The token trips when :meth:`cancel` is called or once the optional
    deadline has elapsed. :meth:`wait` sleeps on a private event, so a
    backoff only ever blocks the thread that is running the write.
    :meth:`wait_for` blocks until an in-flight attempt finishes or the token
    trips, whichever comes first.
    """

    def __init__(
        self,
        deadline_seconds: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._listeners: list[threading.Event] = []
        self._clock = clock
        self._deadline = None if deadline_seconds is None else clock() + max(deadline_seconds, 0.0)

    def cancel(self) -> None:
        self._event.set()
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(self._deadline - self._clock(), 0.0)

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        if self.cancelled:
            return True
        timeout = bounded_timeout(seconds) or 0.0
        remaining = self.remaining()
        if remaining is not None and remaining < timeout:
            self._event.wait(bounded_timeout(remaining))
            return True
        if self._event.wait(timeout):
            return True
        return self.cancelled

    def wait_for(self, future: Future, timeout: float | None = None) -> bool:
        """Wait for ``future`` for at most ``timeout`` seconds.

        Return True as soon as the token trips while the future is still
        pending. A future that finished first wins, even if the token trips
        right after.
        """
        wakeup = threading.Event()
        future.add_done_callback(lambda _: wakeup.set())
        with self._lock:
            self._listeners.append(wakeup)
        started = self._clock()
        try:
            while not future.done():
                if self.cancelled:
                    return True
                budgets = [self.remaining()]
                if timeout is not None:
                    budgets.append(max(timeout - (self._clock() - started), 0.0))
                    if budgets[-1] == 0.0:
                        return False
                limits = [budget for budget in budgets if budget is not None]
                wakeup.wait(bounded_timeout(min(limits)) if limits else None)
                wakeup.clear()
            return False
        finally:
            with self._lock:
                self._listeners.remove(wakeup)
