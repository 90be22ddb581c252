from __future__ import annotations

import threading
import time
from concurrent.futures import Future

from throttlewrite.cancellation import CancellationToken, bounded_timeout


def test_token_starts_uncancelled_and_wait_elapses() -> None:
    token = CancellationToken()

    assert token.cancelled is False
    assert token.remaining() is None
    assert token.wait(0.0) is False


def test_cancel_interrupts_wait() -> None:
    token = CancellationToken()
    timer = threading.Timer(0.05, token.cancel)
    timer.start()

    started = time.monotonic()
    interrupted = token.wait(10.0)
    timer.join()

    assert interrupted is True
    assert time.monotonic() - started < 5.0
    assert token.cancelled is True


def test_deadline_trips_token() -> None:
    now = {"value": 100.0}
    token = CancellationToken(deadline_seconds=2.0, clock=lambda: now["value"])

    assert token.remaining() == 2.0
    now["value"] = 102.0

    assert token.cancelled is True
    assert token.remaining() == 0.0


def test_wait_longer_than_deadline_reports_cancelled() -> None:
    token = CancellationToken(deadline_seconds=0.01)

    assert token.wait(5.0) is True


def test_negative_wait_is_treated_as_zero() -> None:
    assert CancellationToken().wait(-1.0) is False


def test_bounded_timeout_clamps_unusable_waits() -> None:
    assert bounded_timeout(None) is None
    assert bounded_timeout(-3.0) == 0.0
    assert bounded_timeout(float("nan")) == 0.0
    assert bounded_timeout(float("inf")) == threading.TIMEOUT_MAX
    assert bounded_timeout(1e300) == threading.TIMEOUT_MAX
    assert bounded_timeout(0.5) == 0.5


def test_huge_wait_does_not_overflow() -> None:
    token = CancellationToken()
    timer = threading.Timer(0.05, token.cancel)
    timer.start()

    assert token.wait(float("inf")) is True
    timer.join()


def test_wait_for_returns_false_when_future_finishes() -> None:
    token = CancellationToken()
    future: Future = Future()
    timer = threading.Timer(0.05, future.set_result, args=(None,))
    timer.start()

    assert token.wait_for(future, timeout=5.0) is False
    timer.join()
    assert future.done()


def test_wait_for_returns_true_when_cancelled_first() -> None:
    token = CancellationToken()
    future: Future = Future()
    timer = threading.Timer(0.05, token.cancel)
    timer.start()

    started = time.monotonic()
    assert token.wait_for(future) is True
    timer.join()

    assert time.monotonic() - started < 5.0
    assert not future.done()


def test_wait_for_gives_up_after_timeout() -> None:
    token = CancellationToken()
    future: Future = Future()

    assert token.wait_for(future, timeout=0.05) is False
    assert not future.done()
    assert token.cancelled is False


def test_wait_for_stops_at_deadline() -> None:
    token = CancellationToken(deadline_seconds=0.05)

    assert token.wait_for(Future(), timeout=5.0) is True
