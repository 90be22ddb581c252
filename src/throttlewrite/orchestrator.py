"""Attempt loop that drives one logical write to a terminal outcome."""

from __future__ import annotations

import logging as py_logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import wait as wait_futures
from datetime import datetime, timezone

from throttlewrite.cancellation import CancellationToken, bounded_timeout
from throttlewrite.classifier import ClassifiedError, classify
from throttlewrite.errors import ErrorKind, OperationCancelled
from throttlewrite.logging import correlation_logger
from throttlewrite.models import (
    Attempt,
    AttemptOutcome,
    Operation,
    TerminalError,
    WriteResult,
    WriteSuccess,
)
from throttlewrite.observer import AttemptObserver, LoggingAttemptObserver
from throttlewrite.retry import RetryDecision, RetryPolicy
from throttlewrite.store import WriteExecutor

logger = py_logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WriteOrchestrator:
    """Issue a write, classify failures, and retry as the policy allows.

    Each :meth:`execute` call is an independent run: the attempt index and
    attempt history live on the call stack, so one orchestrator serves any
    number of concurrent writes. With ``retry_enabled=False`` a write gets
    exactly one attempt and any failure is terminal.

    When a cancellation token or ``attempt_timeout_seconds`` is given, each
    attempt runs on its own daemon thread so the caller can stop waiting on
    a hung driver call. An attempt that outlives the timeout counts as a
    :class:`TimeoutError`; the abandoned call is left to the driver.
    """

    def __init__(
        self,
        executor: WriteExecutor,
        *,
        policy: RetryPolicy | None = None,
        observer: AttemptObserver | None = None,
        retry_enabled: bool = True,
        attempt_timeout_seconds: float | None = None,
        classifier: Callable[[BaseException], ClassifiedError] = classify,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.executor = executor
        self.policy = policy or RetryPolicy()
        self.observer = observer or LoggingAttemptObserver()
        self.retry_enabled = retry_enabled
        self.attempt_timeout_seconds = attempt_timeout_seconds
        self.classifier = classifier
        self.clock = clock
        self.wall_clock = wall_clock
        self.sleep = sleep

    def _observe(self, correlation_id: str, attempt_index: int, outcome: AttemptOutcome) -> None:
        try:
            self.observer.record(correlation_id, attempt_index, outcome)
        except Exception:
            correlation_logger(logger, correlation_id).debug("Attempt observer raised", exc_info=True)

    def _decide(self, error: ClassifiedError, attempt_index: int, operation: Operation) -> RetryDecision:
        if not self.retry_enabled:
            return RetryDecision.stop()
        return self.policy.decide(error, attempt_index, operation)

    def _pause(self, delay_seconds: float, cancellation: CancellationToken | None) -> bool:
        if cancellation is not None:
            return cancellation.wait(delay_seconds)
        self.sleep(bounded_timeout(delay_seconds))
        return False

    def _start(self, operation: Operation) -> Future:
        future: Future = Future()

        def run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                self.executor(operation)
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(None)

        threading.Thread(
            target=run,
            name=f"throttlewrite-attempt-{operation.correlation_id}",
            daemon=True,
        ).start()
        return future

    def _issue(self, operation: Operation, cancellation: CancellationToken | None) -> bool:
        """Run one attempt; return True if it was abandoned after cancellation.

        Driver errors propagate to the caller.
        """
        timeout = self.attempt_timeout_seconds
        if cancellation is None and timeout is None:
            self.executor(operation)
            return False

        future = self._start(operation)
        if cancellation is not None:
            if cancellation.wait_for(future, timeout=timeout):
                return True
        else:
            wait_futures([future], timeout=bounded_timeout(timeout))
        if not future.done():
            raise TimeoutError(f"No response within {timeout:g}s")
        future.result()
        return False

    def _cancelled(
        self,
        operation: Operation,
        attempts: list[Attempt],
        raw_error: BaseException | None,
    ) -> TerminalError:
        correlation_logger(logger, operation.correlation_id).info(
            "Write cancelled attempts=%s",
            len(attempts),
        )
        return TerminalError(
            kind=ErrorKind.CANCELLED,
            raw_error=raw_error,
            attempts_made=len(attempts),
            attempts=tuple(attempts),
        )

    def execute(
        self,
        operation: Operation,
        *,
        cancellation: CancellationToken | None = None,
    ) -> WriteResult:
        log = correlation_logger(logger, operation.correlation_id)
        attempts: list[Attempt] = []
        index = 0
        while True:
            if cancellation is not None and cancellation.cancelled:
                return self._cancelled(operation, attempts, None)

            started_at = self.wall_clock()
            started = self.clock()
            try:
                abandoned = self._issue(operation, cancellation)
            except Exception as exc:
                duration = self.clock() - started
                classified = self.classifier(exc)
                attempts.append(
                    Attempt(
                        index=index,
                        started_at=started_at,
                        duration_seconds=duration,
                        error_kind=classified.kind,
                        error=exc,
                    )
                )
                self._observe(
                    operation.correlation_id,
                    index,
                    AttemptOutcome.failed(classified.kind, exc),
                )
                if cancellation is not None and cancellation.cancelled:
                    return self._cancelled(operation, attempts, exc)

                decision = self._decide(classified, index, operation)
                if not decision.should_retry:
                    log.debug(
                        "Giving up kind=%s attempts=%s",
                        classified.kind.value,
                        index + 1,
                    )
                    return TerminalError(
                        kind=classified.kind,
                        raw_error=exc,
                        attempts_made=index + 1,
                        attempts=tuple(attempts),
                    )

                log.debug(
                    "Retrying kind=%s attempt=%s delay=%.3fs",
                    classified.kind.value,
                    index,
                    decision.delay_seconds,
                )
                if self._pause(decision.delay_seconds, cancellation):
                    return self._cancelled(operation, attempts, exc)
                index += 1
                continue

            if abandoned:
                error = OperationCancelled(f"Attempt {index} abandoned while awaiting the backend")
                attempts.append(
                    Attempt(
                        index=index,
                        started_at=started_at,
                        duration_seconds=self.clock() - started,
                        error_kind=ErrorKind.CANCELLED,
                        error=error,
                    )
                )
                self._observe(
                    operation.correlation_id,
                    index,
                    AttemptOutcome.failed(ErrorKind.CANCELLED, error),
                )
                return self._cancelled(operation, attempts, error)

            attempts.append(
                Attempt(
                    index=index,
                    started_at=started_at,
                    duration_seconds=self.clock() - started,
                )
            )
            self._observe(operation.correlation_id, index, AttemptOutcome.succeeded())
            return WriteSuccess(operation=operation, attempts=tuple(attempts))
