"""Per-attempt observation hooks."""

from __future__ import annotations

import logging as py_logging
from typing import Protocol

from throttlewrite.logging import correlation_logger
from throttlewrite.models import AttemptOutcome

logger = py_logging.getLogger(__name__)


class AttemptObserver(Protocol):
    def record(self, correlation_id: str, attempt_index: int, outcome: AttemptOutcome) -> None: ...


class LoggingAttemptObserver:
    """Log one line per attempt, preceded by a retry note for attempts after the first.

    Lines carry the write's correlation id as the ``correlation_id`` record
    attribute.
    """

    def __init__(self, log: py_logging.Logger | None = None) -> None:
        self._log = log or logger

    def record(self, correlation_id: str, attempt_index: int, outcome: AttemptOutcome) -> None:
        try:
            self._emit(correlation_id, attempt_index, outcome)
        except Exception:
            pass

    def _emit(self, correlation_id: str, attempt_index: int, outcome: AttemptOutcome) -> None:
        log = correlation_logger(self._log, correlation_id)
        if attempt_index > 0:
            log.info("Order %s is being retried attempt=%s", correlation_id, attempt_index)
        if outcome.success:
            log.info("Write succeeded attempt=%s", attempt_index)
            return
        kind = outcome.kind.value if outcome.kind is not None else "unknown"
        log.warning(
            "Write failed attempt=%s kind=%s error=%s",
            attempt_index,
            kind,
            outcome.error,
        )


class CompositeObserver:
    def __init__(self, *observers: AttemptObserver) -> None:
        self._observers = observers

    def record(self, correlation_id: str, attempt_index: int, outcome: AttemptOutcome) -> None:
        for observer in self._observers:
            try:
                observer.record(correlation_id, attempt_index, outcome)
            except Exception:
                logger.debug("Attempt observer failed: %r", observer, exc_info=True)
