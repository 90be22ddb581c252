"""Retry/backoff decisions for writes against a throughput-limited backend."""

from __future__ import annotations

import random
from dataclasses import dataclass

from throttlewrite.classifier import ClassifiedError
from throttlewrite.errors import ErrorKind, ExitCode, ThrottleWriteError
from throttlewrite.models import Operation

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY_SECONDS = 0.1
DEFAULT_MAX_DELAY_SECONDS = 5.0


@dataclass(frozen=True)
class PolicyConfig:
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS
    max_delay_seconds: float = DEFAULT_MAX_DELAY_SECONDS

    def __post_init__(self) -> None:
        invalid_count = isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int)
        if invalid_count or self.max_retries < 0:
            raise ThrottleWriteError(
                f"Invalid max_retries: {self.max_retries!r}",
                code=ExitCode.CONFIG_ERROR,
                hint="Use a non-negative integer.",
            )
        if self.base_delay_seconds < 0:
            raise ThrottleWriteError(
                f"Invalid base delay: {self.base_delay_seconds}",
                code=ExitCode.CONFIG_ERROR,
                hint="Base delay cannot be negative.",
            )
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ThrottleWriteError(
                f"Invalid max delay: {self.max_delay_seconds}",
                code=ExitCode.CONFIG_ERROR,
                hint="Max delay cannot be lower than the base delay.",
            )


@dataclass(frozen=True)
class RetryDecision:
    should_retry: bool
    delay_seconds: float = 0.0

    @classmethod
    def stop(cls) -> RetryDecision:
        return cls(should_retry=False, delay_seconds=0.0)


class RetryPolicy:
    """Decide whether a failed attempt is retried and after how long.

    The policy keeps no per-operation state: the attempt index arrives as an
    argument on every call, so one instance is shared by all concurrent
    writes. ``rng`` is only read for jitter.
    """

    def __init__(self, config: PolicyConfig | None = None, *, rng: random.Random | None = None) -> None:
        self._config = config or PolicyConfig()
        self._rng = rng or random.Random()

    @property
    def config(self) -> PolicyConfig:
        return self._config

    @property
    def max_retries(self) -> int:
        return self._config.max_retries

    def backoff_delay(self, attempt_index: int) -> float:
        base = self._config.base_delay_seconds
        exponent = max(attempt_index, 0)
        # Exponent capped so the product stays a finite float.
        capped = base * (2 ** min(exponent, 64))
        delay = min(capped, self._config.max_delay_seconds)
        jitter = base * self._rng.random()
        return max(delay + jitter, 0.0)

    def decide(self, error: ClassifiedError, attempt_index: int, operation: Operation) -> RetryDecision:
        if attempt_index >= self._config.max_retries:
            return RetryDecision.stop()

        kind = error.kind
        if kind is ErrorKind.THROTTLED:
            if error.retry_after is not None:
                return RetryDecision(True, max(float(error.retry_after), 0.0))
            return RetryDecision(True, self.backoff_delay(attempt_index))
        if kind is ErrorKind.TIMEOUT:
            if not operation.idempotent:
                return RetryDecision.stop()
            return RetryDecision(True, self.backoff_delay(attempt_index))
        if kind is ErrorKind.UNAVAILABLE:
            return RetryDecision(True, self.backoff_delay(attempt_index))
        return RetryDecision.stop()
