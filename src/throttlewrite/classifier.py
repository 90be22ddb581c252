"""Map raw driver failures onto a fixed set of error kinds."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from throttlewrite.errors import ErrorKind

_RETRY_AFTER_MS = re.compile(r"RetryAfterMs=(\d+)", re.IGNORECASE)

_THROTTLED_MARKERS = (
    "toomanyrequests",
    "too many requests",
    "(429)",
    "rate limit",
    "request rate is large",
)
_THROTTLED_CODES = {"429", "toomanyrequests", "overloaded", "overloadederror"}

_TIMEOUT_MARKERS = ("timeout", "timed out")
_TIMEOUT_CODES = {"408", "timeout", "writetimeout"}

_UNAVAILABLE_MARKERS = (
    "unavailable",
    "no hosts available",
    "no connections",
    "connection refused",
    "not enough replicas",
)
_UNAVAILABLE_CODES = {"503", "unavailable"}


@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    retry_after: float | None = None


def _normalized_code(raw_error: BaseException) -> str:
    code = getattr(raw_error, "code", None)
    if code is None:
        return ""
    return str(code).strip().lower()


def _message(raw_error: BaseException) -> str:
    try:
        return str(raw_error).lower()
    except Exception:
        return ""


def _retry_after(raw_error: BaseException) -> float | None:
    explicit = getattr(raw_error, "retry_after", None)
    if isinstance(explicit, (int, float)) and not isinstance(explicit, bool):
        try:
            seconds = float(explicit)
        except OverflowError:
            seconds = math.inf
        # NaN and infinity count as no hint.
        if math.isfinite(seconds) and seconds >= 0:
            return seconds
    try:
        match = _RETRY_AFTER_MS.search(str(raw_error))
    except Exception:
        return None
    if match is None:
        return None
    try:
        return int(match.group(1)) / 1000.0
    except OverflowError:
        return None


def is_throttled(raw_error: BaseException) -> bool:
    message = _message(raw_error)
    return _normalized_code(raw_error) in _THROTTLED_CODES or any(
        marker in message for marker in _THROTTLED_MARKERS
    )


def is_timeout(raw_error: BaseException) -> bool:
    if isinstance(raw_error, TimeoutError):
        return True
    message = _message(raw_error)
    return _normalized_code(raw_error) in _TIMEOUT_CODES or any(
        marker in message for marker in _TIMEOUT_MARKERS
    )


def is_unavailable(raw_error: BaseException) -> bool:
    if isinstance(raw_error, ConnectionError):
        return True
    message = _message(raw_error)
    return _normalized_code(raw_error) in _UNAVAILABLE_CODES or any(
        marker in message for marker in _UNAVAILABLE_MARKERS
    )


def classify(raw_error: BaseException) -> ClassifiedError:
    """Label ``raw_error`` with exactly one :class:`ErrorKind`.

    Checks run from most to least specific and the first match wins, so a
    throttling rejection that mentions a timeout is still throttled. Anything
    unrecognised is :attr:`ErrorKind.OTHER`.
    """
    if is_throttled(raw_error):
        return ClassifiedError(ErrorKind.THROTTLED, retry_after=_retry_after(raw_error))
    if is_timeout(raw_error):
        return ClassifiedError(ErrorKind.TIMEOUT)
    if is_unavailable(raw_error):
        return ClassifiedError(ErrorKind.UNAVAILABLE)
    return ClassifiedError(ErrorKind.OTHER)
