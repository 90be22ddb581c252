"""Error kinds, driver errors and the exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from http import HTTPStatus


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    WRITE_FAILURES = 5


class ErrorKind(str, Enum):
    THROTTLED = "throttled"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"
    OTHER = "other"
    CANCELLED = "cancelled"


_HTTP_STATUS = {
    ErrorKind.THROTTLED: HTTPStatus.TOO_MANY_REQUESTS,
    ErrorKind.TIMEOUT: HTTPStatus.REQUEST_TIMEOUT,
}


def http_status_for(kind: ErrorKind) -> int:
    return int(_HTTP_STATUS.get(kind, HTTPStatus.INTERNAL_SERVER_ERROR))


@dataclass
class ThrottleWriteError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


class DriverError(Exception):
    """Raw failure reported by a database driver for one attempt.

    ``code`` is whatever the driver exposes (an HTTP-like status, a protocol
    error name) and ``retry_after`` is a server-suggested wait in seconds.
    """

    def __init__(
        self,
        message: str,
        *,
        code: int | str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.retry_after = retry_after


class OperationCancelled(Exception):
    """An attempt was abandoned because its write was cancelled."""


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
