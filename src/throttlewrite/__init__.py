"""Retry/backoff engine for writes against throughput-limited stores."""

from .cancellation import CancellationToken
from .classifier import ClassifiedError, classify
from .errors import DriverError, ErrorKind, http_status_for
from .models import (
    Attempt,
    AttemptOutcome,
    Operation,
    TerminalError,
    WriteResult,
    WriteSuccess,
)
from .observer import AttemptObserver, CompositeObserver, LoggingAttemptObserver
from .orchestrator import WriteOrchestrator
from .retry import PolicyConfig, RetryDecision, RetryPolicy

__all__ = [
    "Attempt",
    "AttemptObserver",
    "AttemptOutcome",
    "CancellationToken",
    "ClassifiedError",
    "CompositeObserver",
    "DriverError",
    "ErrorKind",
    "LoggingAttemptObserver",
    "Operation",
    "PolicyConfig",
    "RetryDecision",
    "RetryPolicy",
    "TerminalError",
    "WriteOrchestrator",
    "WriteResult",
    "WriteSuccess",
    "classify",
    "http_status_for",
]
