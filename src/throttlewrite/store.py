"""Driver boundary: statement rendering, session adapter and a throttling store."""

from __future__ import annotations

import hashlib
import logging as py_logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from throttlewrite.errors import DriverError, ExitCode, ThrottleWriteError
from throttlewrite.models import Operation

logger = py_logging.getLogger(__name__)

INSERT_COLUMNS = ("id", "amount", "state", "time")
_INSERT_QUERY_FORMAT = "insert into {keyspace}.{table} ({columns}) values ({placeholders})"


class WriteExecutor(Protocol):
    def __call__(self, operation: Operation) -> None: ...


class DriverSession(Protocol):
    def execute(self, query: str, parameters: Any = None) -> Any: ...


def _validate_identifier(kind: str, value: str) -> str:
    candidate = value.strip()
    if not candidate or not all(char.isalnum() or char == "_" for char in candidate):
        raise ThrottleWriteError(
            f"Invalid {kind} name: {value!r}",
            code=ExitCode.CONFIG_ERROR,
            hint="Use letters, digits and underscores only.",
        )
    return candidate


def insert_statement(keyspace: str, table: str) -> str:
    return _INSERT_QUERY_FORMAT.format(
        keyspace=_validate_identifier("keyspace", keyspace),
        table=_validate_identifier("table", table),
        columns=",".join(INSERT_COLUMNS),
        placeholders=",".join("?" for _ in INSERT_COLUMNS),
    )


def bind_row(operation: Operation) -> tuple[object, ...]:
    missing = [column for column in INSERT_COLUMNS if column not in operation.payload]
    if missing:
        raise ValueError(f"Operation payload is missing columns: {', '.join(missing)}")
    return tuple(operation.payload[column] for column in INSERT_COLUMNS)


class SessionWriteExecutor:
    """Run one insert per call through a driver session.

    The session owns connections, pooling and its own retry settings; this
    adapter only binds the payload and lets driver exceptions propagate.
    """

    def __init__(self, session: DriverSession, statement: str) -> None:
        self.session = session
        self.statement = statement

    def __call__(self, operation: Operation) -> None:
        self.session.execute(self.statement, bind_row(operation))


@dataclass
class _PartitionWindow:
    started_at: float
    used: int = 0


class ThroughputLimitedStore:
    """In-process stand-in for a backend with per-partition throughput limits.

    Each partition admits ``capacity`` writes per ``window_seconds``. Excess
    writes are rejected with a 429 carrying ``RetryAfterMs`` set to the time
    left in the current window. Rows are keyed by id, so re-sending an insert
    overwrites the same row.
    """

    def __init__(
        self,
        *,
        capacity: int = 10,
        partitions: int = 4,
        window_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ThrottleWriteError(
                f"Invalid capacity: {capacity}",
                code=ExitCode.CONFIG_ERROR,
                hint="Capacity must be at least 1.",
            )
        if partitions < 1:
            raise ThrottleWriteError(
                f"Invalid partition count: {partitions}",
                code=ExitCode.CONFIG_ERROR,
                hint="Partition count must be at least 1.",
            )
        self.capacity = capacity
        self.partitions = partitions
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[int, _PartitionWindow] = {}
        self._rows: dict[str, dict[str, object]] = {}
        self.rejected = 0

    def partition_for(self, key: str) -> int:
        digest = hashlib.sha1(key.encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "big") % self.partitions

    def _admit(self, partition: int) -> float | None:
        now = self._clock()
        window = self._windows.get(partition)
        if window is None or now - window.started_at >= self.window_seconds:
            window = _PartitionWindow(started_at=now)
            self._windows[partition] = window
        if window.used < self.capacity:
            window.used += 1
            return None
        return max(window.started_at + self.window_seconds - now, 0.0)

    def __call__(self, operation: Operation) -> None:
        partition = self.partition_for(operation.correlation_id)
        with self._lock:
            wait = self._admit(partition)
            if wait is not None:
                self.rejected += 1
                retry_after_ms = math.ceil(wait * 1000)
                raise DriverError(
                    "TooManyRequests (429) - Request rate is large: "
                    f"ActivityId={operation.correlation_id}, RetryAfterMs={retry_after_ms}",
                    code=429,
                )
            self._rows[operation.correlation_id] = dict(operation.payload)
        logger.debug("Stored row id=%s partition=%s", operation.correlation_id, partition)

    def rows(self) -> dict[str, dict[str, object]]:
        with self._lock:
            return {key: dict(value) for key, value in self._rows.items()}
