from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

from throttlewrite.cancellation import CancellationToken
from throttlewrite.errors import DriverError, ErrorKind
from throttlewrite.models import Operation, TerminalError, WriteSuccess, new_order, order_operation
from throttlewrite.observer import LoggingAttemptObserver
from throttlewrite.orchestrator import WriteOrchestrator
from throttlewrite.retry import PolicyConfig, RetryPolicy
from throttlewrite.store import ThroughputLimitedStore


def test_burst_over_capacity_eventually_lands_every_row() -> None:
    store = ThroughputLimitedStore(capacity=4, partitions=2, window_seconds=0.2)
    orchestrator = WriteOrchestrator(
        store,
        policy=RetryPolicy(PolicyConfig(max_retries=20, base_delay_seconds=0.01, max_delay_seconds=0.2)),
        observer=LoggingAttemptObserver(),
    )
    operations = [order_operation(new_order()) for _ in range(24)]

    with ThreadPoolExecutor(max_workers=12) as pool:
        results = list(pool.map(orchestrator.execute, operations))

    assert all(isinstance(result, WriteSuccess) for result in results)
    assert set(store.rows()) == {operation.correlation_id for operation in operations}
    assert store.rejected > 0


def test_backoff_of_one_write_does_not_stall_others() -> None:
    slow_id = "slow"
    slow_calls = {"count": 0}
    lock = threading.Lock()

    def executor(operation: Operation) -> None:
        if operation.correlation_id == slow_id:
            with lock:
                slow_calls["count"] += 1
            raise DriverError("TooManyRequests (429)", retry_after=5.0)

    orchestrator = WriteOrchestrator(
        executor,
        policy=RetryPolicy(PolicyConfig(max_retries=3)),
        observer=LoggingAttemptObserver(),
    )
    token = CancellationToken()

    with ThreadPoolExecutor(max_workers=4) as pool:
        slow = pool.submit(
            orchestrator.execute,
            Operation(correlation_id=slow_id, payload={}),
            cancellation=token,
        )
        started = time.monotonic()
        fast = [
            pool.submit(orchestrator.execute, Operation(correlation_id=f"fast-{index}", payload={}))
            for index in range(10)
        ]
        fast_results = [future.result(timeout=5) for future in fast]
        fast_elapsed = time.monotonic() - started
        token.cancel()
        slow_result = slow.result(timeout=5)

    assert all(isinstance(result, WriteSuccess) for result in fast_results)
    assert fast_elapsed < 4.0
    assert isinstance(slow_result, TerminalError)
    assert slow_result.kind is ErrorKind.CANCELLED
    assert slow_calls["count"] == 1
