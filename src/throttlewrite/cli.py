"""Command line load runner against the in-process throttling store."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
from collections import Counter
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .config import WriterConfig, load_config, policy_config
from .errors import ExitCode, ThrottleWriteError, user_facing_error
from .logging import configure_logging
from .observer import LoggingAttemptObserver
from .orchestrator import WriteOrchestrator
from .retry import RetryPolicy
from .service import OrderResponse, OrderService
from .store import ThroughputLimitedStore

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


def _positive_int(flag: str) -> Callable[[str], int]:
    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"{flag} must be an integer") from exc
        if number < 1:
            raise argparse.ArgumentTypeError(f"{flag} must be at least 1")
        return number

    return parse


def _max_retries_type(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--max-retries must be an integer") from exc
    if number < 0:
        raise argparse.ArgumentTypeError("--max-retries cannot be negative")
    return number


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="throttlewrite")
    parser.add_argument("--orders", type=_positive_int("--orders"), default=20)
    parser.add_argument("--workers", type=_positive_int("--workers"), default=8)
    parser.add_argument("--capacity", type=_positive_int("--capacity"), default=5)
    parser.add_argument("--partitions", type=_positive_int("--partitions"), default=2)
    parser.add_argument("--max-retries", type=_max_retries_type, default=None)
    parser.add_argument(
        "--no-retry",
        action="store_true",
        help="Disable the retry policy; every write gets a single attempt",
    )
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def resolve_config(namespace: argparse.Namespace) -> WriterConfig:
    config = load_config(namespace.config)
    if namespace.max_retries is not None:
        config.max_retries = namespace.max_retries
    if namespace.no_retry:
        config.retry_enabled = False
    if namespace.log_level is not None:
        config.log_level = namespace.log_level
    if namespace.log_file is not None:
        config.log_file = str(namespace.log_file)
    return config


def build_service(config: WriterConfig, store: ThroughputLimitedStore) -> OrderService:
    orchestrator = WriteOrchestrator(
        store,
        policy=RetryPolicy(policy_config(config)),
        observer=LoggingAttemptObserver(),
        retry_enabled=config.retry_enabled,
        attempt_timeout_seconds=config.request_timeout_seconds,
    )
    return OrderService(orchestrator)


def run_load(service: OrderService, *, orders: int, workers: int) -> list[OrderResponse]:
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(service.add_order) for _ in range(orders)]
        return [future.result() for future in futures]


def summarize(responses: Sequence[OrderResponse]) -> str:
    tally = Counter(response.status for response in responses)
    retried = sum(1 for response in responses if response.attempts > 1)
    parts = [f"{status}={count}" for status, count in sorted(tally.items())]
    return f"orders={len(responses)} retried={retried} " + " ".join(parts)


def main(argv: Sequence[str] | None = None) -> int:
    logger = configure_logging()
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    try:
        config = resolve_config(namespace)
        logger = configure_logging(config)
        logger.debug(
            "Starting load run orders=%s workers=%s retry_enabled=%s max_retries=%s",
            namespace.orders,
            namespace.workers,
            config.retry_enabled,
            config.max_retries,
        )
        store = ThroughputLimitedStore(capacity=namespace.capacity, partitions=namespace.partitions)
        responses = run_load(
            build_service(config, store),
            orders=namespace.orders,
            workers=namespace.workers,
        )
        print(summarize(responses))
        if all(response.ok for response in responses):
            return int(ExitCode.SUCCESS)
        return int(ExitCode.WRITE_FAILURES)
    except ThrottleWriteError as exc:
        logger.error(
            "Handled ThrottleWriteError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        print(user_facing_error("Unexpected runtime failure"), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
