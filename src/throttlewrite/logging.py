"""Logging for the writer: handler setup and per-write correlation context.

Every record formatted by the ``throttlewrite`` handlers carries a
``correlation_id`` attribute. Code that logs on behalf of one write wraps its
module logger with :func:`correlation_logger`; everything else shows ``-``.
"""

from __future__ import annotations

import logging as py_logging
import sys
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any, TextIO

from throttlewrite.config import WriterConfig

LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "WARNING": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
LOGGER_NAME = "throttlewrite"
NO_CORRELATION = "-"
_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"


class CorrelationFilter(py_logging.Filter):
    """Default ``correlation_id`` on records logged outside a write."""

    def filter(self, record: py_logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = NO_CORRELATION
        return True


class CorrelationAdapter(py_logging.LoggerAdapter):
    """Attach a write's correlation id while keeping caller-supplied extras."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(kwargs.get("extra") or {}), **(self.extra or {})}
        return msg, kwargs


def correlation_logger(
    logger: py_logging.Logger | py_logging.LoggerAdapter,
    correlation_id: str,
) -> CorrelationAdapter:
    return CorrelationAdapter(logger, {"correlation_id": correlation_id})


def _open_log_file(log_file: str) -> py_logging.Handler | None:
    log_path = Path(log_file).expanduser().resolve()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return py_logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        return None


def configure_logging(
    config: WriterConfig | None = None,
    stream: TextIO | None = None,
) -> py_logging.Logger:
    """Route ``throttlewrite`` records to ``stream`` and the configured log file.

    The stream handler honours ``config.log_level``. A log file, when set,
    always receives DEBUG records, so the logger itself is opened up to DEBUG
    in that case. An unwritable log file is skipped.
    """
    config = config or WriterConfig()
    level = LOG_LEVELS.get(config.log_level, py_logging.INFO)
    formatter = py_logging.Formatter(_FORMAT)
    correlation = CorrelationFilter()

    logger = py_logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.propagate = False

    console = py_logging.StreamHandler(stream or sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    console.addFilter(correlation)
    logger.addHandler(console)

    file_handler = _open_log_file(config.log_file) if config.log_file else None
    if file_handler is not None:
        file_handler.setLevel(py_logging.DEBUG)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(correlation)
        logger.addHandler(file_handler)
        level = py_logging.DEBUG

    logger.setLevel(level)
    return logger
