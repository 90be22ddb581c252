from __future__ import annotations

import io
import logging as py_logging
from pathlib import Path

import throttlewrite.logging as tw_logging
from throttlewrite.config import WriterConfig


def test_warning_alias_maps_to_warning_level() -> None:
    logger = tw_logging.configure_logging(WriterConfig(log_level="warning"))

    assert logger.level == tw_logging.LOG_LEVELS["WARN"]


def test_default_config_logs_at_info() -> None:
    logger = tw_logging.configure_logging()

    assert logger.level == py_logging.INFO


def test_configure_logging_resets_existing_handlers() -> None:
    logger = tw_logging.configure_logging()
    assert len(logger.handlers) == 1

    logger = tw_logging.configure_logging()

    assert len(logger.handlers) == 1


def test_module_loggers_write_through_package_handler() -> None:
    stream = io.StringIO()
    tw_logging.configure_logging(WriterConfig(log_level="DEBUG"), stream)

    py_logging.getLogger("throttlewrite.orchestrator").debug("Retrying kind=%s", "throttled")

    output = stream.getvalue()
    assert "DEBUG throttlewrite.orchestrator [-] Retrying kind=throttled" in output


def test_correlation_logger_stamps_records() -> None:
    stream = io.StringIO()
    tw_logging.configure_logging(WriterConfig(log_level="INFO"), stream)
    log = tw_logging.correlation_logger(py_logging.getLogger("throttlewrite.service"), "order-7")

    log.info("Added order", extra={"status": 201})

    assert "[order-7] Added order" in stream.getvalue()


def test_correlation_logger_keeps_caller_extras(caplog) -> None:
    logger = py_logging.getLogger("correlation_tests")
    log = tw_logging.correlation_logger(logger, "order-3")

    with caplog.at_level(py_logging.INFO, logger=logger.name):
        log.info("done", extra={"status": 201})

    record = caplog.records[0]
    assert record.correlation_id == "order-3"
    assert record.status == 201


def test_log_file_receives_debug_while_console_stays_quiet(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "throttlewrite.log"
    stream = io.StringIO()
    config = WriterConfig(log_level="ERROR", log_file=str(log_file))

    logger = tw_logging.configure_logging(config, stream)
    py_logging.getLogger("throttlewrite.orchestrator").debug("Giving up kind=other")
    for handler in logger.handlers:
        handler.flush()

    file_handlers = [
        handler for handler in logger.handlers if isinstance(handler, py_logging.FileHandler)
    ]
    assert len(file_handlers) == 1
    assert file_handlers[0].level == py_logging.DEBUG
    assert logger.level == py_logging.DEBUG
    assert "Giving up kind=other" in log_file.read_text(encoding="utf-8")
    assert stream.getvalue() == ""
    file_handlers[0].close()


def test_unwritable_log_file_is_skipped(monkeypatch, tmp_path: Path) -> None:
    def raise_os_error(*args: object, **kwargs: object) -> py_logging.Handler:
        raise OSError("disk full")

    monkeypatch.setattr(tw_logging.py_logging, "FileHandler", raise_os_error)
    config = WriterConfig(log_level="INFO", log_file=str(tmp_path / "nope" / "throttlewrite.log"))

    logger = tw_logging.configure_logging(config)

    assert len(logger.handlers) == 1
    assert type(logger.handlers[0]) is py_logging.StreamHandler
    assert logger.level == py_logging.INFO
