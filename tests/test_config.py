from __future__ import annotations

from pathlib import Path

import pytest

from throttlewrite.config import (
    WriterConfig,
    load_config,
    parse_bool,
    policy_config,
    require_connection_settings,
)
from throttlewrite.errors import ExitCode, ThrottleWriteError


def test_load_defaults_when_config_missing(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "config.toml", environ={})

    assert cfg.retry_enabled is True
    assert cfg.max_retries == 5
    assert cfg.request_timeout_seconds == 3.0
    assert cfg.log_file == ""
    assert cfg.log_level == "INFO"


def test_file_values_are_loaded(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                'contact_point = "acct.cassandra.cosmos.azure.com"',
                'keyspace = "ordersapp"',
                'table = "orders"',
                "max_retries = 3",
                "base_delay_seconds = 0.2",
                "retry_enabled = false",
                'log_level = "debug"',
            ]
        ),
        encoding="utf-8",
    )

    cfg = load_config(path, environ={})

    assert cfg.contact_point == "acct.cassandra.cosmos.azure.com"
    assert cfg.keyspace == "ordersapp"
    assert cfg.table == "orders"
    assert cfg.max_retries == 3
    assert cfg.base_delay_seconds == 0.2
    assert cfg.retry_enabled is False
    assert cfg.log_level == "DEBUG"


def test_environment_overrides_file(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('keyspace = "fromfile"\nmax_retries = 1\n', encoding="utf-8")

    cfg = load_config(
        path,
        environ={
            "COSMOSDB_CASSANDRA_KEYSPACE": "fromenv",
            "COSMOSDB_CASSANDRA_USER": "user",
            "COSMOSDB_CASSANDRA_PASSWORD": "secret",
            "USE_RETRY_POLICY": "FALSE",
            "MAX_RETRIES": "7",
        },
    )

    assert cfg.keyspace == "fromenv"
    assert cfg.username == "user"
    assert cfg.password == "secret"
    assert cfg.retry_enabled is False
    assert cfg.max_retries == 7


def test_password_is_hidden_from_repr() -> None:
    assert "secret" not in repr(WriterConfig(password="secret"))


@pytest.mark.parametrize(("raw", "expected"), [("1", True), ("t", True), ("True", True), ("0", False), ("F", False)])
def test_parse_bool_accepts_strconv_vocabulary(raw: str, expected: bool) -> None:
    assert parse_bool(raw) is expected


def test_require_connection_settings_lists_missing_variables() -> None:
    with pytest.raises(ThrottleWriteError) as exc:
        require_connection_settings(WriterConfig(contact_point="host"))

    assert exc.value.code == ExitCode.CONFIG_ERROR
    assert "COSMOSDB_CASSANDRA_USER" in exc.value.hint
    assert "COSMOSDB_CASSANDRA_PASSWORD" in exc.value.hint
    assert "COSMOSDB_CASSANDRA_CONTACT_POINT" not in exc.value.hint


def test_require_connection_settings_passes_complete_config() -> None:
    cfg = WriterConfig(contact_point="host", username="u", password="p")

    assert require_connection_settings(cfg) is cfg


def test_policy_config_follows_writer_config() -> None:
    policy = policy_config(WriterConfig(max_retries=2, base_delay_seconds=0.5, max_delay_seconds=0.1))

    assert policy.max_retries == 2
    assert policy.base_delay_seconds == 0.5
    assert policy.max_delay_seconds == 0.5
