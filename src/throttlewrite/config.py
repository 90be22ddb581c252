"""Writer configuration from TOML and the process environment."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from throttlewrite.errors import ExitCode, ThrottleWriteError
from throttlewrite.retry import (
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_MAX_DELAY_SECONDS,
    DEFAULT_MAX_RETRIES,
    PolicyConfig,
)

DEFAULT_CONFIG_PATH = Path("~/.config/throttlewrite/config.toml").expanduser()
DEFAULT_TIMEOUT_SECONDS = 3.0

CONTACT_POINT_ENV = "COSMOSDB_CASSANDRA_CONTACT_POINT"
USER_ENV = "COSMOSDB_CASSANDRA_USER"
PASSWORD_ENV = "COSMOSDB_CASSANDRA_PASSWORD"
KEYSPACE_ENV = "COSMOSDB_CASSANDRA_KEYSPACE"
TABLE_ENV = "COSMOSDB_CASSANDRA_TABLE"
USE_RETRY_POLICY_ENV = "USE_RETRY_POLICY"
MAX_RETRIES_ENV = "MAX_RETRIES"

_TRUE_VALUES = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_VALUES = {"0", "f", "F", "FALSE", "false", "False"}
_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARN", "WARNING", "ERROR"}


class WriterConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    contact_point: str = ""
    username: str = ""
    password: str = Field(default="", repr=False)
    keyspace: str = ""
    table: str = ""
    retry_enabled: bool = True
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    base_delay_seconds: float = Field(default=DEFAULT_BASE_DELAY_SECONDS, ge=0)
    max_delay_seconds: float = Field(default=DEFAULT_MAX_DELAY_SECONDS, ge=0)
    request_timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    log_level: str = "INFO"
    log_file: str = ""

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in _VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}")
        return normalized


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def parse_bool(value: str) -> bool:
    """Parse a boolean using the same vocabulary as Go's ``strconv.ParseBool``."""
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean: {value!r}")


def _sanitize(raw: Mapping[str, object]) -> WriterConfig:
    cfg = WriterConfig()
    for name in WriterConfig.model_fields:
        if name not in raw:
            continue
        value = raw[name]
        # bool is an int subclass; keep it out of the numeric fields.
        if isinstance(value, bool) and name != "retry_enabled":
            continue
        try:
            setattr(cfg, name, value)
        except ValidationError:
            continue
    return cfg


def _load_file(path: str | Path | None) -> WriterConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return WriterConfig()
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return WriterConfig()
    if not isinstance(raw, dict):
        return WriterConfig()
    return _sanitize(raw)


def _apply_environment(cfg: WriterConfig, environ: Mapping[str, str]) -> WriterConfig:
    for env_name, field_name in (
        (CONTACT_POINT_ENV, "contact_point"),
        (USER_ENV, "username"),
        (PASSWORD_ENV, "password"),
        (KEYSPACE_ENV, "keyspace"),
        (TABLE_ENV, "table"),
    ):
        value = environ.get(env_name, "").strip()
        if value:
            setattr(cfg, field_name, value)

    use_retry = environ.get(USE_RETRY_POLICY_ENV, "").strip()
    if use_retry:
        try:
            cfg.retry_enabled = parse_bool(use_retry)
        except ValueError as exc:
            raise ThrottleWriteError(
                f"Invalid {USE_RETRY_POLICY_ENV} value: {use_retry}",
                code=ExitCode.CONFIG_ERROR,
                hint="Use true or false.",
            ) from exc

    max_retries = environ.get(MAX_RETRIES_ENV, "").strip()
    if max_retries:
        try:
            cfg.max_retries = int(max_retries)
        except (ValueError, ValidationError) as exc:
            raise ThrottleWriteError(
                f"Invalid {MAX_RETRIES_ENV} value: {max_retries}",
                code=ExitCode.CONFIG_ERROR,
                hint="Use a non-negative integer.",
            ) from exc
    return cfg


def load_config(
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> WriterConfig:
    """Build a config from defaults, then the TOML file, then the environment.

    Invalid file values are dropped field by field. Invalid environment values
    raise :class:`ThrottleWriteError`, since they were set explicitly.
    """
    cfg = _load_file(path)
    return _apply_environment(cfg, os.environ if environ is None else environ)


def require_connection_settings(config: WriterConfig) -> WriterConfig:
    missing = [
        env_name
        for env_name, value in (
            (CONTACT_POINT_ENV, config.contact_point),
            (USER_ENV, config.username),
            (PASSWORD_ENV, config.password),
        )
        if not value
    ]
    if missing:
        raise ThrottleWriteError(
            "Missing mandatory connection settings.",
            code=ExitCode.CONFIG_ERROR,
            hint=f"Set {', '.join(missing)}.",
        )
    return config


def policy_config(config: WriterConfig) -> PolicyConfig:
    return PolicyConfig(
        max_retries=config.max_retries,
        base_delay_seconds=config.base_delay_seconds,
        max_delay_seconds=max(config.max_delay_seconds, config.base_delay_seconds),
    )
