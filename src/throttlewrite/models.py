"""Write operation, attempt and result models."""

from __future__ import annotations

import random
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from throttlewrite.errors import ErrorKind, http_status_for

FIXED_LOCATION = "Seattle"
MIN_AMOUNT = 50
MAX_AMOUNT = 249


@dataclass(frozen=True)
class Operation:
    correlation_id: str
    payload: Mapping[str, object]
    idempotent: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))


@dataclass(frozen=True)
class AttemptOutcome:
    kind: ErrorKind | None = None
    error: BaseException | None = None

    @property
    def success(self) -> bool:
        return self.kind is None

    @classmethod
    def succeeded(cls) -> AttemptOutcome:
        return cls()

    @classmethod
    def failed(cls, kind: ErrorKind, error: BaseException) -> AttemptOutcome:
        return cls(kind=kind, error=error)


@dataclass(frozen=True)
class Attempt:
    index: int
    started_at: datetime
    duration_seconds: float
    error_kind: ErrorKind | None = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None


@dataclass(frozen=True)
class WriteSuccess:
    operation: Operation
    attempts: tuple[Attempt, ...] = field(default_factory=tuple)

    ok = True

    @property
    def attempts_made(self) -> int:
        return len(self.attempts)


@dataclass(frozen=True)
class TerminalError:
    kind: ErrorKind
    raw_error: BaseException | None
    attempts_made: int
    attempts: tuple[Attempt, ...] = field(default_factory=tuple)

    ok = False

    @property
    def status_code(self) -> int:
        return http_status_for(self.kind)

    @property
    def message(self) -> str:
        if self.raw_error is None:
            return self.kind.value
        return str(self.raw_error) or type(self.raw_error).__name__


WriteResult = Union[WriteSuccess, TerminalError]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    amount: int = Field(ge=0)
    state: str = FIXED_LOCATION
    time: datetime = Field(default_factory=_utcnow)

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        uuid.UUID(value)
        return value

    def as_row(self) -> tuple[str, int, str, datetime]:
        return (self.id, self.amount, self.state, self.time)


def new_order(
    *,
    rng: random.Random | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> OrderRecord:
    source = rng or random
    return OrderRecord(
        id=str(uuid.uuid4()),
        amount=source.randint(MIN_AMOUNT, MAX_AMOUNT),
        state=FIXED_LOCATION,
        time=clock(),
    )


def order_operation(order: OrderRecord) -> Operation:
    """Wrap an order insert; the primary key is fixed so resending is safe."""
    return Operation(
        correlation_id=order.id,
        payload=order.model_dump(),
        idempotent=True,
    )
