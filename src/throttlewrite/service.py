"""Order intake: build an insert, run it, and map the outcome to a status."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Callable
from dataclasses import dataclass
from http import HTTPStatus

from throttlewrite.cancellation import CancellationToken
from throttlewrite.logging import correlation_logger
from throttlewrite.models import OrderRecord, TerminalError, WriteResult, new_order, order_operation
from throttlewrite.orchestrator import WriteOrchestrator

logger = py_logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderResponse:
    status: int
    body: str
    order_id: str
    attempts: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def status_for(result: WriteResult) -> int:
    if isinstance(result, TerminalError):
        return result.status_code
    return int(HTTPStatus.CREATED)


class OrderService:
    def __init__(
        self,
        orchestrator: WriteOrchestrator,
        *,
        order_factory: Callable[[], OrderRecord] = new_order,
    ) -> None:
        self.orchestrator = orchestrator
        self.order_factory = order_factory

    def add_order(self, *, cancellation: CancellationToken | None = None) -> OrderResponse:
        order = self.order_factory()
        result = self.orchestrator.execute(order_operation(order), cancellation=cancellation)
        status = status_for(result)
        log = correlation_logger(logger, order.id)
        if isinstance(result, TerminalError):
            log.error(
                "Order insert failed id=%s kind=%s attempts=%s status=%s",
                order.id,
                result.kind.value,
                result.attempts_made,
                status,
            )
            return OrderResponse(
                status=status,
                body=result.message,
                order_id=order.id,
                attempts=result.attempts_made,
            )
        log.info("Added order ID %s", order.id)
        return OrderResponse(
            status=status,
            body=order.id,
            order_id=order.id,
            attempts=result.attempts_made,
        )
