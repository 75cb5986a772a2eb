"""Synchronous host-call bridge for contract execution.

Contract code runs to completion on the dispatch thread and cannot await. A host
call therefore opens a pending call and pumps the bus's deferred queue itself until
that call resolves. The pump delivers replies to host calls in flight and nothing
else, so no unrelated handler runs inside contract execution. It is bounded by the
host-call deadline and by a hard cap on nested (reentrant) host calls.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from ledgerbus.errors import (
    HostCallDepthExceeded,
    HostCallError,
    HostCallTimeout,
    RequestCancelled,
)
from ledgerbus.events.bus import EventBus
from ledgerbus.events.topics import HOST_CALL_RESPONSES, HOST_CALLS, EventName
from ledgerbus.rpc.correlator import CallStatus, Correlator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of running contract code for one transaction."""

    tx_id: str
    success: bool
    value: Any = None
    error: str | None = None


class HostCallBridge:
    """Turns event-bus request/response pairs into blocking calls for contract code."""

    def __init__(
        self,
        bus: EventBus,
        correlator: Correlator,
        timeout: float = 0.5,
        max_depth: int = 8,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        self._bus = bus
        self._correlator = correlator
        self._timeout = timeout
        self._max_depth = max_depth
        self._clock = clock
        self._depth = 0
        # request id -> response event, innermost last
        self._in_flight: dict[str, str] = {}

    @property
    def depth(self) -> int:
        """Host calls currently pumping on this thread (0 when idle)."""
        return self._depth

    @property
    def timeout(self) -> float:
        return self._timeout

    def call(self, request_event: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """Issue a host call and block until its response payload (without requestId).

        Only replies to host calls in flight are delivered while waiting; every
        other queued event stays queued for the dispatch loop. Raises
        HostCallTimeout when no response arrives within the host-call timeout,
        HostCallDepthExceeded when nested calls exceed max_depth, and ValueError
        for names that are not host-call requests.
        """
        name = EventName(request_event)
        response_event = HOST_CALL_RESPONSES.get(name)
        if response_event is None:
            raise ValueError(f"{name} is not a host-call request")
        if self._depth >= self._max_depth:
            outer = next(reversed(self._in_flight))
            logger.error(
                "Host call %s refused at reentry depth %d (inside %s)", name, self._depth, outer
            )
            raise HostCallDepthExceeded(outer, name, self._max_depth)

        # Registered before the request is published: handlers run by that publish are nested
        request_id = self._correlator.new_request_id()
        self._in_flight[request_id] = response_event
        self._depth += 1
        try:
            call = self._correlator.open_call(
                name, payload, response_event, timeout=self._timeout, request_id=request_id
            )
            while not call.done:
                remaining = call.deadline - self._clock() if call.deadline is not None else None
                if remaining is not None and remaining <= 0:
                    break
                self._bus.pump_matching(self._is_awaited_reply, timeout=remaining)
        finally:
            self._depth -= 1
            del self._in_flight[request_id]

        if not call.done:
            self._correlator.expire(call.request_id)
        if call.status is CallStatus.RESOLVED:
            return call.result
        if call.status is CallStatus.TIMED_OUT:
            raise HostCallTimeout(call.request_id, name, self._timeout) from call.error
        raise call.error or RequestCancelled(call.request_id)

    def _is_awaited_reply(self, name: str, payload: dict[str, Any]) -> bool:
        request_id = payload.get("requestId")
        return isinstance(request_id, str) and self._in_flight.get(request_id) == name

    def call_op(self, op: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """Host call by service operation name, e.g. call_op("math.add", {"a": "1", "b": "2"})."""
        try:
            request_event, _ = HOST_CALLS[op]
        except KeyError:
            raise ValueError(f"unknown host operation: {op!r}") from None
        return self.call(request_event, payload)

    def execute(
        self, tx_id: str, fn: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> ExecutionOutcome:
        """Run contract code for one transaction.

        A HostCallError aborts only this transaction and is reported as a
        deterministic failure. Any other exception propagates.
        """
        try:
            value = fn(*args, **kwargs)
        except HostCallError as e:
            logger.warning("Contract execution aborted for tx %s: %s", tx_id, e)
            return ExecutionOutcome(tx_id=tx_id, success=False, error=str(e))
        return ExecutionOutcome(tx_id=tx_id, success=True, value=value)
