"""Request/reply correlation over the one-directional event bus.

A request is published with a fresh requestId; the first response on the paired
response event carrying that id resolves the pending call. Each call ends exactly
once: resolved, timed out, or cancelled. Responses for unknown or finished ids are
logged and dropped.
"""

import asyncio
import itertools
import logging
import secrets
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable

from ledgerbus.errors import DuplicateRequestId, RequestCancelled, RequestTimeout
from ledgerbus.events.bus import EventBus, Subscription

logger = logging.getLogger(__name__)


class CallStatus(StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"
    TIMED_OUT = "timed-out"
    CANCELLED = "cancelled"


def strip_request_id(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if k != "requestId"}


@dataclass(eq=False)
class PendingCall:
    """One outstanding request. Owned by the Correlator until it completes."""

    request_id: str
    request_event: str
    response_event: str
    created_at: float
    deadline: float | None
    timeout: float | None
    status: CallStatus = CallStatus.PENDING
    result: Any = None
    error: Exception | None = None
    _callbacks: list[Callable[["PendingCall"], None]] = field(default_factory=list, repr=False)
    _timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.status is not CallStatus.PENDING

    def add_done_callback(self, fn: Callable[["PendingCall"], None]) -> None:
        """Run fn when the call completes, or now if it already has."""
        if self.done:
            fn(self)
        else:
            self._callbacks.append(fn)

    def offer(self, payload: dict[str, Any]) -> None:
        """Feed a response carrying this call's requestId. First one wins."""
        self.finish(CallStatus.RESOLVED, result=strip_request_id(payload))

    def timeout_error(self) -> Exception:
        return RequestTimeout(self.request_id, self.timeout)

    def finish(
        self,
        status: CallStatus,
        result: Any = None,
        error: Exception | None = None,
    ) -> bool:
        """Move to a terminal status. Returns False if the call had already finished."""
        if self.done:
            return False
        self.status = status
        self.result = result
        self.error = error
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            try:
                fn(self)
            except Exception:
                logger.exception("Done callback failed for request %s", self.request_id)
        return True


CallFactory = Callable[..., PendingCall]


class Correlator:
    """Pairs request events with their response events by requestId.

    One bus subscription is held per response event name while at least one call
    waits on it. Every mutation happens on the dispatch thread; timeouts fire from
    the dispatch loop (loop.call_later) or from expire_overdue().
    """

    def __init__(
        self,
        bus: EventBus,
        default_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._bus = bus
        self._default_timeout = default_timeout
        self._clock = clock
        self._pending: dict[str, PendingCall] = {}
        self._routes: dict[str, Subscription] = {}
        self._route_refs: dict[str, int] = {}
        self._instance_id = secrets.token_hex(6)
        self._counter = itertools.count(1)

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def new_request_id(self) -> str:
        """Unique for the life of the process: random instance id plus a counter."""
        return f"{self._instance_id}-{next(self._counter)}"

    def pending_count(self) -> int:
        return len(self._pending)

    def get(self, request_id: str) -> PendingCall | None:
        return self._pending.get(request_id)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    # --- opening calls ---

    def open_call(
        self,
        request_event: str,
        payload: dict[str, Any] | None,
        response_event: str,
        timeout: float | None = None,
        request_id: str | None = None,
        call_factory: CallFactory = PendingCall,
    ) -> PendingCall:
        """Register a pending call, route its responses, then publish the request.

        Loop-independent: no timer is armed. Callers either attach a future with
        future_for() or enforce the deadline themselves.
        """
        body = dict(payload or {})
        if "requestId" in body or "request_id" in body:
            raise ValueError("payload must not carry requestId; pass request_id= instead")
        if timeout is None:
            timeout = self._default_timeout
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout!r}")
        if request_id is None:
            request_id = self.new_request_id()
        elif request_id in self._pending:
            raise DuplicateRequestId(request_id)

        now = self._clock()
        call = call_factory(
            request_id=request_id,
            request_event=str(request_event),
            response_event=str(response_event),
            created_at=now,
            deadline=now + timeout,
            timeout=timeout,
        )
        self._add_route(call.response_event)
        self._pending[request_id] = call
        call.add_done_callback(self._on_call_done)
        logger.debug(
            "Request %s published on %s, awaiting %s (timeout %.3fs)",
            request_id,
            call.request_event,
            call.response_event,
            timeout,
        )
        try:
            self._bus.publish(call.request_event, {**body, "requestId": request_id})
        except Exception:
            # Rejected by the bus (unknown name, invalid payload): withdraw the call
            call.finish(CallStatus.CANCELLED, error=RequestCancelled(request_id))
            raise
        return call

    def request(
        self,
        request_event: str,
        payload: dict[str, Any] | None,
        response_event: str,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> "asyncio.Future[dict[str, Any]]":
        """Publish a request and return a future for its response payload (requestId stripped).

        The future fails with RequestTimeout or RequestCancelled. Cancelling the
        future cancels the pending call. Must be called on the dispatch loop.
        """
        loop = asyncio.get_running_loop()
        call = self.open_call(request_event, payload, response_event, timeout, request_id)
        return self.future_for(call, loop)

    def future_for(
        self, call: PendingCall, loop: asyncio.AbstractEventLoop | None = None
    ) -> "asyncio.Future[Any]":
        """Bind a pending call to an asyncio future and arm its timeout on the loop."""
        loop = loop or asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        def _settle(c: PendingCall) -> None:
            if future.done():
                return
            if c.status is CallStatus.RESOLVED:
                future.set_result(c.result)
            else:
                future.set_exception(c.error or RequestCancelled(c.request_id))

        def _on_future_done(f: "asyncio.Future[Any]") -> None:
            if f.cancelled() and not call.done:
                self.cancel(call.request_id)

        call.add_done_callback(_settle)
        if not call.done and call.timeout is not None:
            call._timer = loop.call_later(call.timeout, self._expire_call, call)
        future.add_done_callback(_on_future_done)
        return future

    # --- completion ---

    def cancel(self, request_id: str) -> bool:
        """Withdraw a pending call. No-op (False) for unknown or finished ids."""
        call = self._pending.get(request_id)
        if call is None:
            return False
        logger.debug("Request %s cancelled", request_id)
        return call.finish(CallStatus.CANCELLED, error=RequestCancelled(request_id))

    def expire(self, request_id: str) -> bool:
        """Time out a pending call now, regardless of its deadline."""
        call = self._pending.get(request_id)
        if call is None:
            return False
        return self._expire_call(call)

    def _expire_call(self, call: PendingCall) -> bool:
        if call.done:
            return False
        logger.warning(
            "Request %s on %s timed out waiting for %s",
            call.request_id,
            call.request_event,
            call.response_event,
        )
        return call.finish(CallStatus.TIMED_OUT, error=call.timeout_error())

    def expire_overdue(self, now: float | None = None) -> int:
        """Time out every call whose deadline has passed. Returns how many expired."""
        now = self._clock() if now is None else now
        overdue = [
            c for c in self._pending.values() if c.deadline is not None and c.deadline <= now
        ]
        return sum(1 for c in overdue if self._expire_call(c))

    def cancel_all(self) -> int:
        """Cancel every pending call (shutdown)."""
        ids = list(self._pending)
        return sum(1 for request_id in ids if self.cancel(request_id))

    def _on_call_done(self, call: PendingCall) -> None:
        if self._pending.get(call.request_id) is call:
            del self._pending[call.request_id]
        self._drop_route(call.response_event)

    # --- response routing ---

    def _add_route(self, response_event: str) -> None:
        if response_event not in self._routes:
            self._routes[response_event] = self._bus.subscribe(
                response_event, self._make_router(response_event)
            )
        self._route_refs[response_event] = self._route_refs.get(response_event, 0) + 1

    def _drop_route(self, response_event: str) -> None:
        refs = self._route_refs.get(response_event, 0) - 1
        if refs > 0:
            self._route_refs[response_event] = refs
            return
        self._route_refs.pop(response_event, None)
        sub = self._routes.pop(response_event, None)
        if sub is not None:
            self._bus.unsubscribe(sub)

    def _make_router(self, response_event: str) -> Callable[[dict[str, Any]], None]:
        def _on_response(payload: dict[str, Any]) -> None:
            request_id = payload.get("requestId") if isinstance(payload, dict) else None
            call = self._pending.get(request_id) if isinstance(request_id, str) else None
            if call is None or call.response_event != response_event:
                logger.debug(
                    "Dropping %s for unknown or finished requestId %r",
                    response_event,
                    request_id,
                )
                return
            call.offer(payload)

        _on_response.__qualname__ = f"Correlator.route[{response_event}]"
        return _on_response
