"""In-process event bus: synchronous publish plus a thread-safe deferred queue.

All deliveries run on the dispatch thread (the thread that owns the asyncio loop the
bus is attached to). publish() never suspends; post() only enqueues and is safe from
any thread. The deferred queue is drained by the loop, or pumped explicitly by the
host-call bridge while contract code waits on a reply.
"""

import asyncio
import inspect
import logging
import queue
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Callable

from ledgerbus.errors import HandlerError, UnknownEventError
from ledgerbus.events.models import wire_payload
from ledgerbus.events.topics import EVENT_NAMES, EventName

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Any]
EventFilter = Callable[[str, dict[str, Any]], bool]


@dataclass(eq=False)
class Subscription:
    """Handle returned by subscribe()/subscribe_once(). Pass to unsubscribe() or call cancel()."""

    name: str
    handler: Handler
    once: bool = False
    active: bool = True
    _bus: "EventBus | None" = field(default=None, repr=False)

    def cancel(self) -> None:
        if self._bus is not None:
            self._bus.unsubscribe(self)


class EventBus:
    """Publish/subscribe hub keyed by event name.

    Delivery order is subscription order over a snapshot taken when publish()
    starts: handlers subscribed during delivery miss the in-flight event, handlers
    removed during delivery are skipped. A failing handler is logged and announced
    on system:error; its siblings still receive the event.
    """

    def __init__(self, strict: bool = True) -> None:
        self._strict = strict
        self._subscribers: dict[str, list[Subscription]] = defaultdict(list)
        self._inbox: queue.SimpleQueue[tuple[str, dict[str, Any]]] = queue.SimpleQueue()
        # Events a filtered pump took off the inbox but did not deliver; older than the inbox
        self._held: deque[tuple[str, dict[str, Any]]] = deque()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._reporting_error = False

    @property
    def strict(self) -> bool:
        return self._strict

    def _check_name(self, name: str) -> str:
        key = str(name)
        if self._strict and key not in EVENT_NAMES:
            raise UnknownEventError(key)
        return key

    def _add(self, name: str, handler: Handler, once: bool) -> Subscription:
        key = self._check_name(name)
        sub = Subscription(name=key, handler=handler, once=once, _bus=self)
        self._subscribers[key].append(sub)
        logger.debug("Subscribed %s to %s (once=%s)", _handler_name(handler), key, once)
        return sub

    def subscribe(self, name: str, handler: Handler) -> Subscription:
        """Register a persistent handler for an event name."""
        return self._add(name, handler, once=False)

    def subscribe_once(self, name: str, handler: Handler) -> Subscription:
        """Register a handler removed before its first invocation, even if it raises."""
        return self._add(name, handler, once=True)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription. Idempotent."""
        if not subscription.active:
            return
        subscription.active = False
        subs = self._subscribers.get(subscription.name)
        if not subs:
            return
        try:
            subs.remove(subscription)
        except ValueError:
            pass
        if not subs:
            del self._subscribers[subscription.name]

    def subscriber_count(self, name: str) -> int:
        return len(self._subscribers.get(str(name), ()))

    def publish(self, name: str, payload: dict[str, Any] | None = None) -> int:
        """Deliver payload to current subscribers now. Returns the number of handlers run."""
        key, data = self._prepare(name, payload)
        return self._deliver(key, data)

    def _prepare(self, name: str, payload: dict[str, Any] | None) -> tuple[str, dict[str, Any]]:
        key = self._check_name(name)
        data = payload if payload is not None else {}
        if self._strict:
            # Handlers always see camelCase keys, whichever spelling the producer used
            data = wire_payload(key, data)
        return key, data

    def _deliver(self, key: str, payload: dict[str, Any]) -> int:
        snapshot = list(self._subscribers.get(key, ()))
        if not snapshot:
            logger.debug("No subscribers for event: %s", key)
            return 0
        delivered = 0
        for sub in snapshot:
            if not sub.active:
                continue
            if sub.once:
                self.unsubscribe(sub)
            delivered += 1
            try:
                result = sub.handler(payload)
                if inspect.isawaitable(result):
                    self._schedule(key, sub, result)
            except Exception as e:
                self._report(key, sub, e)
        return delivered

    def _schedule(self, key: str, sub: Subscription, awaitable: Any) -> None:
        """Run a coroutine handler on the attached loop; report its failure like a sync one."""
        loop = self._loop
        if loop is None or loop.is_closed():
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.error(
                "EventBus: async handler %s for %s dropped, bus not attached to a loop",
                _handler_name(sub.handler),
                key,
            )
            return
        task = asyncio.ensure_future(awaitable, loop=loop)

        def _done(t: "asyncio.Future[Any]") -> None:
            if t.cancelled():
                return
            exc = t.exception()
            if isinstance(exc, Exception):
                self._report(key, sub, exc)

        task.add_done_callback(_done)

    def _report(self, key: str, sub: Subscription, exc: Exception) -> None:
        err = HandlerError(key, sub.handler, exc)
        logger.error(
            "EventBus handler %s failed for event %s: %s",
            err.handler_name,
            key,
            exc,
            exc_info=exc,
        )
        if key == EventName.SYSTEM_ERROR or self._reporting_error:
            return
        self._reporting_error = True
        try:
            self._deliver(
                EventName.SYSTEM_ERROR.value,
                {
                    "module": getattr(sub.handler, "__module__", None) or "unknown",
                    "error": str(err),
                    "fatal": False,
                },
            )
        finally:
            self._reporting_error = False

    # --- deferred delivery ---

    def attach(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Bind to the dispatch loop so post() schedules a drain on it."""
        self._loop = loop or asyncio.get_running_loop()

    def detach(self) -> None:
        self._loop = None

    def post(self, name: str, payload: dict[str, Any] | None = None) -> None:
        """Queue an event for delivery on the dispatch thread. Safe from any thread."""
        key, data = self._prepare(name, payload)
        self._inbox.put((key, data))
        loop = self._loop
        if loop is not None and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(self.dispatch_pending)
            except RuntimeError:
                # Loop closed between the check and the call; the queue keeps the event
                logger.debug("EventBus: loop closed, %s left in deferred queue", key)

    def pending_count(self) -> int:
        """Events waiting for deferred delivery."""
        return len(self._held) + self._inbox.qsize()

    def _take(self, timeout: float | None) -> tuple[str, dict[str, Any]] | None:
        """Next queued event in FIFO order, waiting up to timeout seconds for the inbox."""
        if self._held:
            return self._held.popleft()
        try:
            if timeout is not None and timeout <= 0:
                return self._inbox.get_nowait()
            return self._inbox.get(timeout=timeout)
        except queue.Empty:
            return None

    def dispatch_pending(self, max_events: int | None = None) -> int:
        """Deliver queued events in FIFO order. Returns how many were delivered."""
        count = 0
        while max_events is None or count < max_events:
            item = self._take(0)
            if item is None:
                break
            self._deliver(*item)
            count += 1
        return count

    def pump_one(self, timeout: float | None = None) -> bool:
        """Wait up to timeout seconds for one queued event and deliver it.

        Returns False when nothing arrived. timeout <= 0 polls without blocking.
        """
        item = self._take(timeout)
        if item is None:
            return False
        self._deliver(*item)
        return True

    def pump_matching(self, accept: EventFilter, timeout: float | None = None) -> bool:
        """Deliver the oldest queued event accepted by accept(name, payload).

        Rejected events are set aside, keep their FIFO position and are delivered
        by the next dispatch_pending() or pump_one(). Waits up to timeout seconds
        for an accepted event; returns False when none arrived. Dispatch thread only.
        """
        for i, (key, data) in enumerate(self._held):
            if accept(key, data):
                del self._held[i]
                self._deliver(key, data)
                return True
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else deadline - time.monotonic()
            try:
                if remaining is not None and remaining <= 0:
                    key, data = self._inbox.get_nowait()
                else:
                    key, data = self._inbox.get(timeout=remaining)
            except queue.Empty:
                return False
            if accept(key, data):
                self._deliver(key, data)
                return True
            self._held.append((key, data))

    def teardown(self) -> None:
        """Drop every subscription and every queued event."""
        for subs in self._subscribers.values():
            for sub in subs:
                sub.active = False
        self._subscribers.clear()
        dropped = len(self._held)
        self._held.clear()
        while True:
            try:
                self._inbox.get_nowait()
            except queue.Empty:
                break
            dropped += 1
        self._loop = None
        logger.info("EventBus torn down (%d queued events dropped)", dropped)


def _handler_name(handler: Any) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)
