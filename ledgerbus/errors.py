"""Error taxonomy for the event bus and the request/reply layer.

Bus-level handler errors are isolated and reported on system:error.
Correlation errors are delivered only to the caller that owns the pending call.
"""

from typing import Any

__all__ = [
    "DuplicateRequestId",
    "HandlerError",
    "HostCallDepthExceeded",
    "HostCallError",
    "HostCallFailed",
    "HostCallTimeout",
    "LedgerBusError",
    "PayloadValidationError",
    "QuorumNotReached",
    "RequestCancelled",
    "RequestTimeout",
    "UnknownEventError",
]


class LedgerBusError(Exception):
    """Base class for every error raised by ledgerbus."""


class UnknownEventError(LedgerBusError, KeyError):
    """Event name is not part of the taxonomy."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"unknown event name: {self.name!r}"


class PayloadValidationError(LedgerBusError, ValueError):
    """Payload does not match the shape registered for its event name."""

    def __init__(self, name: str, detail: str) -> None:
        super().__init__(f"invalid payload for {name}: {detail}")
        self.name = name
        self.detail = detail


class HandlerError(LedgerBusError):
    """A subscriber raised while handling an event. Never thrown through publish()."""

    def __init__(self, event_name: str, handler: Any, cause: BaseException) -> None:
        self.event_name = event_name
        self.handler_name = getattr(handler, "__qualname__", repr(handler))
        self.cause = cause
        super().__init__(
            f"handler {self.handler_name} failed for {event_name}: {cause!r}"
        )


class _CallError(LedgerBusError):
    """Error tied to one pending call."""

    def __init__(self, request_id: str, message: str) -> None:
        super().__init__(message)
        self.request_id = request_id


class RequestTimeout(_CallError, TimeoutError):
    """No matching response arrived before the deadline."""

    def __init__(self, request_id: str, timeout: float | None = None) -> None:
        msg = f"request {request_id} timed out"
        if timeout is not None:
            msg += f" after {timeout:g}s"
        super().__init__(request_id, msg)
        self.timeout = timeout


class RequestCancelled(_CallError):
    """Pending call was withdrawn with cancel()."""

    def __init__(self, request_id: str) -> None:
        super().__init__(request_id, f"request {request_id} was cancelled")


class DuplicateRequestId(_CallError):
    """A request id was reused while the first call is still pending."""

    def __init__(self, request_id: str) -> None:
        super().__init__(request_id, f"request id {request_id!r} is already pending")


class QuorumNotReached(_CallError):
    """Aggregation deadline passed with fewer distinct responders than required."""

    def __init__(
        self, request_id: str, threshold: int, received: list[str] | None = None
    ) -> None:
        self.threshold = threshold
        self.received = list(received or [])
        super().__init__(
            request_id,
            f"quorum not reached for {request_id}: "
            f"{len(self.received)}/{threshold} distinct responders",
        )


class HostCallError(_CallError):
    """Base for host-call failures. Aborts the calling transaction only."""


class HostCallTimeout(HostCallError, TimeoutError):
    """Host service did not answer within the host-call deadline."""

    def __init__(self, request_id: str, request_event: str, timeout: float) -> None:
        super().__init__(
            request_id,
            f"host call {request_event} ({request_id}) timed out after {timeout:g}s",
        )
        self.request_event = request_event
        self.timeout = timeout


class HostCallDepthExceeded(HostCallError):
    """Nested host calls went deeper than the reentry cap.

    The refused call never gets an id of its own; request_id is the innermost
    in-flight host call that attempted it.
    """

    def __init__(self, request_id: str, request_event: str, max_depth: int) -> None:
        super().__init__(
            request_id,
            f"host call {request_event} inside {request_id} exceeds max reentry depth {max_depth}",
        )
        self.request_event = request_event
        self.max_depth = max_depth


class HostCallFailed(HostCallError):
    """Host service answered but reported failure."""

    def __init__(self, request_event: str, reason: str, request_id: str = "") -> None:
        super().__init__(request_id, f"host call {request_event} failed: {reason}")
        self.request_event = request_event
        self.reason = reason
