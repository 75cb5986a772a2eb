"""Quorum aggregation: one request, many responders, resolve at a distinct-responder threshold."""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, cast

from ledgerbus.errors import QuorumNotReached
from ledgerbus.rpc.correlator import CallStatus, Correlator, PendingCall, strip_request_id

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class QuorumCall(PendingCall):
    """Pending call that stays open until `threshold` distinct responders answered.

    Responders are identified by `responder_key` in the response payload. A
    responder is counted once no matter how many times it replies.
    """

    threshold: int = 1
    responder_key: str = "validatorId"
    expected_participants: int | None = None
    received: dict[str, dict[str, Any]] = field(default_factory=dict)

    def offer(self, payload: dict[str, Any]) -> None:
        responder = payload.get(self.responder_key)
        if not isinstance(responder, str) or not responder:
            logger.warning(
                "Quorum %s: response without %s ignored", self.request_id, self.responder_key
            )
            return
        if responder in self.received:
            logger.debug("Quorum %s: duplicate response from %s ignored", self.request_id, responder)
            return
        self.received[responder] = strip_request_id(payload)
        logger.debug(
            "Quorum %s: %d/%d distinct responders",
            self.request_id,
            len(self.received),
            self.threshold,
        )
        if len(self.received) >= self.threshold:
            self.finish(CallStatus.RESOLVED, result=list(self.received.values()))

    def timeout_error(self) -> Exception:
        return QuorumNotReached(self.request_id, self.threshold, list(self.received))


class QuorumAggregator:
    """Collects responses to one request until a threshold of distinct responders is met."""

    def __init__(
        self,
        correlator: Correlator,
        default_timeout: float = 10.0,
        responder_key: str = "validatorId",
    ) -> None:
        self._correlator = correlator
        self._default_timeout = default_timeout
        self._responder_key = responder_key

    def open_quorum(
        self,
        request_event: str,
        payload: dict[str, Any] | None,
        response_event: str,
        threshold: int,
        timeout: float | None = None,
        responder_key: str | None = None,
        expected_participants: int | None = None,
        request_id: str | None = None,
    ) -> QuorumCall:
        """Loop-independent form of request_quorum(): returns the QuorumCall itself."""
        if threshold < 1:
            raise ValueError(f"threshold must be at least 1, got {threshold}")
        if expected_participants is not None and threshold > expected_participants:
            raise ValueError(
                f"threshold {threshold} exceeds expected participants {expected_participants}"
            )
        factory = functools.partial(
            QuorumCall,
            threshold=threshold,
            responder_key=responder_key or self._responder_key,
            expected_participants=expected_participants,
        )
        call = self._correlator.open_call(
            request_event,
            payload,
            response_event,
            timeout=timeout if timeout is not None else self._default_timeout,
            request_id=request_id,
            call_factory=factory,
        )
        return cast(QuorumCall, call)

    def request_quorum(
        self,
        request_event: str,
        payload: dict[str, Any] | None,
        response_event: str,
        threshold: int,
        timeout: float | None = None,
        responder_key: str | None = None,
        expected_participants: int | None = None,
        request_id: str | None = None,
    ) -> "asyncio.Future[list[dict[str, Any]]]":
        """Publish a request and return a future for the first `threshold` distinct responses.

        Fails with QuorumNotReached at the deadline. Late responses are dropped.
        """
        loop = asyncio.get_running_loop()
        call = self.open_quorum(
            request_event,
            payload,
            response_event,
            threshold,
            timeout=timeout,
            responder_key=responder_key,
            expected_participants=expected_participants,
            request_id=request_id,
        )
        return self._correlator.future_for(call, loop)
