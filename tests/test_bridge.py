"""Tests for HostCallBridge: blocking host calls, deadlines, reentry cap, execution outcomes."""

import threading
import time
from typing import Any

import pytest

from ledgerbus.errors import HostCallDepthExceeded, HostCallTimeout
from ledgerbus.events import EventBus, EventName
from ledgerbus.rpc import ContractHost, Correlator, HostCallBridge, ReferenceHostServices


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def correlator(bus: EventBus) -> Correlator:
    return Correlator(bus)


@pytest.fixture
def bridge(bus: EventBus, correlator: Correlator) -> HostCallBridge:
    return HostCallBridge(bus, correlator, timeout=0.5)


@pytest.fixture
def services(bus: EventBus) -> ReferenceHostServices:
    svc = ReferenceHostServices(bus)
    svc.register()
    return svc


def answer_decimal(bus: EventBus) -> None:
    bus.subscribe(
        EventName.CONTRACT_MATH_DECIMAL,
        lambda req: bus.post(
            EventName.CONTRACT_MATH_DECIMAL_RESPONSE,
            {"requestId": req["requestId"], "result": req["value"]},
        ),
    )


class TestHostCall:
    """A host call blocks until its response arrives."""

    def test_math_add(self, bridge: HostCallBridge, services: ReferenceHostServices) -> None:
        result = bridge.call(EventName.CONTRACT_MATH_ADD, {"a": "100", "b": "200"})
        assert result == {"result": "300"}
        assert bridge.depth == 0

    def test_call_op(self, bridge: HostCallBridge, services: ReferenceHostServices) -> None:
        assert bridge.call_op("math.subtract", {"a": "1", "b": "0.25"}) == {"result": "0.75"}

    def test_unknown_op(self, bridge: HostCallBridge) -> None:
        with pytest.raises(ValueError):
            bridge.call_op("math.multiply", {"a": "1", "b": "2"})

    def test_non_host_call_event_rejected(self, bridge: HostCallBridge) -> None:
        with pytest.raises(ValueError):
            bridge.call(EventName.TRANSACTION_SUBMIT, {"txJson": "{}"})

    def test_response_from_worker_thread(self, bus: EventBus, bridge: HostCallBridge) -> None:
        def answer_later(req: dict[str, Any]) -> None:
            reply = {"requestId": req["requestId"], "hash": "ab" * 32}
            threading.Timer(
                0.05, bus.post, args=(EventName.CONTRACT_CRYPTO_HASH_RESPONSE, reply)
            ).start()

        bus.subscribe(EventName.CONTRACT_CRYPTO_HASH, answer_later)

        assert bridge.call(EventName.CONTRACT_CRYPTO_HASH, {"data": "x"}) == {"hash": "ab" * 32}

    def test_unrelated_queued_events_wait_for_dispatch_loop(
        self, bus: EventBus, bridge: HostCallBridge, services: ReferenceHostServices
    ) -> None:
        depths: list[int] = []
        bus.subscribe(EventName.SYSTEM_METRIC, lambda p: depths.append(bridge.depth))
        bus.post(EventName.SYSTEM_METRIC, {"name": "queued", "value": 1})

        assert bridge.call(EventName.CONTRACT_MATH_ADD, {"a": "1", "b": "1"}) == {"result": "2"}

        assert depths == []
        assert bus.pending_count() == 1
        assert bus.dispatch_pending() == 1
        assert depths == [0]

    def test_held_events_keep_fifo_order(
        self, bus: EventBus, bridge: HostCallBridge, services: ReferenceHostServices
    ) -> None:
        names: list[str] = []
        bus.subscribe(EventName.SYSTEM_METRIC, lambda p: names.append(p["name"]))

        def post_during_call(req: dict[str, Any]) -> None:
            bus.post(EventName.SYSTEM_METRIC, {"name": "during", "value": 2})

        bus.subscribe(EventName.CONTRACT_MATH_ADD, post_during_call)
        bus.post(EventName.SYSTEM_METRIC, {"name": "before", "value": 1})

        bridge.call(EventName.CONTRACT_MATH_ADD, {"a": "1", "b": "1"})
        bus.post(EventName.SYSTEM_METRIC, {"name": "after", "value": 3})

        assert names == []
        bus.dispatch_pending()
        assert names == ["before", "during", "after"]

    def test_stray_replies_not_delivered_while_waiting(
        self, bus: EventBus, bridge: HostCallBridge, services: ReferenceHostServices
    ) -> None:
        seen: list[dict[str, Any]] = []
        bus.subscribe(EventName.CONTRACT_MATH_SUBTRACT_RESPONSE, seen.append)
        bus.post(EventName.CONTRACT_MATH_SUBTRACT_RESPONSE, {"requestId": "stale", "result": "0"})

        bridge.call(EventName.CONTRACT_MATH_ADD, {"a": "1", "b": "1"})

        assert seen == []
        bus.dispatch_pending()
        assert [p["requestId"] for p in seen] == ["stale"]


class TestHostCallFailures:
    """Missing services and runaway nesting abort the call."""

    def test_timeout(self, bus: EventBus, correlator: Correlator) -> None:
        bridge = HostCallBridge(bus, correlator, timeout=0.05)
        started = time.monotonic()

        with pytest.raises(HostCallTimeout) as exc_info:
            bridge.call(EventName.CONTRACT_STORAGE_GET, {"key": "k"})

        assert time.monotonic() - started < 1.0
        assert exc_info.value.request_event == EventName.CONTRACT_STORAGE_GET
        assert correlator.pending_count() == 0
        assert bus.subscriber_count(EventName.CONTRACT_STORAGE_RESPONSE) == 0

    def test_reply_after_timeout_ignored(self, bus: EventBus, correlator: Correlator) -> None:
        requests: list[dict[str, Any]] = []
        bus.subscribe(EventName.CONTRACT_STORAGE_GET, requests.append)
        bridge = HostCallBridge(bus, correlator, timeout=0.02)
        with pytest.raises(HostCallTimeout):
            bridge.call(EventName.CONTRACT_STORAGE_GET, {"key": "k"})

        bus.publish(
            EventName.CONTRACT_STORAGE_RESPONSE,
            {"requestId": requests[0]["requestId"], "value": 1},
        )
        assert correlator.pending_count() == 0

    def test_nested_call_within_depth(self, bus: EventBus, correlator: Correlator) -> None:
        bridge = HostCallBridge(bus, correlator, timeout=0.5, max_depth=2)
        answer_decimal(bus)

        def add_via_decimal(req: dict[str, Any]) -> None:
            a = bridge.call(EventName.CONTRACT_MATH_DECIMAL, {"value": req["a"]})["result"]
            bus.post(
                EventName.CONTRACT_MATH_ADD_RESPONSE,
                {"requestId": req["requestId"], "result": a},
            )

        bus.subscribe(EventName.CONTRACT_MATH_ADD, add_via_decimal)

        assert bridge.call(EventName.CONTRACT_MATH_ADD, {"a": "7", "b": "0"}) == {"result": "7"}

    def test_nested_call_beyond_depth(self, bus: EventBus, correlator: Correlator) -> None:
        bridge = HostCallBridge(bus, correlator, timeout=0.05, max_depth=1)
        answer_decimal(bus)
        nested_errors: list[tuple[str, HostCallDepthExceeded]] = []

        def add_via_decimal(req: dict[str, Any]) -> None:
            try:
                bridge.call(EventName.CONTRACT_MATH_DECIMAL, {"value": req["a"]})
            except HostCallDepthExceeded as e:
                nested_errors.append((req["requestId"], e))
                raise

        bus.subscribe(EventName.CONTRACT_MATH_ADD, add_via_decimal)

        with pytest.raises(HostCallTimeout):
            bridge.call(EventName.CONTRACT_MATH_ADD, {"a": "7", "b": "0"})

        assert len(nested_errors) == 1
        outer_id, error = nested_errors[0]
        assert error.max_depth == 1
        assert error.request_id == outer_id
        assert error.request_event == EventName.CONTRACT_MATH_DECIMAL
        assert bridge.depth == 0

    def test_invalid_max_depth(self, bus: EventBus, correlator: Correlator) -> None:
        with pytest.raises(ValueError):
            HostCallBridge(bus, correlator, max_depth=0)


class TestExecute:
    """Host-call failures become deterministic transaction failures."""

    def test_success(self, bridge: HostCallBridge, services: ReferenceHostServices) -> None:
        host = ContractHost(bridge)

        outcome = bridge.execute("tx-1", lambda: host.add("2", "3"))

        assert outcome.success is True
        assert outcome.value == "5"
        assert outcome.tx_id == "tx-1"

    def test_host_call_timeout_fails_transaction(
        self, bus: EventBus, correlator: Correlator
    ) -> None:
        bridge = HostCallBridge(bus, correlator, timeout=0.02)
        host = ContractHost(bridge)

        outcome = bridge.execute("tx-2", host.get_balance, "alice", "NATIVE")

        assert outcome.success is False
        assert "timed out" in (outcome.error or "")

    def test_other_errors_propagate(self, bridge: HostCallBridge) -> None:
        def broken() -> None:
            raise ZeroDivisionError

        with pytest.raises(ZeroDivisionError):
            bridge.execute("tx-3", broken)
