"""Process-wide node runtime: one bus and its request/reply layer, with explicit lifecycle.

Modules receive the runtime (or its parts) as constructor arguments; get_runtime()
exists for the bootstrap code only. Tests build isolated NodeRuntime instances.
"""

import logging
from dataclasses import dataclass
from typing import Any

from ledgerbus.events.bus import EventBus
from ledgerbus.rpc.bridge import HostCallBridge
from ledgerbus.rpc.correlator import Correlator
from ledgerbus.rpc.quorum import QuorumAggregator
from ledgerbus.settings import get_setting

logger = logging.getLogger(__name__)


@dataclass
class NodeRuntime:
    bus: EventBus
    correlator: Correlator
    aggregator: QuorumAggregator
    bridge: HostCallBridge

    @classmethod
    def from_settings(cls, settings: dict[str, Any]) -> "NodeRuntime":
        bus = EventBus(strict=bool(get_setting(settings, "event_bus.strict", True)))
        correlator = Correlator(
            bus, default_timeout=float(get_setting(settings, "correlator.default_timeout", 30.0))
        )
        aggregator = QuorumAggregator(
            correlator,
            default_timeout=float(get_setting(settings, "quorum.default_timeout", 10.0)),
            responder_key=get_setting(settings, "quorum.responder_key", "validatorId"),
        )
        bridge = HostCallBridge(
            bus,
            correlator,
            timeout=float(get_setting(settings, "host_calls.timeout", 0.5)),
            max_depth=int(get_setting(settings, "host_calls.max_depth", 8)),
        )
        return cls(bus=bus, correlator=correlator, aggregator=aggregator, bridge=bridge)

    def close(self) -> None:
        """Cancel every pending call, then drop all subscriptions and queued events."""
        cancelled = self.correlator.cancel_all()
        self.bus.teardown()
        logger.info("Node runtime closed (%d pending calls cancelled)", cancelled)


_runtime: NodeRuntime | None = None


def init_runtime(settings: dict[str, Any] | None = None) -> NodeRuntime:
    """Create the process-wide runtime. Raises RuntimeError if one is already live."""
    global _runtime
    if _runtime is not None:
        raise RuntimeError("node runtime already initialized; call shutdown_runtime() first")
    _runtime = NodeRuntime.from_settings(settings or {})
    logger.info("Node runtime initialized")
    return _runtime


def get_runtime() -> NodeRuntime:
    if _runtime is None:
        raise RuntimeError("node runtime not initialized")
    return _runtime


def shutdown_runtime() -> None:
    """Tear the process-wide runtime down. No-op when none is live."""
    global _runtime
    if _runtime is None:
        return
    runtime, _runtime = _runtime, None
    runtime.close()
