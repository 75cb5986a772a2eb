"""ledgerbus: event contracts and request/reply correlation for a modular ledger node."""

from ledgerbus.events import EventBus, EventName, Subscription
from ledgerbus.rpc import Correlator, HostCallBridge, QuorumAggregator
from ledgerbus.runtime import NodeRuntime, get_runtime, init_runtime, shutdown_runtime

__all__ = [
    "Correlator",
    "EventBus",
    "EventName",
    "HostCallBridge",
    "NodeRuntime",
    "QuorumAggregator",
    "Subscription",
    "get_runtime",
    "init_runtime",
    "shutdown_runtime",
]
