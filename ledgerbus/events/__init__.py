"""Event Bus and event taxonomy shared by every node module."""

from ledgerbus.events.bus import EventBus, Subscription
from ledgerbus.events.models import (
    PAYLOAD_MODELS,
    Payload,
    RequestPayload,
    build_payload,
    dump_payload,
    validate_payload,
    wire_payload,
)
from ledgerbus.events.topics import (
    EVENT_INFO,
    HOST_CALLS,
    REQUEST_PAIRS,
    TAXONOMY_VERSION,
    EventName,
)

__all__ = [
    "EVENT_INFO",
    "EventBus",
    "EventName",
    "HOST_CALLS",
    "PAYLOAD_MODELS",
    "Payload",
    "REQUEST_PAIRS",
    "RequestPayload",
    "Subscription",
    "TAXONOMY_VERSION",
    "build_payload",
    "dump_payload",
    "validate_payload",
    "wire_payload",
]
