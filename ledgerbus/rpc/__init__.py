"""Request/reply on top of the event bus: correlation, quorum, and synchronous host calls."""

from ledgerbus.rpc.attestation import AttestationCollector
from ledgerbus.rpc.bridge import ExecutionOutcome, HostCallBridge
from ledgerbus.rpc.clients import NodeClient
from ledgerbus.rpc.correlator import CallStatus, Correlator, PendingCall
from ledgerbus.rpc.host import ContractHost
from ledgerbus.rpc.quorum import QuorumAggregator, QuorumCall
from ledgerbus.rpc.services import ReferenceHostServices

__all__ = [
    "AttestationCollector",
    "CallStatus",
    "ContractHost",
    "Correlator",
    "ExecutionOutcome",
    "HostCallBridge",
    "NodeClient",
    "PendingCall",
    "QuorumAggregator",
    "QuorumCall",
    "ReferenceHostServices",
]
