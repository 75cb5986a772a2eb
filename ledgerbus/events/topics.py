"""Event names shared by every node module. The catalogue is closed and versioned as a unit.

Adding an event or an optional payload field is backward compatible; removing or
retyping one is not and requires a major TAXONOMY_VERSION bump.
"""

from dataclasses import dataclass
from enum import StrEnum

TAXONOMY_VERSION = "1.4.0"


class EventName(StrEnum):
    """Closed set of `category:action` event names."""

    # CLI / transaction submission
    TRANSACTION_SUBMIT = "tx:submit-transaction"
    TRANSACTION_RESPONSE = "tx:transaction-response"
    TRANSACTION_SUBMIT_VALIDATION_REQUEST = "tx:submit-validation-request"
    TRANSACTION_VALIDATION_RESPONSE = "tx:validation-response"

    # Mempool
    MEMPOOL_TRANSACTION = "mempool:transaction"
    MEMPOOL_RETURN = "mempool:return"
    TX_REJECTED = "tx:rejected"
    TX_REMOVED = "tx:removed"

    # Attestations
    VALIDATOR_ATTESTATION = "validator:attestation"
    ATTESTATIONS_COMPLETE = "attestations:complete"
    ATTESTATION_REQUEST = "attestation:request"

    # Registry
    REGISTRY_NODES_UPDATED = "registry:nodes-updated"
    REGISTRY_VALIDATORS_UPDATED = "registry:validators-updated"

    # Consensus
    CONSENSUS_ROLE_CHANGED = "consensus:role-changed"
    CONSENSUS_SLOT_TICK = "consensus:slot-tick"
    SCHEDULE_CHANGE = "schedule:change"

    # Shadow production
    SHADOW_PREPARE = "shadow:prepare"
    SHADOW_TAKEOVER = "shadow:takeover"

    # Blocks
    BLOCK_FINALIZED = "block:finalized"
    NETWORK_BLOCK_RECEIVED = "network:block-received"
    BLOCK_PROPAGATE = "block:propagate"
    PEER_BLOCK = "peer:block"
    PEER_BLOCK_INBOUND = "peer:block-inbound"
    BLOCK_REORG = "block:reorg"

    # Deposits
    DEPOSIT_LOCKED = "deposit:locked"
    DEPOSIT_RELEASED = "deposit:released"
    DEPOSIT_SLASHED = "deposit:slashed"

    # State
    STATE_BALANCE_UPDATED = "state:balance-updated"
    STATE_ROOT_UPDATED = "state:root-updated"

    # Network
    NETWORK_BROADCAST_TX = "network:broadcast-tx"
    NETWORK_BROADCAST_BLOCK = "network:broadcast-block"
    NETWORK_PEER_CONNECTED = "network:peer-connected"
    NETWORK_PEER_DISCONNECTED = "network:peer-disconnected"
    NETWORK_SYNC_STARTED = "network:sync-started"
    NETWORK_SYNC_COMPLETED = "network:sync-completed"

    # System
    SYSTEM_READY = "system:ready"
    SYSTEM_SHUTDOWN = "system:shutdown"
    SYSTEM_ERROR = "system:error"
    SYSTEM_METRIC = "system:metric"

    # Contract host services: requests
    CONTRACT_STORAGE_GET = "contract:storage.get"
    CONTRACT_CRYPTO_VERIFY = "contract:crypto.verify"
    CONTRACT_CRYPTO_HASH = "contract:crypto.hash"
    CONTRACT_ACCOUNT_GETBALANCE = "contract:account.getBalance"
    CONTRACT_MATH_DECIMAL = "contract:math.decimal"
    CONTRACT_MATH_ADD = "contract:math.add"
    CONTRACT_MATH_SUBTRACT = "contract:math.subtract"
    CONTRACT_MATH_COMPARE = "contract:math.compare"
    CONTRACT_ENCODING_TOJSON = "contract:encoding.toJSON"
    CONTRACT_TRANSACTION_VALIDATESIGNATURES = "contract:transaction.validateSignatures"
    CONTRACT_CONFIG_GET_GENESISKEYS = "contract:config.getGenesisKeys"

    # Contract host services: responses
    CONTRACT_STORAGE_RESPONSE = "contract:storage.response"
    CONTRACT_CRYPTO_VERIFY_RESPONSE = "contract:crypto.verify.response"
    CONTRACT_CRYPTO_HASH_RESPONSE = "contract:crypto.hash.response"
    CONTRACT_ACCOUNT_GETBALANCE_RESPONSE = "contract:account.getBalance.response"
    CONTRACT_MATH_DECIMAL_RESPONSE = "contract:math.decimal.response"
    CONTRACT_MATH_ADD_RESPONSE = "contract:math.add.response"
    CONTRACT_MATH_SUBTRACT_RESPONSE = "contract:math.subtract.response"
    CONTRACT_MATH_COMPARE_RESPONSE = "contract:math.compare.response"
    CONTRACT_ENCODING_TOJSON_RESPONSE = "contract:encoding.toJSON.response"
    CONTRACT_TRANSACTION_VALIDATESIGNATURES_RESPONSE = (
        "contract:transaction.validateSignatures.response"
    )
    CONTRACT_CONFIG_GET_GENESISKEYS_RESPONSE = "contract:config.getGenesisKeys.response"

    # Typed RPC requests
    RPC_GET_BLOCK = "rpc:get-block"
    RPC_GET_BLOCK_RESPONSE = "rpc:get-block.response"
    RPC_SUBMIT_TX = "rpc:submit-tx"
    RPC_SUBMIT_TX_RESPONSE = "rpc:submit-tx.response"
    RPC_GET_BLOCKS_FROM = "rpc:get-blocks-from"
    RPC_GET_BLOCKS_FROM_RESPONSE = "rpc:get-blocks-from.response"

    @property
    def namespace(self) -> str:
        """Category before the colon, e.g. 'tx' for 'tx:rejected'."""
        return self.value.split(":", 1)[0]


EVENT_NAMES: frozenset[str] = frozenset(name.value for name in EventName)


@dataclass(frozen=True)
class EventInfo:
    """Documentation row: who publishes an event, who consumes it, and why."""

    source: str
    consumers: tuple[str, ...]
    purpose: str


def _info(source: str, consumers: str, purpose: str) -> EventInfo:
    return EventInfo(source, tuple(c.strip() for c in consumers.split(",")), purpose)


_CONTRACT = "Smart contracts"
_CONSENSUS = "Consensus layer"

EVENT_INFO: dict[EventName, EventInfo] = {
    EventName.TRANSACTION_SUBMIT: _info(
        "CLI", "TransactionPool", "Submit raw transaction JSON for processing"
    ),
    EventName.TRANSACTION_RESPONSE: _info(
        "TransactionPool", "CLI", "Report submission result for the matching requestId"
    ),
    EventName.TRANSACTION_SUBMIT_VALIDATION_REQUEST: _info(
        "CLI, GUI", "TransactionPool", "Submit raw transaction JSON for validation only"
    ),
    EventName.TRANSACTION_VALIDATION_RESPONSE: _info(
        "TransactionPool", "CLI", "Return the validated transaction or validation errors"
    ),
    EventName.MEMPOOL_TRANSACTION: _info(
        "Mempool", "Engine", "Transaction is available for processing"
    ),
    EventName.MEMPOOL_RETURN: _info(
        "Engine", "Mempool", "Return a failed or unprocessed transaction to the pool"
    ),
    EventName.TX_REJECTED: _info(
        "Engine, Mempool", "CLI, RPC", "Transaction validation failed"
    ),
    EventName.TX_REMOVED: _info(
        "Engine", "Mempool, RPC", "Transactions left the pool (included, expired, replaced)"
    ),
    EventName.VALIDATOR_ATTESTATION: _info(
        "Validator nodes", "Engine", "Validator attests to transaction validity"
    ),
    EventName.ATTESTATIONS_COMPLETE: _info(
        "Engine", "Engine", "Enough attestations were collected for a transaction"
    ),
    EventName.ATTESTATION_REQUEST: _info(
        "Engine", "Validator nodes", "Ask validators to attest a transaction"
    ),
    EventName.REGISTRY_NODES_UPDATED: _info(
        "Registry", "Engine", "Accountable/creator node list changed"
    ),
    EventName.REGISTRY_VALIDATORS_UPDATED: _info(
        "Registry", "Engine, Validators", "Validator set changed"
    ),
    EventName.CONSENSUS_ROLE_CHANGED: _info(
        "Engine", "RPC, Metrics", "Node role transition"
    ),
    EventName.CONSENSUS_SLOT_TICK: _info(
        "EpochEngine", "Metrics, RPC", "Slot progression in epoch mode"
    ),
    EventName.SCHEDULE_CHANGE: _info(
        "Scheduler", "Engine", "Re-evaluate block producer role"
    ),
    EventName.SHADOW_PREPARE: _info(
        "Engine", "ShadowEngine", "Prepare a shadow block"
    ),
    EventName.SHADOW_TAKEOVER: _info(
        "ShadowEngine", "RPC, Metrics", "Shadow node took over from a failed primary"
    ),
    EventName.BLOCK_FINALIZED: _info(
        "Engine", "BlockStore, State, Mempool, Network", "Block is confirmed"
    ),
    EventName.NETWORK_BLOCK_RECEIVED: _info(
        "Network", "Engine", "Block received from the network"
    ),
    EventName.BLOCK_PROPAGATE: _info(
        "Engine", "Network", "Broadcast a newly created block"
    ),
    EventName.PEER_BLOCK: _info(
        "P2P layer", "Engine", "Block sent by a specific peer"
    ),
    EventName.PEER_BLOCK_INBOUND: _info(
        "REST API", "Engine", "Queue an inbound peer block for validation"
    ),
    EventName.BLOCK_REORG: _info(
        "Engine", "State, Mempool, RPC", "Chain reorganization occurred"
    ),
    EventName.DEPOSIT_LOCKED: _info(
        "Engine", "Deposit contract, RPC", "Creator deposit locked for block creation"
    ),
    EventName.DEPOSIT_RELEASED: _info(
        "Engine", "Deposit contract, RPC", "Deposit released after finalization"
    ),
    EventName.DEPOSIT_SLASHED: _info(
        "Engine", "Deposit contract, RPC", "Deposit slashed for a protocol violation"
    ),
    EventName.STATE_BALANCE_UPDATED: _info(
        "State", "RPC", "Account balance changed"
    ),
    EventName.STATE_ROOT_UPDATED: _info(
        "State", "Engine, RPC", "State root changed after block application"
    ),
    EventName.NETWORK_BROADCAST_TX: _info(
        "Mempool", "Network", "Propagate a transaction to peers"
    ),
    EventName.NETWORK_BROADCAST_BLOCK: _info(
        "Engine", "Network", "Propagate a finalized block to peers"
    ),
    EventName.NETWORK_PEER_CONNECTED: _info(
        "Network", "RPC", "Peer connected"
    ),
    EventName.NETWORK_PEER_DISCONNECTED: _info(
        "Network", "RPC", "Peer disconnected"
    ),
    EventName.NETWORK_SYNC_STARTED: _info(
        "Network", "Engine", "Sync session started; pause block production"
    ),
    EventName.NETWORK_SYNC_COMPLETED: _info(
        "Network", "Engine", "Sync session finished; resume normal operation"
    ),
    EventName.SYSTEM_READY: _info("Bootstrap", "All modules", "Startup complete"),
    EventName.SYSTEM_SHUTDOWN: _info("Bootstrap", "All modules", "Graceful shutdown"),
    EventName.SYSTEM_ERROR: _info("Any module", "Bootstrap, Monitoring", "Error report"),
    EventName.SYSTEM_METRIC: _info("Any module", "Metrics collector", "Metric sample"),
    EventName.CONTRACT_STORAGE_GET: _info(_CONTRACT, _CONSENSUS, "Read a storage value"),
    EventName.CONTRACT_CRYPTO_VERIFY: _info(_CONTRACT, _CONSENSUS, "Verify a signature"),
    EventName.CONTRACT_CRYPTO_HASH: _info(_CONTRACT, _CONSENSUS, "Hash data (blake2b-256)"),
    EventName.CONTRACT_ACCOUNT_GETBALANCE: _info(_CONTRACT, _CONSENSUS, "Read an account balance"),
    EventName.CONTRACT_MATH_DECIMAL: _info(_CONTRACT, _CONSENSUS, "Normalize a decimal value"),
    EventName.CONTRACT_MATH_ADD: _info(_CONTRACT, _CONSENSUS, "Add two decimal values"),
    EventName.CONTRACT_MATH_SUBTRACT: _info(_CONTRACT, _CONSENSUS, "Subtract two decimal values"),
    EventName.CONTRACT_MATH_COMPARE: _info(_CONTRACT, _CONSENSUS, "Compare two decimal values"),
    EventName.CONTRACT_ENCODING_TOJSON: _info(_CONTRACT, _CONSENSUS, "Encode data as deterministic JSON"),
    EventName.CONTRACT_TRANSACTION_VALIDATESIGNATURES: _info(
        _CONTRACT, _CONSENSUS, "Validate transaction signatures"
    ),
    EventName.CONTRACT_CONFIG_GET_GENESISKEYS: _info(_CONTRACT, _CONSENSUS, "Read genesis public keys"),
    EventName.CONTRACT_STORAGE_RESPONSE: _info(_CONSENSUS, _CONTRACT, "Storage value"),
    EventName.CONTRACT_CRYPTO_VERIFY_RESPONSE: _info(_CONSENSUS, _CONTRACT, "Signature check result"),
    EventName.CONTRACT_CRYPTO_HASH_RESPONSE: _info(_CONSENSUS, _CONTRACT, "Hash result"),
    EventName.CONTRACT_ACCOUNT_GETBALANCE_RESPONSE: _info(_CONSENSUS, _CONTRACT, "Account balance"),
    EventName.CONTRACT_MATH_DECIMAL_RESPONSE: _info(_CONSENSUS, _CONTRACT, "Decimal value"),
    EventName.CONTRACT_MATH_ADD_RESPONSE: _info(_CONSENSUS, _CONTRACT, "Sum"),
    EventName.CONTRACT_MATH_SUBTRACT_RESPONSE: _info(_CONSENSUS, _CONTRACT, "Difference"),
    EventName.CONTRACT_MATH_COMPARE_RESPONSE: _info(_CONSENSUS, _CONTRACT, "Comparison (-1, 0, 1)"),
    EventName.CONTRACT_ENCODING_TOJSON_RESPONSE: _info(_CONSENSUS, _CONTRACT, "Deterministic JSON"),
    EventName.CONTRACT_TRANSACTION_VALIDATESIGNATURES_RESPONSE: _info(
        _CONSENSUS, _CONTRACT, "Signature validation result"
    ),
    EventName.CONTRACT_CONFIG_GET_GENESISKEYS_RESPONSE: _info(_CONSENSUS, _CONTRACT, "Genesis public keys"),
    EventName.RPC_GET_BLOCK: _info("RPC", "BlockStore", "Fetch one block by id"),
    EventName.RPC_GET_BLOCK_RESPONSE: _info("BlockStore", "RPC", "Block or null"),
    EventName.RPC_SUBMIT_TX: _info("RPC", "Mempool", "Submit a deserialized transaction"),
    EventName.RPC_SUBMIT_TX_RESPONSE: _info("Mempool", "RPC", "Accepted id or error"),
    EventName.RPC_GET_BLOCKS_FROM: _info("Sync", "BlockStore", "Fetch a page of blocks"),
    EventName.RPC_GET_BLOCKS_FROM_RESPONSE: _info("BlockStore", "Sync", "Block page and next index"),
}


# Request -> response pairs answered by exactly one response carrying the same requestId
REQUEST_PAIRS: dict[EventName, EventName] = {
    EventName.TRANSACTION_SUBMIT: EventName.TRANSACTION_RESPONSE,
    EventName.TRANSACTION_SUBMIT_VALIDATION_REQUEST: EventName.TRANSACTION_VALIDATION_RESPONSE,
    EventName.NETWORK_SYNC_STARTED: EventName.NETWORK_SYNC_COMPLETED,
    EventName.RPC_GET_BLOCK: EventName.RPC_GET_BLOCK_RESPONSE,
    EventName.RPC_SUBMIT_TX: EventName.RPC_SUBMIT_TX_RESPONSE,
    EventName.RPC_GET_BLOCKS_FROM: EventName.RPC_GET_BLOCKS_FROM_RESPONSE,
}

# Fan-in pair collected by the quorum aggregator
QUORUM_PAIRS: dict[EventName, EventName] = {
    EventName.ATTESTATION_REQUEST: EventName.VALIDATOR_ATTESTATION,
}

# Host service operation -> (request, response). Bridged synchronously for contract code.
HOST_CALLS: dict[str, tuple[EventName, EventName]] = {
    "storage.get": (EventName.CONTRACT_STORAGE_GET, EventName.CONTRACT_STORAGE_RESPONSE),
    "crypto.verify": (EventName.CONTRACT_CRYPTO_VERIFY, EventName.CONTRACT_CRYPTO_VERIFY_RESPONSE),
    "crypto.hash": (EventName.CONTRACT_CRYPTO_HASH, EventName.CONTRACT_CRYPTO_HASH_RESPONSE),
    "account.getBalance": (
        EventName.CONTRACT_ACCOUNT_GETBALANCE,
        EventName.CONTRACT_ACCOUNT_GETBALANCE_RESPONSE,
    ),
    "math.decimal": (EventName.CONTRACT_MATH_DECIMAL, EventName.CONTRACT_MATH_DECIMAL_RESPONSE),
    "math.add": (EventName.CONTRACT_MATH_ADD, EventName.CONTRACT_MATH_ADD_RESPONSE),
    "math.subtract": (EventName.CONTRACT_MATH_SUBTRACT, EventName.CONTRACT_MATH_SUBTRACT_RESPONSE),
    "math.compare": (EventName.CONTRACT_MATH_COMPARE, EventName.CONTRACT_MATH_COMPARE_RESPONSE),
    "encoding.toJSON": (
        EventName.CONTRACT_ENCODING_TOJSON,
        EventName.CONTRACT_ENCODING_TOJSON_RESPONSE,
    ),
    "transaction.validateSignatures": (
        EventName.CONTRACT_TRANSACTION_VALIDATESIGNATURES,
        EventName.CONTRACT_TRANSACTION_VALIDATESIGNATURES_RESPONSE,
    ),
    "config.getGenesisKeys": (
        EventName.CONTRACT_CONFIG_GET_GENESISKEYS,
        EventName.CONTRACT_CONFIG_GET_GENESISKEYS_RESPONSE,
    ),
}

HOST_CALL_RESPONSES: dict[EventName, EventName] = dict(HOST_CALLS.values())


def response_for(request: str) -> EventName:
    """Response event paired with a request event.

    Raises ValueError for names outside the taxonomy and KeyError for names that
    are not requests.
    """
    name = EventName(request)
    if name in REQUEST_PAIRS:
        return REQUEST_PAIRS[name]
    if name in QUORUM_PAIRS:
        return QUORUM_PAIRS[name]
    return HOST_CALL_RESPONSES[name]
