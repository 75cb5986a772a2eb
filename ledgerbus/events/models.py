"""Payload models for every event name. Wire format is a dict with camelCase keys.

Each EventName maps to exactly one model in PAYLOAD_MODELS; the mapping is checked
for exhaustiveness at import time. Unknown extra keys are ignored so that adding a
field stays backward compatible for older consumers.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ledgerbus.errors import PayloadValidationError, UnknownEventError
from ledgerbus.events.topics import EventName

# Opaque ledger objects defined by the node's type package
Transaction = dict[str, Any]
Block = dict[str, Any]
NodeIdentity = dict[str, Any]

Role = Literal["creator", "validator", "none"]


class Payload(BaseModel):
    """Base payload: camelCase aliases on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class RequestPayload(Payload):
    """Payload family correlated by an opaque, caller-unique requestId."""

    request_id: str


# --- CLI / transactions ---


class SubmitTransactionPayload(RequestPayload):
    tx_json: str


class TransactionResponsePayload(RequestPayload):
    success: bool
    tx_id: str | None = None
    errors: list[str] | None = None


class SubmitValidationRequestPayload(RequestPayload):
    tx_json: str


class ValidationResponsePayload(RequestPayload):
    success: bool
    errors: list[str] | None = None
    tx_json: str | None = None


# --- Mempool ---


class TransactionPayload(Payload):
    transaction: Transaction


class TransactionRejectedPayload(Payload):
    transaction: Transaction
    errors: list[str]


class TransactionsRemovedPayload(Payload):
    tx_ids: list[str]
    reason: Literal["included", "expired", "replaced"]


# --- Attestations ---


class ValidatorAttestationPayload(RequestPayload):
    transaction: Transaction
    validator_id: str
    signature: str
    timestamp: float


class AttestationsCompletePayload(RequestPayload):
    tx_id: str


class AttestationRequestPayload(RequestPayload):
    tx: Transaction
    creator_id: str


class ApprovalSignature(Payload):
    public_key: str
    signature: str


class ConsortiumApproval(Payload):
    """Validator approval of a consortium change. Embedded in transactions, not an event."""

    consortium_id: str
    validator_id: str
    approved: bool
    signature: ApprovalSignature
    rejected_reason: str | None = None


# --- Registry / consensus / shadow ---


class NodesUpdatedPayload(Payload):
    nodes: list[NodeIdentity]


class ValidatorsUpdatedPayload(Payload):
    validators: list[NodeIdentity]


class RoleChangedPayload(Payload):
    old_role: Role
    new_role: Role


class SlotTickPayload(Payload):
    slot: int
    slot_owner: str


class EmptyPayload(Payload):
    pass


class ShadowPreparePayload(Payload):
    transaction: Transaction
    transactions: list[Transaction] | None = None
    primary_node: str
    expected_block_time: float


class ShadowTakeoverPayload(Payload):
    primary_node: str
    shadow_node: str
    block_index: int


# --- Blocks ---


class ChainTip(Payload):
    index: int
    hash: str


class BlockFinalizedPayload(Payload):
    block: Block
    index: int
    hash: str
    tx_ids: list[str]


class BlockPayload(Payload):
    block: Block


class PeerBlockInboundPayload(Payload):
    block_payload: Any
    advertised_block_count: int
    peer_id: str
    timestamp: float


class BlockReorgPayload(Payload):
    old_tip: ChainTip
    new_tip: ChainTip
    common_ancestor: ChainTip


# --- Deposits / state ---


class DepositPayload(Payload):
    creator_address: str
    amount: str
    block_index: int


class DepositSlashedPayload(DepositPayload):
    reason: str


class BalanceUpdatedPayload(Payload):
    address: str
    asset: str
    old_balance: str
    new_balance: str
    tx_id: str


class StateRootUpdatedPayload(Payload):
    old_root: str
    new_root: str
    block_index: int


# --- Network ---


class BroadcastBlockPayload(Payload):
    block: Block
    block_count: int


class PeerConnectedPayload(Payload):
    peer_id: str
    address: str


class PeerDisconnectedPayload(Payload):
    peer_id: str
    reason: str


class SyncStartedPayload(RequestPayload):
    from_index: int
    to_index: int
    peer_id: str


class SyncCompletedPayload(RequestPayload):
    success: bool
    final_index: int


# --- System ---


class SystemShutdownPayload(Payload):
    reason: str


class SystemErrorPayload(Payload):
    module: str
    error: str
    fatal: bool = False


class SystemMetricPayload(Payload):
    name: str
    value: float
    labels: dict[str, str] = Field(default_factory=dict)


# --- Contract host services ---


class StorageGetPayload(RequestPayload):
    key: str


class CryptoVerifyPayload(RequestPayload):
    data: str
    signature: str
    public_key: str


class CryptoHashPayload(RequestPayload):
    data: str | bytes


class GetBalancePayload(RequestPayload):
    address: str
    asset: str


class MathDecimalPayload(RequestPayload):
    value: str


class MathBinaryPayload(RequestPayload):
    a: str
    b: str


class EncodingToJsonPayload(RequestPayload):
    data: Any


class ValidateSignaturesPayload(RequestPayload):
    transaction: Transaction


class GenesisKeysPayload(RequestPayload):
    pass


class StorageResponsePayload(RequestPayload):
    value: Any = None


class VerifyResponsePayload(RequestPayload):
    is_valid: bool


class HashResponsePayload(RequestPayload):
    hash: str


class BalanceResponsePayload(RequestPayload):
    balance: str


class MathResultPayload(RequestPayload):
    result: str


class MathCompareResultPayload(RequestPayload):
    result: Literal[-1, 0, 1]


class EncodingToJsonResponsePayload(RequestPayload):
    json_text: str = Field(alias="json")


class ValidateSignaturesResponsePayload(RequestPayload):
    is_valid: bool
    errors: list[str] | None = None


class GenesisPublicKeyInfo(Payload):
    genesis_id: str
    public_key: str


class GenesisKeysResponsePayload(RequestPayload):
    success: bool
    data: list[GenesisPublicKeyInfo] | None = None
    error: str | None = None


# --- Typed RPC ---


class GetBlockPayload(RequestPayload):
    id: str


class GetBlockResponsePayload(RequestPayload):
    block: Block | None = None


class SubmitTxPayload(RequestPayload):
    tx: Transaction


class SubmitTxResponsePayload(RequestPayload):
    ok: bool
    id: str | None = None
    error: str | None = None


class GetBlocksFromPayload(RequestPayload):
    start_index: int
    count: int


class GetBlocksFromResponsePayload(RequestPayload):
    blocks: list[Block]
    next_start_index: int | None = None


PAYLOAD_MODELS: dict[EventName, type[Payload]] = {
    EventName.TRANSACTION_SUBMIT: SubmitTransactionPayload,
    EventName.TRANSACTION_RESPONSE: TransactionResponsePayload,
    EventName.TRANSACTION_SUBMIT_VALIDATION_REQUEST: SubmitValidationRequestPayload,
    EventName.TRANSACTION_VALIDATION_RESPONSE: ValidationResponsePayload,
    EventName.MEMPOOL_TRANSACTION: TransactionPayload,
    EventName.MEMPOOL_RETURN: TransactionPayload,
    EventName.TX_REJECTED: TransactionRejectedPayload,
    EventName.TX_REMOVED: TransactionsRemovedPayload,
    EventName.VALIDATOR_ATTESTATION: ValidatorAttestationPayload,
    EventName.ATTESTATIONS_COMPLETE: AttestationsCompletePayload,
    EventName.ATTESTATION_REQUEST: AttestationRequestPayload,
    EventName.REGISTRY_NODES_UPDATED: NodesUpdatedPayload,
    EventName.REGISTRY_VALIDATORS_UPDATED: ValidatorsUpdatedPayload,
    EventName.CONSENSUS_ROLE_CHANGED: RoleChangedPayload,
    EventName.CONSENSUS_SLOT_TICK: SlotTickPayload,
    EventName.SCHEDULE_CHANGE: EmptyPayload,
    EventName.SHADOW_PREPARE: ShadowPreparePayload,
    EventName.SHADOW_TAKEOVER: ShadowTakeoverPayload,
    EventName.BLOCK_FINALIZED: BlockFinalizedPayload,
    EventName.NETWORK_BLOCK_RECEIVED: BlockPayload,
    EventName.BLOCK_PROPAGATE: BlockPayload,
    EventName.PEER_BLOCK: BlockPayload,
    EventName.PEER_BLOCK_INBOUND: PeerBlockInboundPayload,
    EventName.BLOCK_REORG: BlockReorgPayload,
    EventName.DEPOSIT_LOCKED: DepositPayload,
    EventName.DEPOSIT_RELEASED: DepositPayload,
    EventName.DEPOSIT_SLASHED: DepositSlashedPayload,
    EventName.STATE_BALANCE_UPDATED: BalanceUpdatedPayload,
    EventName.STATE_ROOT_UPDATED: StateRootUpdatedPayload,
    EventName.NETWORK_BROADCAST_TX: TransactionPayload,
    EventName.NETWORK_BROADCAST_BLOCK: BroadcastBlockPayload,
    EventName.NETWORK_PEER_CONNECTED: PeerConnectedPayload,
    EventName.NETWORK_PEER_DISCONNECTED: PeerDisconnectedPayload,
    EventName.NETWORK_SYNC_STARTED: SyncStartedPayload,
    EventName.NETWORK_SYNC_COMPLETED: SyncCompletedPayload,
    EventName.SYSTEM_READY: EmptyPayload,
    EventName.SYSTEM_SHUTDOWN: SystemShutdownPayload,
    EventName.SYSTEM_ERROR: SystemErrorPayload,
    EventName.SYSTEM_METRIC: SystemMetricPayload,
    EventName.CONTRACT_STORAGE_GET: StorageGetPayload,
    EventName.CONTRACT_CRYPTO_VERIFY: CryptoVerifyPayload,
    EventName.CONTRACT_CRYPTO_HASH: CryptoHashPayload,
    EventName.CONTRACT_ACCOUNT_GETBALANCE: GetBalancePayload,
    EventName.CONTRACT_MATH_DECIMAL: MathDecimalPayload,
    EventName.CONTRACT_MATH_ADD: MathBinaryPayload,
    EventName.CONTRACT_MATH_SUBTRACT: MathBinaryPayload,
    EventName.CONTRACT_MATH_COMPARE: MathBinaryPayload,
    EventName.CONTRACT_ENCODING_TOJSON: EncodingToJsonPayload,
    EventName.CONTRACT_TRANSACTION_VALIDATESIGNATURES: ValidateSignaturesPayload,
    EventName.CONTRACT_CONFIG_GET_GENESISKEYS: GenesisKeysPayload,
    EventName.CONTRACT_STORAGE_RESPONSE: StorageResponsePayload,
    EventName.CONTRACT_CRYPTO_VERIFY_RESPONSE: VerifyResponsePayload,
    EventName.CONTRACT_CRYPTO_HASH_RESPONSE: HashResponsePayload,
    EventName.CONTRACT_ACCOUNT_GETBALANCE_RESPONSE: BalanceResponsePayload,
    EventName.CONTRACT_MATH_DECIMAL_RESPONSE: MathResultPayload,
    EventName.CONTRACT_MATH_ADD_RESPONSE: MathResultPayload,
    EventName.CONTRACT_MATH_SUBTRACT_RESPONSE: MathResultPayload,
    EventName.CONTRACT_MATH_COMPARE_RESPONSE: MathCompareResultPayload,
    EventName.CONTRACT_ENCODING_TOJSON_RESPONSE: EncodingToJsonResponsePayload,
    EventName.CONTRACT_TRANSACTION_VALIDATESIGNATURES_RESPONSE: ValidateSignaturesResponsePayload,
    EventName.CONTRACT_CONFIG_GET_GENESISKEYS_RESPONSE: GenesisKeysResponsePayload,
    EventName.RPC_GET_BLOCK: GetBlockPayload,
    EventName.RPC_GET_BLOCK_RESPONSE: GetBlockResponsePayload,
    EventName.RPC_SUBMIT_TX: SubmitTxPayload,
    EventName.RPC_SUBMIT_TX_RESPONSE: SubmitTxResponsePayload,
    EventName.RPC_GET_BLOCKS_FROM: GetBlocksFromPayload,
    EventName.RPC_GET_BLOCKS_FROM_RESPONSE: GetBlocksFromResponsePayload,
}


def _check_exhaustive() -> None:
    missing = [name.value for name in EventName if name not in PAYLOAD_MODELS]
    if missing:
        raise RuntimeError(f"event names without payload model: {', '.join(missing)}")


_check_exhaustive()


def model_for(name: str) -> type[Payload]:
    """Payload model registered for an event name."""
    try:
        return PAYLOAD_MODELS[EventName(name)]
    except ValueError:
        raise UnknownEventError(str(name)) from None


def is_request_payload(name: str) -> bool:
    """True when the event's payload family carries a requestId."""
    return issubclass(model_for(name), RequestPayload)


def validate_payload(name: str, payload: dict[str, Any]) -> Payload:
    """Validate a wire payload against its event's model. Raises PayloadValidationError."""
    model = model_for(name)
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise PayloadValidationError(str(name), str(e)) from e


def dump_payload(model: Payload) -> dict[str, Any]:
    """Wire form of a payload model: camelCase keys, unset optionals dropped."""
    return model.model_dump(by_alias=True, exclude_none=True)


def wire_payload(name: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Validate and normalize to the wire form.

    Declared fields come back under their camelCase keys whichever spelling was
    sent; keys the model does not declare are passed through as sent.
    """
    model = validate_payload(name, payload)
    declared: set[str] = set()
    for field_name, info in type(model).model_fields.items():
        declared.add(field_name)
        declared.add(info.alias or field_name)
    wire = {k: v for k, v in payload.items() if k not in declared}
    wire.update(dump_payload(model))
    return wire


def build_payload(name: str, **fields: Any) -> dict[str, Any]:
    """Construct a validated wire payload from snake_case or camelCase fields."""
    return dump_payload(validate_payload(name, fields))
