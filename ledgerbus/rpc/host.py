"""ContractHost: typed host services for contract code, backed by the host-call bridge."""

from typing import Any

from ledgerbus.errors import HostCallFailed
from ledgerbus.events.models import GenesisPublicKeyInfo, Transaction
from ledgerbus.events.topics import EventName
from ledgerbus.rpc.bridge import HostCallBridge


class ContractHost:
    """Everything a contract may ask of the node. Each method is one blocking host call."""

    def __init__(self, bridge: HostCallBridge) -> None:
        self._bridge = bridge

    def storage_get(self, key: str) -> Any:
        """Stored value for key, or None."""
        return self._bridge.call(EventName.CONTRACT_STORAGE_GET, {"key": key}).get("value")

    def verify(self, data: str, signature: str, public_key: str) -> bool:
        resp = self._bridge.call(
            EventName.CONTRACT_CRYPTO_VERIFY,
            {"data": data, "signature": signature, "publicKey": public_key},
        )
        return bool(resp["isValid"])

    def hash(self, data: str | bytes) -> str:
        return self._bridge.call(EventName.CONTRACT_CRYPTO_HASH, {"data": data})["hash"]

    def get_balance(self, address: str, asset: str) -> str:
        resp = self._bridge.call(
            EventName.CONTRACT_ACCOUNT_GETBALANCE, {"address": address, "asset": asset}
        )
        return resp["balance"]

    def decimal(self, value: str) -> str:
        """Canonical decimal string for value."""
        return self._bridge.call(EventName.CONTRACT_MATH_DECIMAL, {"value": str(value)})["result"]

    def add(self, a: str, b: str) -> str:
        return self._binary(EventName.CONTRACT_MATH_ADD, a, b)

    def subtract(self, a: str, b: str) -> str:
        return self._binary(EventName.CONTRACT_MATH_SUBTRACT, a, b)

    def compare(self, a: str, b: str) -> int:
        """-1, 0 or 1."""
        resp = self._bridge.call(EventName.CONTRACT_MATH_COMPARE, {"a": str(a), "b": str(b)})
        return int(resp["result"])

    def to_json(self, data: Any) -> str:
        """Deterministic JSON encoding, identical on every node."""
        return self._bridge.call(EventName.CONTRACT_ENCODING_TOJSON, {"data": data})["json"]

    def validate_signatures(self, transaction: Transaction) -> tuple[bool, list[str]]:
        """(is_valid, errors) as judged by the consensus layer."""
        resp = self._bridge.call(
            EventName.CONTRACT_TRANSACTION_VALIDATESIGNATURES, {"transaction": transaction}
        )
        return bool(resp["isValid"]), list(resp.get("errors") or [])

    def genesis_keys(self) -> list[GenesisPublicKeyInfo]:
        """Genesis public keys. Raises HostCallFailed when the service reports failure."""
        resp = self._bridge.call(EventName.CONTRACT_CONFIG_GET_GENESISKEYS, {})
        if not resp.get("success"):
            raise HostCallFailed(
                EventName.CONTRACT_CONFIG_GET_GENESISKEYS, resp.get("error") or "unknown error"
            )
        return [GenesisPublicKeyInfo.model_validate(item) for item in resp.get("data") or []]

    def _binary(self, name: EventName, a: str, b: str) -> str:
        return self._bridge.call(name, {"a": str(a), "b": str(b)})["result"]
