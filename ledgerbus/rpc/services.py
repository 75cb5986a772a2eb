"""Reference host services answering contract host calls over the bus.

Replies go through bus.post(), i.e. they are delivered later by the dispatch loop
(or by a bridge pump), the same way a real service module answers. Results must be
byte-identical on every node, so math runs in a fixed decimal context and JSON is
encoded with sorted keys and compact separators.
"""

import decimal
import functools
import hashlib
import json
import logging
from typing import Any, Callable

from ledgerbus.events.bus import EventBus, Subscription
from ledgerbus.events.models import Transaction
from ledgerbus.events.topics import EventName

logger = logging.getLogger(__name__)

Verifier = Callable[[str, str, str], bool]
SignatureValidator = Callable[[Transaction], list[str]]

# 78 significant digits covers uint256 amounts exactly
_MATH_CONTEXT = decimal.Context(prec=78, rounding=decimal.ROUND_HALF_EVEN, traps=[decimal.InvalidOperation])


def format_decimal(value: decimal.Decimal) -> str:
    """Canonical plain-notation string: no exponent, no trailing zeros, no negative zero."""
    if value.is_zero():
        return "0"
    return format(value.normalize(_MATH_CONTEXT), "f")


def parse_decimal(value: str) -> decimal.Decimal:
    result = _MATH_CONTEXT.create_decimal(str(value).strip())
    if not result.is_finite():
        raise decimal.InvalidOperation(f"non-finite decimal: {value!r}")
    return result


def deterministic_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def blake2b256(data: str | bytes) -> str:
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    return hashlib.blake2b(raw, digest_size=32).hexdigest()


class ReferenceHostServices:
    """In-memory implementations of the contract host services.

    Storage, balances and genesis keys are plain dicts owned by the caller.
    Signature checks are delegated to injected callables; without them the
    corresponding host calls are left unanswered and time out.
    """

    def __init__(
        self,
        bus: EventBus,
        storage: dict[str, Any] | None = None,
        balances: dict[tuple[str, str], str] | None = None,
        genesis_keys: list[dict[str, str]] | None = None,
        verifier: Verifier | None = None,
        signature_validator: SignatureValidator | None = None,
    ) -> None:
        self._bus = bus
        self.storage: dict[str, Any] = storage if storage is not None else {}
        self.balances: dict[tuple[str, str], str] = balances if balances is not None else {}
        self.genesis_keys: list[dict[str, str]] | None = genesis_keys
        self._verifier = verifier
        self._signature_validator = signature_validator
        self._subscriptions: list[Subscription] = []

    def register(self) -> None:
        """Subscribe every available service to its request event."""
        if self._subscriptions:
            return
        handlers: dict[EventName, Callable[[dict[str, Any]], None]] = {
            EventName.CONTRACT_STORAGE_GET: self._on_storage_get,
            EventName.CONTRACT_CRYPTO_HASH: self._on_crypto_hash,
            EventName.CONTRACT_ACCOUNT_GETBALANCE: self._on_get_balance,
            EventName.CONTRACT_MATH_DECIMAL: self._on_math_decimal,
            EventName.CONTRACT_MATH_ADD: self._on_math_add,
            EventName.CONTRACT_MATH_SUBTRACT: self._on_math_subtract,
            EventName.CONTRACT_MATH_COMPARE: self._on_math_compare,
            EventName.CONTRACT_ENCODING_TOJSON: self._on_to_json,
            EventName.CONTRACT_CONFIG_GET_GENESISKEYS: self._on_genesis_keys,
        }
        if self._verifier is not None:
            handlers[EventName.CONTRACT_CRYPTO_VERIFY] = functools.partial(
                self._on_crypto_verify, self._verifier
            )
        if self._signature_validator is not None:
            handlers[EventName.CONTRACT_TRANSACTION_VALIDATESIGNATURES] = functools.partial(
                self._on_validate_signatures, self._signature_validator
            )
        for name, handler in handlers.items():
            self._subscriptions.append(self._bus.subscribe(name, handler))
        logger.info("Reference host services registered (%d operations)", len(handlers))

    def unregister(self) -> None:
        for sub in self._subscriptions:
            self._bus.unsubscribe(sub)
        self._subscriptions.clear()

    def _reply(self, name: EventName, request: dict[str, Any], **fields: Any) -> None:
        self._bus.post(name, {"requestId": request["requestId"], **fields})

    def _on_storage_get(self, req: dict[str, Any]) -> None:
        self._reply(EventName.CONTRACT_STORAGE_RESPONSE, req, value=self.storage.get(req["key"]))

    def _on_crypto_verify(self, verifier: Verifier, req: dict[str, Any]) -> None:
        ok = verifier(req["data"], req["signature"], req["publicKey"])
        self._reply(EventName.CONTRACT_CRYPTO_VERIFY_RESPONSE, req, isValid=bool(ok))

    def _on_crypto_hash(self, req: dict[str, Any]) -> None:
        self._reply(EventName.CONTRACT_CRYPTO_HASH_RESPONSE, req, hash=blake2b256(req["data"]))

    def _on_get_balance(self, req: dict[str, Any]) -> None:
        balance = self.balances.get((req["address"], req["asset"]), "0")
        self._reply(EventName.CONTRACT_ACCOUNT_GETBALANCE_RESPONSE, req, balance=balance)

    def _on_math_decimal(self, req: dict[str, Any]) -> None:
        result = format_decimal(parse_decimal(req["value"]))
        self._reply(EventName.CONTRACT_MATH_DECIMAL_RESPONSE, req, result=result)

    def _on_math_add(self, req: dict[str, Any]) -> None:
        result = _MATH_CONTEXT.add(parse_decimal(req["a"]), parse_decimal(req["b"]))
        self._reply(EventName.CONTRACT_MATH_ADD_RESPONSE, req, result=format_decimal(result))

    def _on_math_subtract(self, req: dict[str, Any]) -> None:
        result = _MATH_CONTEXT.subtract(parse_decimal(req["a"]), parse_decimal(req["b"]))
        self._reply(EventName.CONTRACT_MATH_SUBTRACT_RESPONSE, req, result=format_decimal(result))

    def _on_math_compare(self, req: dict[str, Any]) -> None:
        result = int(_MATH_CONTEXT.compare(parse_decimal(req["a"]), parse_decimal(req["b"])))
        self._reply(EventName.CONTRACT_MATH_COMPARE_RESPONSE, req, result=result)

    def _on_to_json(self, req: dict[str, Any]) -> None:
        self._reply(EventName.CONTRACT_ENCODING_TOJSON_RESPONSE, req, json=deterministic_json(req["data"]))

    def _on_validate_signatures(
        self, validator: SignatureValidator, req: dict[str, Any]
    ) -> None:
        errors = list(validator(req["transaction"]))
        fields: dict[str, Any] = {"isValid": not errors}
        if errors:
            fields["errors"] = errors
        self._reply(EventName.CONTRACT_TRANSACTION_VALIDATESIGNATURES_RESPONSE, req, **fields)

    def _on_genesis_keys(self, req: dict[str, Any]) -> None:
        if self.genesis_keys is None:
            self._reply(
                EventName.CONTRACT_CONFIG_GET_GENESISKEYS_RESPONSE,
                req,
                success=False,
                error="genesis keys not configured",
            )
            return
        self._reply(
            EventName.CONTRACT_CONFIG_GET_GENESISKEYS_RESPONSE,
            req,
            success=True,
            data=list(self.genesis_keys),
        )
