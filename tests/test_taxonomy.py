"""Tests for the event catalogue: names, payload models, request pairs."""

import re

import pytest

from ledgerbus.errors import PayloadValidationError, UnknownEventError
from ledgerbus.events import (
    EVENT_INFO,
    HOST_CALLS,
    PAYLOAD_MODELS,
    REQUEST_PAIRS,
    EventName,
    RequestPayload,
    build_payload,
    validate_payload,
)
from ledgerbus.events.models import is_request_payload, model_for
from ledgerbus.events.topics import EVENT_NAMES, QUORUM_PAIRS, response_for

_NAME_RE = re.compile(r"^[a-z]+:[A-Za-z-]+(\.[A-Za-z-]+)*$")


class TestEventNames:
    """Closed, namespaced, unique catalogue."""

    def test_every_name_is_namespaced(self) -> None:
        bad = [name.value for name in EventName if not _NAME_RE.match(name.value)]
        assert bad == []

    def test_names_are_unique(self) -> None:
        assert len(list(EventName)) == len(EventName.__members__)
        assert len(EVENT_NAMES) == len(EventName.__members__)

    def test_namespace(self) -> None:
        assert EventName.TX_REJECTED.namespace == "tx"
        assert EventName.CONTRACT_MATH_ADD.namespace == "contract"

    def test_known_wire_names(self) -> None:
        assert EventName.TRANSACTION_SUBMIT == "tx:submit-transaction"
        assert EventName.CONTRACT_STORAGE_RESPONSE == "contract:storage.response"
        assert EventName.CONTRACT_ENCODING_TOJSON == "contract:encoding.toJSON"

    def test_every_name_documented(self) -> None:
        assert set(EVENT_INFO) == set(EventName)
        for info in EVENT_INFO.values():
            assert info.source
            assert info.consumers
            assert info.purpose


class TestPayloadModels:
    """Exactly one model per name; camelCase on the wire."""

    def test_every_name_has_a_model(self) -> None:
        assert set(PAYLOAD_MODELS) == set(EventName)

    def test_unknown_name(self) -> None:
        with pytest.raises(UnknownEventError):
            model_for("tx:unknown")

    def test_validate_camel_case_payload(self) -> None:
        model = validate_payload(
            EventName.TRANSACTION_RESPONSE,
            {"requestId": "r1", "success": True, "txId": "tx1"},
        )
        assert model.request_id == "r1"
        assert model.tx_id == "tx1"

    def test_extra_fields_ignored(self) -> None:
        model = validate_payload(
            EventName.SYSTEM_SHUTDOWN, {"reason": "signal", "addedLater": 1}
        )
        assert model.reason == "signal"

    def test_missing_field_rejected(self) -> None:
        with pytest.raises(PayloadValidationError) as exc_info:
            validate_payload(EventName.TRANSACTION_RESPONSE, {"success": True})
        assert "requestId" in exc_info.value.detail

    def test_literal_field_rejected(self) -> None:
        with pytest.raises(PayloadValidationError):
            validate_payload(
                EventName.TX_REMOVED, {"txIds": ["a"], "reason": "forgotten"}
            )

    def test_build_payload_from_snake_case(self) -> None:
        payload = build_payload(
            EventName.NETWORK_SYNC_STARTED,
            request_id="r9",
            from_index=3,
            to_index=10,
            peer_id="peer-1",
        )
        assert payload == {"requestId": "r9", "fromIndex": 3, "toIndex": 10, "peerId": "peer-1"}

    def test_build_payload_drops_unset_optionals(self) -> None:
        payload = build_payload(EventName.TRANSACTION_RESPONSE, request_id="r1", success=False)
        assert payload == {"requestId": "r1", "success": False}

    def test_to_json_response_uses_json_key(self) -> None:
        model = validate_payload(
            EventName.CONTRACT_ENCODING_TOJSON_RESPONSE, {"requestId": "r", "json": "{}"}
        )
        assert model.json_text == "{}"
        assert build_payload(
            EventName.CONTRACT_ENCODING_TOJSON_RESPONSE, request_id="r", json="[]"
        ) == {"requestId": "r", "json": "[]"}

    def test_compare_result_restricted(self) -> None:
        with pytest.raises(PayloadValidationError):
            validate_payload(EventName.CONTRACT_MATH_COMPARE_RESPONSE, {"requestId": "r", "result": 2})

    def test_nested_reorg_tips(self) -> None:
        tip = {"index": 4, "hash": "ab"}
        model = validate_payload(
            EventName.BLOCK_REORG, {"oldTip": tip, "newTip": tip, "commonAncestor": tip}
        )
        assert model.common_ancestor.index == 4


class TestRequestPairs:
    """Request and response families carry requestId."""

    def test_pairs_use_request_payloads(self) -> None:
        pairs = [*REQUEST_PAIRS.items(), *QUORUM_PAIRS.items(), *HOST_CALLS.values()]
        for request, response in pairs:
            assert is_request_payload(request), request
            assert issubclass(PAYLOAD_MODELS[response], RequestPayload), response

    def test_host_calls_cover_every_contract_request(self) -> None:
        requests = {request for request, _ in HOST_CALLS.values()}
        responses = {response for _, response in HOST_CALLS.values()}
        contract = {name for name in EventName if name.namespace == "contract"}
        assert requests | responses == contract
        assert len(HOST_CALLS) == 11

    def test_response_for(self) -> None:
        assert response_for("tx:submit-transaction") == EventName.TRANSACTION_RESPONSE
        assert response_for(EventName.ATTESTATION_REQUEST) == EventName.VALIDATOR_ATTESTATION
        assert response_for(EventName.CONTRACT_STORAGE_GET) == EventName.CONTRACT_STORAGE_RESPONSE

    def test_response_for_non_request(self) -> None:
        with pytest.raises(KeyError):
            response_for(EventName.SYSTEM_READY)
