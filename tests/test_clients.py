"""Tests for NodeClient request helpers."""

from typing import Any

import pytest

from ledgerbus.errors import RequestTimeout
from ledgerbus.events import EventBus, EventName
from ledgerbus.rpc import Correlator, NodeClient


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def client(bus: EventBus) -> NodeClient:
    return NodeClient(Correlator(bus), timeout=0.05)


def responder(bus: EventBus, request: str, response: str, **fields: Any) -> None:
    """Answer every request on `request` synchronously with `fields`."""
    bus.subscribe(
        request, lambda req: bus.publish(response, {"requestId": req["requestId"], **fields})
    )


class TestTransactionSubmission:
    """CLI-facing helpers turn timeouts into failed responses."""

    @pytest.mark.asyncio
    async def test_submit_transaction(self, bus: EventBus, client: NodeClient) -> None:
        responder(
            bus,
            EventName.TRANSACTION_SUBMIT,
            EventName.TRANSACTION_RESPONSE,
            success=True,
            txId="tx1",
        )
        assert await client.submit_transaction('{"to":"A"}') == {"success": True, "txId": "tx1"}

    @pytest.mark.asyncio
    async def test_submit_transaction_timeout(self, client: NodeClient) -> None:
        result = await client.submit_transaction("{}")
        assert result == {
            "success": False,
            "errors": ["no response from transaction pool within 0.05s"],
        }

    @pytest.mark.asyncio
    async def test_validation_request(self, bus: EventBus, client: NodeClient) -> None:
        responder(
            bus,
            EventName.TRANSACTION_SUBMIT_VALIDATION_REQUEST,
            EventName.TRANSACTION_VALIDATION_RESPONSE,
            success=False,
            errors=["bad nonce"],
        )
        result = await client.submit_validation_request("{}")
        assert result == {"success": False, "errors": ["bad nonce"]}

    @pytest.mark.asyncio
    async def test_submit_tx_timeout(self, client: NodeClient) -> None:
        result = await client.submit_tx({"id": "t"})
        assert result["ok"] is False
        assert "mempool" in result["error"]


class TestSyncAndBlocks:
    """Sync sessions and block queries."""

    @pytest.mark.asyncio
    async def test_sync(self, bus: EventBus, client: NodeClient) -> None:
        responder(
            bus,
            EventName.NETWORK_SYNC_STARTED,
            EventName.NETWORK_SYNC_COMPLETED,
            success=True,
            finalIndex=12,
        )
        result = await client.sync(3, 12, "peer-1")
        assert result == {"success": True, "finalIndex": 12}

    @pytest.mark.asyncio
    async def test_sync_failure_keeps_start_index(self, client: NodeClient) -> None:
        assert await client.sync(3, 12, "peer-1") == {"success": False, "finalIndex": 3}

    @pytest.mark.asyncio
    async def test_get_blocks_from(self, bus: EventBus, client: NodeClient) -> None:
        responder(
            bus,
            EventName.RPC_GET_BLOCKS_FROM,
            EventName.RPC_GET_BLOCKS_FROM_RESPONSE,
            blocks=[{"index": 0}, {"index": 1}],
            nextStartIndex=2,
        )
        blocks, next_start = await client.get_blocks_from(0, 2)
        assert [b["index"] for b in blocks] == [0, 1]
        assert next_start == 2

    @pytest.mark.asyncio
    async def test_get_block_missing(self, bus: EventBus, client: NodeClient) -> None:
        responder(bus, EventName.RPC_GET_BLOCK, EventName.RPC_GET_BLOCK_RESPONSE)
        assert await client.get_block("nope") is None

    @pytest.mark.asyncio
    async def test_get_block_timeout_raises(self, client: NodeClient) -> None:
        with pytest.raises(RequestTimeout):
            await client.get_block("b1")
