"""Request clients for CLI, RPC and sync callers.

Transaction and sync helpers surface timeouts and cancellations as failed
responses carrying a reason, which is what a CLI prints. Block queries raise.
"""

import logging
from typing import Any

from ledgerbus.errors import RequestCancelled, RequestTimeout
from ledgerbus.events.models import Block, Transaction
from ledgerbus.events.topics import EventName
from ledgerbus.rpc.correlator import Correlator

logger = logging.getLogger(__name__)


def _failure_reason(e: RequestTimeout | RequestCancelled, what: str) -> str:
    if isinstance(e, RequestTimeout):
        if e.timeout is not None:
            return f"no response from {what} within {e.timeout:g}s"
        return f"no response from {what}"
    return "request cancelled"


class NodeClient:
    """Request/response calls into node modules over the event bus."""

    def __init__(self, correlator: Correlator, timeout: float | None = None) -> None:
        self._correlator = correlator
        self._timeout = timeout

    async def submit_transaction(
        self, tx_json: str, timeout: float | None = None
    ) -> dict[str, Any]:
        """Submit raw transaction JSON. Returns {success, txId?, errors?}."""
        try:
            return await self._correlator.request(
                EventName.TRANSACTION_SUBMIT,
                {"txJson": tx_json},
                EventName.TRANSACTION_RESPONSE,
                timeout=timeout or self._timeout,
            )
        except (RequestTimeout, RequestCancelled) as e:
            logger.warning("Transaction submission failed: %s", e)
            return {"success": False, "errors": [_failure_reason(e, "transaction pool")]}

    async def submit_validation_request(
        self, tx_json: str, timeout: float | None = None
    ) -> dict[str, Any]:
        """Validate raw transaction JSON without processing. Returns {success, txJson?, errors?}."""
        try:
            return await self._correlator.request(
                EventName.TRANSACTION_SUBMIT_VALIDATION_REQUEST,
                {"txJson": tx_json},
                EventName.TRANSACTION_VALIDATION_RESPONSE,
                timeout=timeout or self._timeout,
            )
        except (RequestTimeout, RequestCancelled) as e:
            logger.warning("Validation request failed: %s", e)
            return {"success": False, "errors": [_failure_reason(e, "transaction pool")]}

    async def sync(
        self,
        from_index: int,
        to_index: int,
        peer_id: str,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Run one sync session. Returns {success, finalIndex}; failure keeps finalIndex at from_index."""
        try:
            return await self._correlator.request(
                EventName.NETWORK_SYNC_STARTED,
                {"fromIndex": from_index, "toIndex": to_index, "peerId": peer_id},
                EventName.NETWORK_SYNC_COMPLETED,
                timeout=timeout or self._timeout,
            )
        except (RequestTimeout, RequestCancelled) as e:
            logger.warning("Sync with %s failed: %s", peer_id, e)
            return {"success": False, "finalIndex": from_index}

    async def submit_tx(self, tx: Transaction, timeout: float | None = None) -> dict[str, Any]:
        """Submit a deserialized transaction. Returns {ok, id?} or {ok: False, error}."""
        try:
            return await self._correlator.request(
                EventName.RPC_SUBMIT_TX,
                {"tx": tx},
                EventName.RPC_SUBMIT_TX_RESPONSE,
                timeout=timeout or self._timeout,
            )
        except (RequestTimeout, RequestCancelled) as e:
            return {"ok": False, "error": _failure_reason(e, "mempool")}

    async def get_block(self, block_id: str, timeout: float | None = None) -> Block | None:
        resp = await self._correlator.request(
            EventName.RPC_GET_BLOCK,
            {"id": block_id},
            EventName.RPC_GET_BLOCK_RESPONSE,
            timeout=timeout or self._timeout,
        )
        return resp.get("block")

    async def get_blocks_from(
        self, start_index: int, count: int, timeout: float | None = None
    ) -> tuple[list[Block], int | None]:
        """One page of blocks and the next start index (None when there are no more)."""
        resp = await self._correlator.request(
            EventName.RPC_GET_BLOCKS_FROM,
            {"startIndex": start_index, "count": count},
            EventName.RPC_GET_BLOCKS_FROM_RESPONSE,
            timeout=timeout or self._timeout,
        )
        return list(resp.get("blocks") or []), resp.get("nextStartIndex")
