"""Attestation collection for block creators.

Resolution of the quorum is internal state; the attestations:complete event is the
collector's separate public announcement of it.
"""

import logging
from typing import Any

from ledgerbus.events.bus import EventBus
from ledgerbus.events.models import Transaction
from ledgerbus.events.topics import EventName
from ledgerbus.rpc.correlator import Correlator
from ledgerbus.rpc.quorum import QuorumAggregator

logger = logging.getLogger(__name__)


class AttestationCollector:
    """Requests attestations for a transaction and announces when enough arrived."""

    def __init__(
        self,
        bus: EventBus,
        correlator: Correlator,
        aggregator: QuorumAggregator,
        creator_id: str,
    ) -> None:
        self._bus = bus
        self._correlator = correlator
        self._aggregator = aggregator
        self._creator_id = creator_id

    async def collect(
        self,
        tx: Transaction,
        tx_id: str,
        threshold: int,
        timeout: float | None = None,
        expected_participants: int | None = None,
    ) -> list[dict[str, Any]]:
        """Collect `threshold` distinct validator attestations for tx.

        Publishes attestations:complete once the quorum is reached. Raises
        QuorumNotReached (nothing announced) when the deadline passes first.
        """
        request_id = self._correlator.new_request_id()
        attestations = await self._aggregator.request_quorum(
            EventName.ATTESTATION_REQUEST,
            {"tx": tx, "creatorId": self._creator_id},
            EventName.VALIDATOR_ATTESTATION,
            threshold,
            timeout=timeout,
            responder_key="validatorId",
            expected_participants=expected_participants,
            request_id=request_id,
        )
        logger.info(
            "Attestations complete for tx %s: %s",
            tx_id,
            ", ".join(a["validatorId"] for a in attestations),
        )
        self._bus.publish(
            EventName.ATTESTATIONS_COMPLETE, {"requestId": request_id, "txId": tx_id}
        )
        return attestations
