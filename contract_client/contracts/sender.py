"""
contract_client.contracts.sender
================================

State-mutating contract operations.

`Sender.send(input_values)` runs the same defaulting, precondition and
encoding steps as a Caller, then:

4. checks that every event handler resolves to a declared event, then
   submits one transaction through the adapter and waits for its receipt
5. scans the receipt logs with the descriptor's event handlers, in
   declaration order, merging what they extract into the result (a later
   handler overwrites keys set by an earlier one)
6. a rejected or reverted transaction raises SendFailedError and returns
   nothing

A send is never retried here. Cancelling the awaiting task stops the local
wait only; the transaction may still be mined.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .. import address as _addr
from ..errors import ConstructionError, DecodingError, SendFailedError
from ..types.core import TransactionReceipt, as_receipt
from ..wallet.signer import Signature
from .caller import ContractMethod
from .descriptor import EventHandler
from .events import Event

if TYPE_CHECKING:  # pragma: no cover
    from .client import ContractClient

log = logging.getLogger(__name__)

__all__ = ["SendResult", "Sender"]


@dataclass(frozen=True, eq=False)
class SendResult(Mapping[str, Any]):
    """Decoded values of a successful send plus the receipt they came from."""

    data: Mapping[str, Any]
    receipt: TransactionReceipt = field(repr=False)

    @property
    def tx_hash(self) -> str:
        return self.receipt.tx_hash

    @property
    def meta(self) -> Dict[str, Any]:
        return {
            "txHash": self.receipt.tx_hash,
            "blockNumber": self.receipt.block_number,
            "gasUsed": self.receipt.gas_used,
            "status": self.receipt.status,
        }

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)


class Sender(ContractMethod):
    kind = "sender"

    async def send(self, input_values: Optional[Mapping[str, Any]] = None) -> SendResult:
        values, args = await self._prepare(input_values)
        self.check_event_handlers()
        receipt = await self._submit(args)
        return self._build_result(values, receipt)

    async def _submit(
        self,
        args: Sequence[Any],
        *,
        signatures: Optional[Sequence[Signature]] = None,
        via: Optional[str] = None,
    ) -> TransactionReceipt:
        log.info("send %s.%s%s", self.client.name, self.function_name, f" via {via}" if via else "")
        try:
            raw = await self.client.adapter.submit(
                self.client.address, self.function_name, list(args), signatures, via=via
            )
            receipt = as_receipt(raw)
        except Exception as e:
            raise SendFailedError(str(e) or type(e).__name__, operation=self.name, cause=e) from e
        if not receipt.succeeded:
            log.warning("%s.%s reverted tx=%s", self.client.name, self.function_name, receipt.tx_hash)
            raise SendFailedError("transaction reverted", operation=self.name, receipt=receipt)
        log.debug("%s.%s confirmed tx=%s block=%s", self.client.name, self.name, receipt.tx_hash, receipt.block_number)
        return receipt

    def _build_result(self, values: Mapping[str, Any], receipt: TransactionReceipt) -> SendResult:
        result = self.descriptor.echoed(values)
        result.update(self.scan_events(receipt))
        # Declared outputs the receipt did not provide stay visible as None.
        for name in self.descriptor.output_names:
            result.setdefault(name, None)
        return SendResult(data=result, receipt=receipt)

    def _handler_events(self) -> List[Tuple[EventHandler, "ContractClient", Event]]:
        out = []
        for handler in self.descriptor.event_handlers:
            source = handler.resolve_source(self.client)
            event = source.events.get(handler.event)
            if event is None:
                raise ConstructionError(
                    f"event {handler.event!r} is not declared on {source.name}", operation=self.name
                )
            handler.check((p.name for p in event.params), self.name)
            out.append((handler, source, event))
        return out

    def check_event_handlers(self) -> None:
        """Resolve every handler's source and event; raises ConstructionError. Run before submitting."""
        self._handler_events()

    def scan_events(self, receipt: TransactionReceipt) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for handler, source, event in self._handler_events():
            for entry in receipt.logs:
                if entry.event != handler.event or not _addr.same_address(entry.address, source.address):
                    continue
                try:
                    merged.update(handler.extract(event.decode(entry.args)))
                except DecodingError as e:
                    e.operation = e.operation or self.name
                    raise
        return merged
