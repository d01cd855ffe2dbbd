"""
Chain adapter capability interface.

The client never talks to a node directly; everything network-facing goes
through an object satisfying `ChainAdapter`:

- read(address, function, args)                      -> raw positional result
- submit(address, function, args, signatures, via)   -> TransactionReceipt (or its JSON shape)
- get_logs(address, event, block_range)              -> list of raw log entries
- sign(payload)                                      -> Signature

The adapter owns the wire format (ABI or otherwise): arguments arrive already
converted by the type registry, and results are returned as the adapter
decoded them. Its concurrency discipline is its own business.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

from ..types.core import LogEntry, TransactionReceipt
from ..wallet.signer import Signature

__all__ = ["BlockRange", "ChainAdapter", "RawLog", "RawReceipt"]

RawLog = Union[LogEntry, Mapping[str, Any]]
RawReceipt = Union[TransactionReceipt, Mapping[str, Any]]


@dataclass(frozen=True)
class BlockRange:
    """Inclusive block range; `to_block=None` means "up to the latest block"."""

    from_block: int = 0
    to_block: Optional[int] = None

    def __post_init__(self) -> None:
        if self.from_block < 0:
            raise ValueError("from_block must be >= 0")
        if self.to_block is not None and self.to_block < self.from_block:
            raise ValueError("to_block must be >= from_block")


@runtime_checkable
class ChainAdapter(Protocol):
    async def read(self, address: str, function_name: str, args: Sequence[Any]) -> Any: ...

    async def submit(
        self,
        address: str,
        function_name: str,
        args: Sequence[Any],
        signatures: Optional[Sequence[Signature]] = None,
        *,
        via: Optional[str] = None,
    ) -> RawReceipt: ...

    async def get_logs(self, address: str, event_name: str, block_range: BlockRange) -> Sequence[RawLog]: ...

    async def sign(self, payload: bytes) -> Signature: ...
