from __future__ import annotations

"""
Core chain records consumed by the client.

This module provides two complementary representations:
- Lightweight `TypedDict` shapes mirroring what an adapter returns over JSON.
- Immutable `@dataclass` records used inside the client, with
  `.to_rpc_dict()` / `from_rpc_dict()` converters.

Log entries arrive already parsed by the adapter into an event name plus raw
(wire-typed) arguments; converting those arguments into host values is the
job of the type registry, not of these records.

Nothing here performs network I/O; these are just types and converters.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypedDict, Union

# --- Common aliases ----------------------------------------------------------

Address = str  # 0x-prefixed, 20-byte hex (checksummed on output)
Hash = str  # 0x-prefixed hex string
Hex = str  # 0x-prefixed hex string

STATUS_SUCCESS = 1
STATUS_FAILURE = 0


# --- JSON TypedDict shapes ---------------------------------------------------


class LogDict(TypedDict, total=False):
    address: Address
    event: str
    args: Dict[str, Any]
    logIndex: int
    txHash: Hash
    blockNumber: int


class ReceiptDict(TypedDict, total=False):
    txHash: Hash
    status: int  # 1 = success, 0 = revert/failure
    blockNumber: int
    gasUsed: int
    logs: List[LogDict]


def _args(raw: Any) -> Union[Mapping[str, Any], Sequence[Any]]:
    # by name, or positional in declaration order
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    return tuple(raw)


# --- Dataclasses -------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class LogEntry:
    address: Address
    event: str
    args: Union[Mapping[str, Any], Sequence[Any]]
    log_index: Optional[int] = None
    tx_hash: Optional[Hash] = None
    block_number: Optional[int] = None

    def to_rpc_dict(self) -> LogDict:
        d: LogDict = {
            "address": self.address,
            "event": self.event,
            "args": dict(self.args) if isinstance(self.args, Mapping) else list(self.args),
        }
        if self.log_index is not None:
            d["logIndex"] = self.log_index
        if self.tx_hash is not None:
            d["txHash"] = self.tx_hash
        if self.block_number is not None:
            d["blockNumber"] = self.block_number
        return d

    @staticmethod
    def from_rpc_dict(d: Mapping[str, Any]) -> "LogEntry":
        log_index = d.get("logIndex", d.get("index"))
        block_number = d.get("blockNumber")
        return LogEntry(
            address=str(d.get("address", "")),
            event=str(d.get("event", d.get("name", ""))),
            args=_args(d.get("args")),
            log_index=int(log_index) if log_index is not None else None,
            tx_hash=d.get("txHash"),
            block_number=int(block_number) if block_number is not None else None,
        )


@dataclass(slots=True, frozen=True)
class TransactionReceipt:
    tx_hash: Hash
    status: int
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    logs: Sequence[LogEntry] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_rpc_dict(self) -> ReceiptDict:
        d: ReceiptDict = {
            "txHash": self.tx_hash,
            "status": self.status,
            "logs": [lg.to_rpc_dict() for lg in self.logs],
        }
        if self.block_number is not None:
            d["blockNumber"] = self.block_number
        if self.gas_used is not None:
            d["gasUsed"] = self.gas_used
        return d

    @staticmethod
    def from_rpc_dict(d: Mapping[str, Any]) -> "TransactionReceipt":
        status = d.get("status", STATUS_FAILURE)
        if isinstance(status, str):
            status = int(status, 16) if status.startswith("0x") else int(status)
        block_number = d.get("blockNumber")
        gas_used = d.get("gasUsed")
        return TransactionReceipt(
            tx_hash=str(d.get("txHash", d.get("transactionHash", ""))),
            status=int(status),
            block_number=int(block_number) if block_number is not None else None,
            gas_used=int(gas_used) if gas_used is not None else None,
            logs=tuple(LogEntry.from_rpc_dict(ld) for ld in d.get("logs") or ()),
        )


def as_receipt(obj: Union[TransactionReceipt, Mapping[str, Any]]) -> TransactionReceipt:
    """Accept either a receipt record or its JSON shape."""
    if isinstance(obj, TransactionReceipt):
        return obj
    if isinstance(obj, Mapping):
        return TransactionReceipt.from_rpc_dict(obj)
    raise TypeError(f"unexpected receipt payload: {type(obj)!r}")


def as_log(obj: Union[LogEntry, Mapping[str, Any]]) -> LogEntry:
    if isinstance(obj, LogEntry):
        return obj
    if isinstance(obj, Mapping):
        return LogEntry.from_rpc_dict(obj)
    raise TypeError(f"unexpected log payload: {type(obj)!r}")


# --- module exports ----------------------------------------------------------

__all__ = [
    # aliases
    "Address",
    "Hash",
    "Hex",
    "STATUS_SUCCESS",
    "STATUS_FAILURE",
    # json dicts
    "LogDict",
    "ReceiptDict",
    # dataclasses
    "LogEntry",
    "TransactionReceipt",
    "as_receipt",
    "as_log",
]
