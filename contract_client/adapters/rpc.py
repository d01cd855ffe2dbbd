"""
JSON-RPC chain adapter.

Maps the adapter capability interface onto a node's JSON-RPC surface:

    read      -> contract_call      {address, function, args}          -> result
    submit    -> contract_send      {address, function, args, ...}     -> tx hash
                 tx_getReceipt      [txHash]  (polled until mined)     -> receipt
    get_logs  -> contract_getLogs   {address, event, fromBlock, toBlock} -> [log]
    sign      -> local signer (never leaves the process)

Method names can be overridden for nodes that expose the same calls under
other names. The node is expected to do ABI encoding/decoding itself.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..config import ClientConfig
from ..errors import RpcError
from ..rpc.http import AsyncRpcClient
from ..types.core import LogEntry, TransactionReceipt, as_log, as_receipt
from ..wallet.signer import LocalSigner, Signature
from .base import BlockRange

log = logging.getLogger(__name__)

DEFAULT_METHODS: Dict[str, str] = {
    "call": "contract_call",
    "send": "contract_send",
    "receipt": "tx_getReceipt",
    "logs": "contract_getLogs",
}


class RpcAdapter:
    """ChainAdapter backed by an AsyncRpcClient."""

    def __init__(
        self,
        rpc: AsyncRpcClient,
        *,
        signer: Optional[LocalSigner] = None,
        sender: Optional[str] = None,
        receipt_timeout: float = 120.0,
        poll_interval: float = 0.5,
        max_poll_interval: float = 2.5,
        methods: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.rpc = rpc
        self.signer = signer
        # Account the node should submit from; defaults to the signer's address.
        self.sender = sender or (signer.address if signer is not None else None)
        self.receipt_timeout = float(receipt_timeout)
        self.poll_interval = float(poll_interval)
        self.max_poll_interval = float(max_poll_interval)
        self.methods = {**DEFAULT_METHODS, **dict(methods or {})}
        unknown = set(self.methods) - set(DEFAULT_METHODS)
        if unknown:
            raise ValueError(f"unknown adapter method keys: {sorted(unknown)}")

    @classmethod
    def from_config(
        cls,
        config: Optional[ClientConfig] = None,
        *,
        signer: Optional[LocalSigner] = None,
        **kwargs: Any,
    ) -> "RpcAdapter":
        config = config or ClientConfig.from_env()
        return cls(
            AsyncRpcClient.from_config(config),
            signer=signer,
            receipt_timeout=config.receipt_timeout,
            poll_interval=config.receipt_poll_interval,
            **kwargs,
        )

    async def aclose(self) -> None:
        await self.rpc.aclose()

    async def __aenter__(self) -> "RpcAdapter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()

    # --- ChainAdapter ----------------------------------------------------

    async def read(self, address: str, function_name: str, args: Sequence[Any]) -> Any:
        params = {"address": address, "function": function_name, "args": list(args)}
        return await self.rpc.request(self.methods["call"], [params])

    async def submit(
        self,
        address: str,
        function_name: str,
        args: Sequence[Any],
        signatures: Optional[Sequence[Signature]] = None,
        *,
        via: Optional[str] = None,
    ) -> TransactionReceipt:
        params: Dict[str, Any] = {"address": address, "function": function_name, "args": list(args)}
        if self.sender is not None:
            params["from"] = self.sender
        if signatures is not None:
            params["signatures"] = [s.to_dict() for s in signatures]
        if via is not None:
            params["via"] = via
        result = await self.rpc.request(self.methods["send"], [params])
        if isinstance(result, Mapping) and "status" in result:
            # Node answered with the receipt directly.
            return as_receipt(result)
        tx_hash = result.get("txHash") if isinstance(result, Mapping) else result
        if not isinstance(tx_hash, str):
            raise RpcError(
                code=-32603,
                message="contract_send returned neither a tx hash nor a receipt",
                method=self.methods["send"],
                data=result,
            )
        log.info("submitted %s.%s tx=%s", address, function_name, tx_hash)
        return await self.wait_for_receipt(tx_hash)

    async def get_logs(self, address: str, event_name: str, block_range: BlockRange) -> List[LogEntry]:
        params: Dict[str, Any] = {
            "address": address,
            "event": event_name,
            "fromBlock": block_range.from_block,
        }
        if block_range.to_block is not None:
            params["toBlock"] = block_range.to_block
        result = await self.rpc.request(self.methods["logs"], [params])
        return [as_log(item) for item in result or ()]

    async def sign(self, payload: bytes) -> Signature:
        if self.signer is None:
            raise RuntimeError("RpcAdapter has no signer configured")
        return await self.signer.sign(payload)

    # --- receipts --------------------------------------------------------

    async def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        rec = await self.rpc.request(self.methods["receipt"], [tx_hash])
        if rec is None:
            return None
        if not isinstance(rec, Mapping):
            raise RpcError(code=-32603, message="unexpected receipt shape", method=self.methods["receipt"], data=rec)
        return as_receipt(rec)

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        """
        Poll for a receipt until it arrives or the receipt timeout elapses.

        Raises TimeoutError on timeout. Cancelling the wait does not retract
        the submitted transaction.
        """
        deadline = time.monotonic() + self.receipt_timeout
        interval = self.poll_interval
        while True:
            rec = await self.get_receipt(tx_hash)
            if rec is not None:
                log.debug("receipt tx=%s status=%s block=%s", tx_hash, rec.status, rec.block_number)
                return rec
            if time.monotonic() >= deadline:
                raise TimeoutError(f"timeout waiting for receipt (tx={tx_hash}, timeout_s={self.receipt_timeout})")
            await asyncio.sleep(interval)
            interval = min(interval * 1.25, self.max_poll_interval)


__all__ = ["RpcAdapter", "DEFAULT_METHODS"]
