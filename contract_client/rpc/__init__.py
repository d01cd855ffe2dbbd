"""
contract_client.rpc
-------------------

JSON-RPC transport.

    from contract_client.rpc import AsyncRpcClient
    async with AsyncRpcClient("http://localhost:8545") as rpc:
        result = await rpc.request("contract_call", [...])
"""

from __future__ import annotations

from .http import AsyncRpcClient

__all__ = ["AsyncRpcClient"]
