"""
contract_client.adapters
------------------------

Chain adapters: the only layer that touches the network.

- ChainAdapter: the capability interface the client consumes
- RpcAdapter: implementation over JSON-RPC/HTTP
"""

from .base import BlockRange, ChainAdapter
from .rpc import RpcAdapter

__all__ = ["BlockRange", "ChainAdapter", "RpcAdapter"]
