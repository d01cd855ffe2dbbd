"""
Contract client for Python.
Convenience exports for the most common client APIs.
"""

from .version import __version__  # noqa: F401

# Core config & errors
from .config import ClientConfig  # noqa: F401
from .errors import (  # noqa: F401
    CallFailedError,
    ConstructionError,
    ContractClientError,
    DecodingError,
    EncodingError,
    InvalidInputError,
    InvalidSignatureError,
    MultisigError,
    PreconditionError,
    RpcError,
    SendFailedError,
    StaleNonceError,
)

# Types
from .types.params import ParamSpec  # noqa: F401
from .types.registry import DEFAULT_REGISTRY, ParamType, TypeRegistry  # noqa: F401
from .types.core import LogEntry, TransactionReceipt  # noqa: F401

# Transport & adapters
from .rpc.http import AsyncRpcClient  # noqa: F401
from .adapters.base import BlockRange, ChainAdapter  # noqa: F401
from .adapters.rpc import RpcAdapter  # noqa: F401

# Wallet
from .wallet.signer import LocalSigner, Signature, recover_signer  # noqa: F401

# Contracts
from .contracts.client import ContractClient  # noqa: F401
from .contracts.caller import Caller  # noqa: F401
from .contracts.sender import Sender, SendResult  # noqa: F401
from .contracts.multisig import (  # noqa: F401
    MultisigOperation,
    MultisigSender,
    MultisigState,
    role_signees,
)
from .contracts.descriptor import EventHandler, OperationDescriptor  # noqa: F401
from .contracts.events import DecodedLog, Event  # noqa: F401
from .contracts.table import load_table  # noqa: F401

__all__ = [
    "__version__",
    # Core
    "ClientConfig",
    "ContractClientError", "ConstructionError", "InvalidInputError", "PreconditionError",
    "EncodingError", "DecodingError", "CallFailedError", "SendFailedError",
    "StaleNonceError", "InvalidSignatureError", "MultisigError", "RpcError",
    # Types
    "ParamSpec", "ParamType", "TypeRegistry", "DEFAULT_REGISTRY",
    "LogEntry", "TransactionReceipt",
    # Transport
    "AsyncRpcClient", "BlockRange", "ChainAdapter", "RpcAdapter",
    # Wallet
    "LocalSigner", "Signature", "recover_signer",
    # Contracts
    "ContractClient", "Caller", "Sender", "SendResult",
    "MultisigSender", "MultisigOperation", "MultisigState", "role_signees",
    "EventHandler", "OperationDescriptor", "Event", "DecodedLog",
    "load_table",
]
