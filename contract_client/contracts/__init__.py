"""
contract_client.contracts
=========================

The contract-client core.

Submodules
----------
- descriptor : OperationDescriptor, EventHandler (declaration + marshalling)
- caller     : Caller (read-only operations)
- sender     : Sender, SendResult (state-mutating operations)
- multisig   : MultisigSender, MultisigOperation (co-signed operations)
- events     : Event, DecodedLog (log decoding and streams)
- client     : ContractClient (operation registry for one contract)
- table      : declarative descriptor tables (dict / JSON / YAML)

Typical usage
-------------
    from contract_client.contracts import ContractClient

    client = ContractClient.from_table(adapter, address, "tasks.yaml")
    task = await client.getTask.call({"taskId": 1})
"""

from __future__ import annotations

from .caller import Caller, ContractMethod
from .client import ContractClient
from .descriptor import EventHandler, OperationDescriptor
from .events import DecodedLog, Event, EventsNamespace
from .multisig import MultisigOperation, MultisigSender, MultisigState, canonical_payload, role_signees
from .sender import Sender, SendResult
from .table import OperationTable, apply_table, load_table

__all__ = [
    "Caller",
    "ContractClient",
    "ContractMethod",
    "DecodedLog",
    "Event",
    "EventHandler",
    "EventsNamespace",
    "MultisigOperation",
    "MultisigSender",
    "MultisigState",
    "OperationDescriptor",
    "OperationTable",
    "Sender",
    "SendResult",
    "apply_table",
    "canonical_payload",
    "load_table",
    "role_signees",
]
