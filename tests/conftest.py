"""
Shared test fixtures.

- FakeAdapter: in-memory chain adapter recording every read and submission.
  Reads are answered from `read_results` (value or callable on the encoded
  args); submissions mine instantly, emit the logs registered in `emits`
  and bump the change nonce of multisig targets.
- task_client: a small task-tracking contract wired the way real descriptor
  tables are (callers, a sender with event handlers, a multisig sender).
"""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from hypothesis import settings

from contract_client.adapters.base import BlockRange
from contract_client.contracts.client import ContractClient
from contract_client.contracts.descriptor import EventHandler
from contract_client.contracts.multisig import role_signees
from contract_client.types.registry import ROLES
from contract_client.utils.base58 import b58encode
from contract_client.wallet.signer import LocalSigner, Signature

# Local: fewer examples for snappy feedback; no global deadline to avoid flakiness on CI
settings.register_profile("local", settings(max_examples=60, deadline=None))
settings.register_profile("ci", settings(max_examples=200, deadline=None))
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE") or ("ci" if os.environ.get("CI") else "local"))

CONTRACT = "0x" + "c0" * 20
TOKEN_CONTRACT = "0x" + "70" * 20
NONCE_FUNCTION = "getTaskChangeNonce"

MANAGER_KEY = "0x" + "11" * 32
WORKER_KEY = "0x" + "22" * 32
EVALUATOR_KEY = "0x" + "33" * 32


def content_hash(seed: int) -> str:
    """A valid sha2-256 CIDv0 built from a deterministic digest."""
    return b58encode(b"\x12\x20" + bytes((seed + i) % 256 for i in range(32)))


class FakeAdapter:
    def __init__(self, signer: Optional[LocalSigner] = None) -> None:
        self.signer = signer
        self.reads: List[Tuple[str, str, List[Any]]] = []
        self.submissions: List[Dict[str, Any]] = []
        self.read_results: Dict[str, Any] = {}
        self.emits: Dict[str, Any] = {}
        self.revert: set = set()
        self.fail_with: Dict[str, BaseException] = {}
        self.nonces: Dict[Tuple[Any, ...], int] = {}
        # multisig targets bump the nonce of their first argument (the task id)
        self.nonce_key: Callable[[List[Any]], Tuple[Any, ...]] = lambda args: tuple(args[:1])
        self.bump_nonce_on_submit = True
        self.log_store: List[Dict[str, Any]] = []
        self.block = 0

    async def read(self, address: str, function_name: str, args: List[Any]) -> Any:
        self.reads.append((address, function_name, list(args)))
        if function_name in self.fail_with:
            raise self.fail_with[function_name]
        if function_name == NONCE_FUNCTION and function_name not in self.read_results:
            return self.nonces.get(tuple(args), 0)
        result = self.read_results[function_name]
        return result(list(args)) if callable(result) else result

    async def submit(
        self,
        address: str,
        function_name: str,
        args: List[Any],
        signatures: Optional[List[Signature]] = None,
        *,
        via: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.submissions.append(
            {
                "address": address,
                "function": function_name,
                "args": list(args),
                "signatures": list(signatures) if signatures is not None else None,
                "via": via,
            }
        )
        if function_name in self.fail_with:
            raise self.fail_with[function_name]
        self.block += 1
        status = 0 if function_name in self.revert else 1
        logs = self.emits.get(function_name, [])
        if callable(logs):
            logs = logs(list(args))
        if status == 1 and via is not None and self.bump_nonce_on_submit:
            key = self.nonce_key(list(args))
            self.nonces[key] = self.nonces.get(key, 0) + 1
        return {
            "txHash": "0x%064x" % self.block,
            "status": status,
            "blockNumber": self.block,
            "gasUsed": 21000,
            "logs": [dict(lg, blockNumber=self.block) for lg in logs] if status == 1 else [],
        }

    async def get_logs(self, address: str, event_name: str, block_range: BlockRange) -> List[Dict[str, Any]]:
        out = []
        for lg in self.log_store:
            block = lg.get("blockNumber", 0)
            if lg["event"] != event_name or block < block_range.from_block:
                continue
            if block_range.to_block is not None and block > block_range.to_block:
                continue
            out.append(lg)
        return out

    async def sign(self, payload: bytes) -> Signature:
        assert self.signer is not None, "FakeAdapter has no signer"
        return await self.signer.sign(payload)


@pytest.fixture
def manager() -> LocalSigner:
    return LocalSigner.from_key(MANAGER_KEY)


@pytest.fixture
def worker() -> LocalSigner:
    return LocalSigner.from_key(WORKER_KEY)


@pytest.fixture
def evaluator() -> LocalSigner:
    return LocalSigner.from_key(EVALUATOR_KEY)


@pytest.fixture
def adapter(manager: LocalSigner) -> FakeAdapter:
    return FakeAdapter(signer=manager)


def build_task_client(adapter: FakeAdapter, **kwargs: Any) -> ContractClient:
    client = ContractClient(adapter, CONTRACT, name="Tasks", **kwargs)
    client.add_event("TaskAdded", [("id", "number")])
    client.add_event("PotAdded", [("id", "number")])
    client.add_event("TaskBriefChanged", [("id", "number"), ("specificationHash", "ipfsHash")])

    get_task_count = client.add_caller("getTaskCount", output=[("count", "number")])

    async def task_exists(values):
        task_id = values.get("taskId")
        if task_id:
            count = (await get_task_count.call())["count"]
            assert task_id <= count, f"Task with ID {task_id} not found"
        return True

    client.add_caller(
        "getTask",
        input=[("taskId", "number")],
        output=[("specificationHash", "ipfsHash"), ("status", "taskStatus"), ("dueDate", "date")],
        validate_empty=task_exists,
        echo={"taskId": "id"},
    )
    get_task_role = client.add_caller(
        "getTaskRole",
        input=[("taskId", "number"), ("role", "role")],
        output=[("address", "address"), ("rated", "boolean"), ("rating", "number")],
    )
    client.add_sender(
        "createTask",
        function_name="makeTask",
        input=[("specificationHash", "ipfsHash"), ("domainId", "number", 1)],
        event_handlers=[
            EventHandler("TaskAdded", fields={"id": "taskId"}),
            EventHandler("PotAdded", fields={"id": "potId"}),
        ],
    )
    client.add_multisig_sender(
        "setTaskBrief",
        input=[("taskId", "number"), ("specificationHash", "ipfsHash")],
        required_signees=role_signees(get_task_role, ["MANAGER", "WORKER"]),
        nonce_function_name=NONCE_FUNCTION,
        nonce_input=["taskId"],
        multisig_function_name="executeTaskChange",
        event_handlers={"TaskBriefChanged": None},
    )
    return client


def assign_roles(adapter: FakeAdapter, holders: Dict[str, Optional[str]]) -> None:
    """Answer getTaskRole reads from a {role name: address} map."""
    by_value = {ROLES[name]: addr for name, addr in holders.items()}

    def answer(args: List[Any]) -> List[Any]:
        addr = by_value.get(args[1])
        return [addr if addr is not None else "0x" + "00" * 20, False, 0]

    adapter.read_results["getTaskRole"] = answer


@pytest.fixture
def task_client(adapter: FakeAdapter) -> ContractClient:
    return build_task_client(adapter)
