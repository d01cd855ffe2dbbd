import json
import textwrap

import pytest
import yaml

from conftest import CONTRACT, TOKEN_CONTRACT, FakeAdapter, assign_roles, content_hash
from contract_client.contracts.caller import Caller
from contract_client.contracts.client import ContractClient
from contract_client.contracts.multisig import MultisigSender
from contract_client.contracts.sender import Sender
from contract_client.contracts.table import OperationTable, load_table
from contract_client.errors import ConstructionError, PreconditionError

TASKS_YAML = textwrap.dedent(
    """
    name: Tasks
    events:
      - {name: TaskAdded, params: [[id, number]]}
      - {name: TaskBriefChanged, params: [[id, number], [specificationHash, ipfsHash]]}
    operations:
      - kind: caller
        name: getTaskCount
        output: [[count, number]]
      - kind: caller
        name: getTask
        input: [[taskId, number]]
        output: [[specificationHash, ipfsHash], [status, taskStatus]]
        echo: {taskId: id}
        validateEmpty: {count: getTaskCount, field: taskId}
      - kind: caller
        name: getTaskRole
        input: [[taskId, number], [role, role]]
        output: [[address, address], [rated, boolean], [rating, number]]
      - kind: sender
        name: createTask
        functionName: makeTask
        input: [[specificationHash, ipfsHash], [domainId, number, 1]]
        eventHandlers:
          - {event: TaskAdded, fields: {id: taskId}}
          - {event: Transfer, source: token, fields: {amount: funded}}
      - kind: multisig
        name: setTaskBrief
        input: [[taskId, number], [specificationHash, ipfsHash]]
        requiredSignees: {caller: getTaskRole, roles: [MANAGER, WORKER]}
        nonceFunctionName: getTaskChangeNonce
        nonceInput: [taskId]
        multisigFunctionName: executeTaskChange
        eventHandlers:
          - {event: TaskBriefChanged}
    """
)


@pytest.fixture
def token(adapter):
    client = ContractClient(adapter, TOKEN_CONTRACT, name="Token")
    client.add_event("Transfer", [("to", "address"), ("amount", "bigNumber")])
    return client


@pytest.fixture
def table_path(tmp_path):
    path = tmp_path / "tasks.yaml"
    path.write_text(TASKS_YAML, encoding="utf-8")
    return path


def test_yaml_table_builds_every_kind(adapter, token, table_path):
    client = ContractClient.from_table(adapter, CONTRACT, table_path, related={"token": token}, name="Tasks")

    assert isinstance(client.getTask, Caller)
    assert isinstance(client.createTask, Sender)
    assert isinstance(client.setTaskBrief, MultisigSender)
    assert client.createTask.function_name == "makeTask"
    assert dict(client.operations["createTask"].default_values) == {"domainId": 1}
    assert client.setTaskBrief.nonce_input == ("taskId",)


def test_json_table_matches_yaml(tmp_path, table_path):
    data = yaml.safe_load(table_path.read_text())
    json_path = tmp_path / "tasks.json"
    json_path.write_text(json.dumps(data), encoding="utf-8")
    assert load_table(json_path) == load_table(table_path)
    assert isinstance(load_table(data), OperationTable)


@pytest.mark.asyncio
async def test_table_exists_check(adapter, token, table_path):
    client = ContractClient.from_table(adapter, CONTRACT, table_path, related={"token": token})
    adapter.read_results["getTaskCount"] = 2
    adapter.read_results["getTask"] = ["0x" + "00" * 32, 0]

    assert await client.getTask.call({"taskId": 2}) == {"id": 2, "specificationHash": None, "status": "ACTIVE"}
    with pytest.raises(PreconditionError):
        await client.getTask.call({"taskId": 3})


@pytest.mark.asyncio
async def test_table_sender_with_related_source(adapter, token, table_path):
    client = ContractClient.from_table(adapter, CONTRACT, table_path, related={"token": token})
    adapter.emits["makeTask"] = [
        {"address": CONTRACT, "event": "TaskAdded", "args": {"id": 5}},
        {"address": TOKEN_CONTRACT, "event": "Transfer", "args": {"to": CONTRACT, "amount": 10**20}},
    ]

    result = await client.createTask.send({"specificationHash": content_hash(2)})

    assert dict(result) == {"taskId": 5, "funded": 10**20}


@pytest.mark.asyncio
async def test_table_multisig(adapter, token, table_path, manager, worker):
    client = ContractClient.from_table(adapter, CONTRACT, table_path, related={"token": token})
    assign_roles(adapter, {"MANAGER": manager.address, "WORKER": worker.address})

    result = await client.setTaskBrief.send(
        {"taskId": 1, "specificationHash": content_hash(2)}, signers=[worker, manager]
    )

    assert result.tx_hash
    assert adapter.submissions[0]["via"] == "executeTaskChange"


def test_unknown_related_client(adapter, table_path):
    with pytest.raises(ConstructionError):
        ContractClient.from_table(adapter, CONTRACT, table_path)


@pytest.mark.parametrize(
    "table",
    [
        {"operations": [{"kind": "caller"}]},
        {"operations": [{"kind": "oracle", "name": "x"}]},
        {"operations": [{"kind": "caller", "name": "x", "input": [["a"]]}]},
        {"operations": [{"kind": "caller", "name": "x", "bogus": 1}]},
        {"operations": [{"kind": "caller", "name": "x"}, {"kind": "sender", "name": "x"}]},
        {"operations": [{"kind": "caller", "name": "x", "input": [["a", "uint8"]]}]},
        {"operations": [{"kind": "caller", "name": "x", "validateEmpty": {"count": "missing", "field": "a"}}]},
        {
            "operations": [
                {
                    "kind": "multisig",
                    "name": "x",
                    "requiredSignees": {"caller": "getRole", "roles": ["MANAGER"]},
                    "nonceFunctionName": "nonce",
                    "multisigFunctionName": "exec",
                }
            ]
        },
        ["not", "a", "mapping"],
    ],
)
def test_table_errors_are_construction_errors(table):
    with pytest.raises(ConstructionError):
        ContractClient(FakeAdapter(), CONTRACT, table=table)


def test_unparseable_file(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("operations: [unclosed", encoding="utf-8")
    with pytest.raises(ConstructionError):
        load_table(path)


def test_subclass_declares_operations():
    class TokenClient(ContractClient):
        def initialize_contract_methods(self):
            self.add_caller("balanceOf", input=[("owner", "address")], output=[("balance", "bigNumber")])

    client = TokenClient(FakeAdapter(), TOKEN_CONTRACT)
    assert client.name == "TokenClient"
    assert client.has_operation("balanceOf")

    with pytest.raises(ConstructionError):
        client.add_caller("balanceOf")
    with pytest.raises(ConstructionError):
        client.add_caller("operation")
    with pytest.raises(ConstructionError):
        ContractClient(FakeAdapter(), "0x1234")
