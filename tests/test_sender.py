import gc

import pytest

from conftest import CONTRACT, TOKEN_CONTRACT, FakeAdapter, build_task_client, content_hash
from contract_client.address import to_checksum
from contract_client.contracts.client import ContractClient
from contract_client.contracts.descriptor import EventHandler
from contract_client.errors import ConstructionError, DecodingError, PreconditionError, SendFailedError


def task_logs(task_id, pot_id, address=CONTRACT):
    return [
        {"address": address, "event": "TaskAdded", "args": {"id": task_id}, "logIndex": 0},
        {"address": address, "event": "PotAdded", "args": {"id": pot_id}, "logIndex": 1},
    ]


@pytest.mark.asyncio
async def test_create_task_merges_event_fields(adapter, task_client):
    adapter.emits["makeTask"] = task_logs(7, 11)

    result = await task_client.createTask.send({"specificationHash": content_hash(3)})

    assert dict(result) == {"taskId": 7, "potId": 11}
    assert result.tx_hash == "0x%064x" % 1
    assert result.meta["blockNumber"] == 1
    assert result.meta["status"] == 1
    [sub] = adapter.submissions
    assert sub["address"] == to_checksum(CONTRACT)
    assert sub["function"] == "makeTask"
    assert sub["args"][1] == 1
    assert sub["signatures"] is None and sub["via"] is None


@pytest.mark.asyncio
async def test_logs_from_other_addresses_are_ignored(adapter, task_client):
    adapter.emits["makeTask"] = task_logs(7, 11) + task_logs(99, 99, address=TOKEN_CONTRACT)

    result = await task_client.createTask.send({"specificationHash": content_hash(3)})

    assert result["taskId"] == 7
    assert result["potId"] == 11


@pytest.mark.asyncio
async def test_later_handler_wins_on_collision():
    adapter = FakeAdapter()
    client = ContractClient(adapter, CONTRACT)
    client.add_event("First", [("v", "number")])
    client.add_event("Second", [("v", "number")])
    client.add_sender(
        "poke",
        event_handlers=[
            EventHandler("Second", fields={"v": "value"}),
            EventHandler("First", fields={"v": "value"}),
        ],
    )
    adapter.emits["poke"] = [
        {"address": CONTRACT, "event": "First", "args": {"v": 1}},
        {"address": CONTRACT, "event": "Second", "args": {"v": 2}},
    ]

    result = await client.poke.send()

    assert result["value"] == 1


@pytest.mark.asyncio
async def test_repeated_event_last_log_wins():
    adapter = FakeAdapter()
    client = ContractClient(adapter, CONTRACT)
    client.add_event("Tick", [("n", "number")])
    client.add_sender("tick", event_handlers={"Tick": None})
    adapter.emits["tick"] = [{"address": CONTRACT, "event": "Tick", "args": [n]} for n in (1, 2, 3)]

    assert dict(await client.tick.send()) == {"n": 3}


@pytest.mark.asyncio
async def test_handler_on_secondary_contract():
    adapter = FakeAdapter()
    token = ContractClient(adapter, TOKEN_CONTRACT, name="Token")
    token.add_event("Mint", [("to", "address"), ("amount", "bigNumber")])
    colony = ContractClient(adapter, CONTRACT, name="Colony")
    colony.add_sender(
        "mintTokens",
        input=[("amount", "bigNumber")],
        event_handlers=[EventHandler("Mint", source=token, fields={"amount": "minted"})],
    )
    big = 10**30
    adapter.emits["mintTokens"] = [
        {"address": CONTRACT, "event": "Mint", "args": {"to": CONTRACT, "amount": "1"}},
        {"address": TOKEN_CONTRACT, "event": "Mint", "args": {"to": CONTRACT, "amount": hex(big)}},
    ]

    result = await colony.mintTokens.send({"amount": big})

    assert dict(result) == {"minted": big}


def test_foreign_event_must_be_declared():
    adapter = FakeAdapter()
    token = ContractClient(adapter, TOKEN_CONTRACT, name="Token")
    colony = ContractClient(adapter, CONTRACT, name="Colony")
    with pytest.raises(ConstructionError):
        colony.add_sender("mint", event_handlers=[EventHandler("Mint", source=token)])


@pytest.mark.asyncio
async def test_dropped_source_client_fails_scan():
    adapter = FakeAdapter()
    token = ContractClient(adapter, TOKEN_CONTRACT, name="Token")
    token.add_event("Mint", [("amount", "bigNumber")])
    colony = ContractClient(adapter, CONTRACT, name="Colony")
    colony.add_sender("mint", event_handlers=[EventHandler("Mint", source=token)])
    del token
    gc.collect()

    with pytest.raises(ConstructionError):
        await colony.mint.send()
    assert adapter.submissions == []


@pytest.mark.asyncio
async def test_owner_event_missing_fails_scan():
    adapter = FakeAdapter()
    client = ContractClient(adapter, CONTRACT)
    client.add_sender("poke", event_handlers={"Poked": None})
    with pytest.raises(ConstructionError):
        await client.poke.send()
    assert adapter.submissions == []


@pytest.mark.asyncio
async def test_declared_outputs_without_event_are_none():
    adapter = FakeAdapter()
    client = ContractClient(adapter, CONTRACT)
    client.add_sender("poke", output=[("ticket", "number")])
    assert dict(await client.poke.send()) == {"ticket": None}


@pytest.mark.asyncio
async def test_revert_raises_without_result(adapter, task_client):
    adapter.revert.add("makeTask")
    adapter.emits["makeTask"] = task_logs(7, 11)

    with pytest.raises(SendFailedError) as ei:
        await task_client.createTask.send({"specificationHash": content_hash(3)})

    assert ei.value.receipt is not None
    assert ei.value.receipt.status == 0
    assert len(adapter.submissions) == 1


@pytest.mark.asyncio
async def test_submit_failure_carries_cause(adapter, task_client):
    boom = RuntimeError("nonce too low")
    adapter.fail_with["makeTask"] = boom

    with pytest.raises(SendFailedError) as ei:
        await task_client.createTask.send({"specificationHash": content_hash(3)})

    assert ei.value.cause is boom
    assert ei.value.operation == "createTask"


@pytest.mark.asyncio
async def test_precondition_blocks_submission():
    adapter = FakeAdapter()
    client = ContractClient(adapter, CONTRACT)
    client.add_sender("poke", input=[("a", "number")], validate_empty=lambda values: False)
    with pytest.raises(PreconditionError):
        await client.poke.send({"a": 1})
    assert adapter.submissions == []


def test_operations_view_is_read_only(adapter):
    client = build_task_client(adapter)
    assert "createTask" in client.operations
    with pytest.raises(TypeError):
        client.operations["createTask"] = None


@pytest.mark.asyncio
async def test_send_result_is_a_mapping(adapter, task_client):
    adapter.emits["makeTask"] = task_logs(7, 11)

    result = await task_client.createTask.send({"specificationHash": content_hash(3)})

    assert sorted(result.values()) == [7, 11]
    assert dict(result.items()) == {"taskId": 7, "potId": 11}
    assert list(result.keys()) == list(result)
    assert result.get("missing") is None
    assert result.data == {"taskId": 7, "potId": 11}


def test_handler_fields_checked_at_declaration():
    client = ContractClient(FakeAdapter(), CONTRACT)
    client.add_event("Added", [("id", "number")])
    with pytest.raises(ConstructionError) as ei:
        client.add_sender("add", event_handlers=[EventHandler("Added", fields={"idd": "x"})])
    assert ei.value.parameter == "idd"
    assert not client.has_operation("add")


def test_foreign_handler_fields_checked_at_declaration():
    adapter = FakeAdapter()
    token = ContractClient(adapter, TOKEN_CONTRACT, name="Token")
    token.add_event("Mint", [("amount", "bigNumber")])
    colony = ContractClient(adapter, CONTRACT, name="Colony")
    with pytest.raises(ConstructionError):
        colony.add_sender("mint", event_handlers=[EventHandler("Mint", source=token, fields={"to": "recipient"})])


@pytest.mark.asyncio
async def test_late_declared_event_with_bad_fields_submits_nothing():
    adapter = FakeAdapter()
    client = ContractClient(adapter, CONTRACT)
    client.add_sender("add", event_handlers=[EventHandler("Added", fields={"idd": "x"})])
    client.add_event("Added", [("id", "number")])
    adapter.emits["add"] = [{"address": CONTRACT, "event": "Added", "args": {"id": 1}}]

    with pytest.raises(ConstructionError):
        await client.add.send()

    assert adapter.submissions == []


@pytest.mark.asyncio
async def test_failing_decode_hook_raises_decoding_error():
    adapter = FakeAdapter()
    client = ContractClient(adapter, CONTRACT)
    client.add_event("Added", [("id", "number")])

    def broken(args):
        return {"id": args["id"] // 0}

    client.add_sender("add", event_handlers=[EventHandler("Added", decode=broken)])
    adapter.emits["add"] = [{"address": CONTRACT, "event": "Added", "args": {"id": 1}}]

    with pytest.raises(DecodingError) as ei:
        await client.add.send()

    assert ei.value.operation == "add"
    assert isinstance(ei.value.__cause__, ZeroDivisionError)
    assert len(adapter.submissions) == 1
