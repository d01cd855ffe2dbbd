import json

import httpx
import pytest

from conftest import CONTRACT, MANAGER_KEY, content_hash
from contract_client.adapters.base import BlockRange, ChainAdapter
from contract_client.adapters.rpc import RpcAdapter
from contract_client.config import ClientConfig
from contract_client.contracts.client import ContractClient
from contract_client.errors import CallFailedError, JsonRpcCode, RpcError, SendFailedError
from contract_client.rpc.http import AsyncRpcClient
from contract_client.types.core import TransactionReceipt
from contract_client.wallet.signer import LocalSigner

URL = "http://node.test/rpc"


class Node:
    """Scripted JSON-RPC endpoint: per-method queues of results, errors or HTTP statuses.

    Once a queue runs dry its last response repeats.
    """

    def __init__(self):
        self.requests = []
        self.script = {}
        self.last = {}

    def on(self, method, *responses):
        self.script.setdefault(method, []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        queue = self.script.get(body["method"])
        if queue:
            step = self.last[body["method"]] = queue.pop(0)
        else:
            step = self.last.get(body["method"])
        if isinstance(step, int) and not isinstance(step, bool) and step >= 400:
            return httpx.Response(step, text="busy")
        if isinstance(step, dict) and "error" in step:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": step["error"]})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": step})

    def methods(self):
        return [r["method"] for r in self.requests]


@pytest.fixture
def node():
    return Node()


@pytest.fixture
def rpc(node):
    return AsyncRpcClient(
        URL,
        max_retries=2,
        backoff_base=0.0,
        backoff_jitter=0.0,
        transport=httpx.MockTransport(node.handler),
    )


@pytest.fixture
def rpc_adapter(rpc):
    return RpcAdapter(rpc, signer=LocalSigner.from_key(MANAGER_KEY), poll_interval=0.0, max_poll_interval=0.0)


def test_rpc_adapter_satisfies_protocol(rpc_adapter):
    assert isinstance(rpc_adapter, ChainAdapter)


@pytest.mark.asyncio
async def test_request_envelope(node, rpc):
    node.on("contract_call", 7)
    assert await rpc.request("contract_call", [{"a": 1}]) == 7
    [req] = node.requests
    assert req["jsonrpc"] == "2.0"
    assert req["params"] == [{"a": 1}]
    assert isinstance(req["id"], int)


@pytest.mark.asyncio
async def test_retries_transient_status(node, rpc):
    node.on("contract_call", 503, 429, "ok")
    assert await rpc.request("contract_call") == "ok"
    assert len(node.requests) == 3


@pytest.mark.asyncio
async def test_retries_exhausted(node, rpc):
    node.on("contract_call", 502)
    with pytest.raises(RpcError) as ei:
        await rpc.request("contract_call")
    assert ei.value.code == JsonRpcCode.TRANSPORT_ERROR
    assert ei.value.http_status == 502
    assert len(node.requests) == 3


@pytest.mark.asyncio
async def test_transport_errors_are_retried():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    rpc = AsyncRpcClient(URL, max_retries=1, backoff_base=0.0, backoff_jitter=0.0, transport=httpx.MockTransport(handler))
    with pytest.raises(RpcError) as ei:
        await rpc.request("contract_call")
    assert ei.value.code_enum is JsonRpcCode.TRANSPORT_ERROR
    assert len(calls) == 2
    await rpc.aclose()


@pytest.mark.asyncio
async def test_jsonrpc_error_is_not_retried(node, rpc):
    node.on("contract_call", {"error": {"code": -32000, "message": "execution reverted", "data": "0x08c379a0"}})
    with pytest.raises(RpcError) as ei:
        await rpc.request("contract_call")
    assert ei.value.message == "execution reverted"
    assert ei.value.data == "0x08c379a0"
    assert len(node.requests) == 1


@pytest.mark.asyncio
async def test_non_json_response():
    rpc = AsyncRpcClient(URL, transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")))
    with pytest.raises(RpcError) as ei:
        await rpc.request("contract_call")
    assert ei.value.code == JsonRpcCode.INTERNAL_ERROR
    await rpc.aclose()


@pytest.mark.asyncio
async def test_read_params(node, rpc_adapter):
    node.on("contract_call", [3])
    assert await rpc_adapter.read(CONTRACT, "getTaskCount", []) == [3]
    assert node.requests[0]["params"] == [{"address": CONTRACT, "function": "getTaskCount", "args": []}]


@pytest.mark.asyncio
async def test_submit_polls_for_receipt(node, rpc_adapter):
    tx = "0x" + "ab" * 32
    node.on("contract_send", tx)
    node.on("tx_getReceipt", None, None, {"txHash": tx, "status": "0x1", "blockNumber": 9, "logs": []})

    receipt = await rpc_adapter.submit(CONTRACT, "makeTask", [1], via=None)

    assert isinstance(receipt, TransactionReceipt)
    assert receipt.succeeded and receipt.block_number == 9
    assert node.methods() == ["contract_send", "tx_getReceipt", "tx_getReceipt", "tx_getReceipt"]
    params = node.requests[0]["params"][0]
    assert params["from"] == rpc_adapter.signer.address
    assert "signatures" not in params and "via" not in params


@pytest.mark.asyncio
async def test_submit_with_signatures_and_receipt_result(node, rpc_adapter):
    sig = rpc_adapter.signer.sign_payload(b"payload")
    node.on("contract_send", {"txHash": "0x01", "status": 1, "logs": []})

    receipt = await rpc_adapter.submit(CONTRACT, "setTaskBrief", [1], [sig], via="executeTaskChange")

    assert receipt.tx_hash == "0x01"
    params = node.requests[0]["params"][0]
    assert params["signatures"] == [sig.to_dict()]
    assert params["via"] == "executeTaskChange"
    assert node.methods() == ["contract_send"]


@pytest.mark.asyncio
async def test_receipt_timeout(node, rpc):
    adapter = RpcAdapter(rpc, receipt_timeout=0.0, poll_interval=0.0)
    node.on("tx_getReceipt", None)
    with pytest.raises(TimeoutError):
        await adapter.wait_for_receipt("0x" + "cd" * 32)


@pytest.mark.asyncio
async def test_get_logs(node, rpc_adapter):
    node.on(
        "contract_getLogs",
        [{"address": CONTRACT, "event": "TaskAdded", "args": {"id": 1}, "blockNumber": "5", "logIndex": 0}],
    )

    logs = await rpc_adapter.get_logs(CONTRACT, "TaskAdded", BlockRange(3, 8))

    assert logs[0].block_number == 5
    assert logs[0].args == {"id": 1}
    assert node.requests[0]["params"] == [{"address": CONTRACT, "event": "TaskAdded", "fromBlock": 3, "toBlock": 8}]


@pytest.mark.asyncio
async def test_sign_requires_signer(rpc):
    with pytest.raises(RuntimeError):
        await RpcAdapter(rpc).sign(b"x")


def test_unknown_method_key(rpc):
    with pytest.raises(ValueError):
        RpcAdapter(rpc, methods={"estimate": "eth_estimateGas"})


def test_block_range_validation():
    with pytest.raises(ValueError):
        BlockRange(-1)
    with pytest.raises(ValueError):
        BlockRange(5, 4)


def test_from_config():
    config = ClientConfig(rpc_url="http://node.test:8545", request_timeout=3.0, max_retries=5, receipt_timeout=7.0)
    adapter = RpcAdapter.from_config(config)
    assert adapter.rpc.url == "http://node.test:8545"
    assert adapter.rpc.max_retries == 5
    assert adapter.receipt_timeout == 7.0
    assert adapter.signer is None and adapter.sender is None


@pytest.mark.asyncio
async def test_client_over_json_rpc(node, rpc_adapter):
    client = ContractClient(rpc_adapter, CONTRACT)
    client.add_caller("getTaskCount", output=[("count", "number")])
    client.add_event("TaskAdded", [("id", "number")])
    client.add_sender("createTask", function_name="makeTask", input=[("specificationHash", "ipfsHash")], event_handlers={"TaskAdded": None})

    node.on("contract_call", "0x2a")
    assert await client.getTaskCount.call() == {"count": 42}

    node.on("contract_send", {"txHash": "0x02", "status": 1, "logs": [{"address": CONTRACT, "event": "TaskAdded", "args": {"id": 43}}]})
    assert dict(await client.createTask.send({"specificationHash": content_hash(1)})) == {"id": 43}

    node.on("contract_call", {"error": {"code": -32000, "message": "reverted"}})
    with pytest.raises(CallFailedError) as ei:
        await client.getTaskCount.call()
    assert isinstance(ei.value.cause, RpcError)

    node.on("contract_send", {"txHash": "0x03", "status": 0, "logs": []})
    with pytest.raises(SendFailedError):
        await client.createTask.send({"specificationHash": content_hash(1)})
