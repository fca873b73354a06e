"""Tests for the Starknet JSON-RPC client using httpx.MockTransport."""

import json

import httpx
import pytest

from medialane.services.blockchain.felt import get_selector_from_name, normalize_address
from medialane.services.blockchain.starknet_rpc import StarknetRpcClient
from medialane.services.exceptions import (
    MalformedResponseError,
    RpcContractError,
    RpcError,
    RpcTimeoutError,
    RpcUnavailableError,
    TransientError,
)

RPC_URL = "https://starknet.example/rpc"
MARKETPLACE = "0x59deafbbafbf7051c315cf75a94b03c5547892bc0c6dfa36d7ac7290d4cc33a"


def make_client(handler) -> StarknetRpcClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StarknetRpcClient(RPC_URL, MARKETPLACE, timeout=5.0, client=http)


def rpc_result(request: httpx.Request, result) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


@pytest.mark.asyncio
async def test_get_latest_block():
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return rpc_result(request, 812345)

    client = make_client(handler)

    assert await client.get_latest_block() == 812345
    assert requests[0]["method"] == "starknet_blockNumber"
    assert requests[0]["jsonrpc"] == "2.0"


@pytest.mark.asyncio
async def test_call_serializes_request_and_parses_felts():
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return rpc_result(request, ["0x1", "0x2a"])

    client = make_client(handler)

    result = await client.call("0xabc", "token_uri", [5, 0])

    assert result == [1, 42]
    params = requests[0]["params"]
    assert requests[0]["method"] == "starknet_call"
    assert params["block_id"] == "latest"
    assert params["request"]["contract_address"] == normalize_address("0xabc")
    assert params["request"]["entry_point_selector"] == hex(get_selector_from_name("token_uri"))
    assert params["request"]["calldata"] == ["0x5", "0x0"]


@pytest.mark.asyncio
async def test_get_order_details_calls_marketplace():
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return rpc_result(request, ["0x1"] * 16)

    client = make_client(handler)

    await client.get_order_details("0xabc")

    request = requests[0]["params"]["request"]
    assert request["contract_address"] == normalize_address(MARKETPLACE)
    assert request["calldata"] == ["0xabc"]


@pytest.mark.asyncio
async def test_get_events_passes_filter_and_token():
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return rpc_result(
            request,
            {"events": [{"block_number": 10, "keys": ["0x1"]}], "continuation_token": "next"},
        )

    client = make_client(handler)

    page = await client.get_events("0xabc", 10, 20, [["0x1"]], chunk_size=50, continuation_token="tok")

    event_filter = requests[0]["params"]["filter"]
    assert event_filter["from_block"] == {"block_number": 10}
    assert event_filter["to_block"] == {"block_number": 20}
    assert event_filter["chunk_size"] == 50
    assert event_filter["continuation_token"] == "tok"
    assert page.continuation_token == "next"
    assert len(page.events) == 1


@pytest.mark.asyncio
async def test_contract_error_is_permanent():
    def handler(request):
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": 40, "message": "Contract error"}},
        )

    client = make_client(handler)

    with pytest.raises(RpcContractError) as exc_info:
        await client.call("0xabc", "token_uri", [1, 0])
    assert exc_info.value.code == 40


@pytest.mark.asyncio
async def test_other_rpc_error_is_transient():
    def handler(request):
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": 24, "message": "Block not found"}},
        )

    client = make_client(handler)

    with pytest.raises(RpcError) as exc_info:
        await client.get_latest_block()
    assert isinstance(exc_info.value, TransientError)
    assert not isinstance(exc_info.value, RpcContractError)


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [429, 503])
async def test_rate_limit_and_server_errors_are_unavailable(status_code):
    client = make_client(lambda request: httpx.Response(status_code, text="busy"))

    with pytest.raises(RpcUnavailableError):
        await client.get_latest_block()


@pytest.mark.asyncio
async def test_timeout_maps_to_rpc_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler)

    with pytest.raises(RpcTimeoutError):
        await client.get_latest_block()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>502 Bad Gateway</html>"),
        httpx.Response(200, json=[1, 2]),
        httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}),
    ],
)
async def test_body_that_is_not_json_rpc_is_transient(response):
    """A proxy error page must be retried, never treated as a permanent contract failure."""
    client = make_client(lambda request: response)

    with pytest.raises(RpcUnavailableError) as exc_info:
        await client.get_order_details("0x1")

    assert isinstance(exc_info.value, TransientError)


@pytest.mark.asyncio
async def test_non_list_call_result_is_malformed():
    client = make_client(lambda request: rpc_result(request, {"unexpected": True}))

    with pytest.raises(MalformedResponseError):
        await client.call(MARKETPLACE, "token_uri", [1, 0])
