"""Tests for the Pinata pinning client and the METADATA_PIN handler."""

import json

import httpx
import pytest

from medialane.services.exceptions import (
    IPFSAuthError,
    IPFSNetworkError,
    IPFSRateLimitError,
    IPFSValidationError,
    PermanentError,
    TransientError,
)
from medialane.services.ipfs.pinata_client import PinataClient
from medialane.services.jobs.metadata_pin import MetadataPinHandler

CID = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"


def make_client(responder) -> tuple[PinataClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request):
        requests.append(request)
        return responder(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PinataClient(jwt_token="test-jwt", client=http), requests


@pytest.mark.asyncio
async def test_pin_by_cid_request():
    client, requests = make_client(
        lambda r: httpx.Response(200, json={"id": "req-1", "ipfsHash": CID, "status": "prechecking"})
    )

    result = await client.pin_by_cid(CID)

    assert result["status"] == "prechecking"
    request = requests[0]
    assert str(request.url) == "https://api.pinata.cloud/pinning/pinByHash"
    assert request.headers["authorization"] == "Bearer test-jwt"
    assert json.loads(request.content) == {
        "hashToPin": CID,
        "pinataMetadata": {"name": f"medialane-{CID}"},
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code,error_type,base_type",
    [
        (429, IPFSRateLimitError, TransientError),
        (503, TransientError, TransientError),
        (401, IPFSAuthError, PermanentError),
        (403, IPFSAuthError, PermanentError),
        (400, IPFSValidationError, PermanentError),
    ],
)
async def test_error_classification(status_code, error_type, base_type):
    client, _ = make_client(lambda r: httpx.Response(status_code, text="nope"))

    with pytest.raises(error_type) as exc_info:
        await client.pin_by_cid(CID)

    assert isinstance(exc_info.value, base_type)


@pytest.mark.asyncio
async def test_network_error_is_transient():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = make_client(refuse)

    with pytest.raises(IPFSNetworkError):
        await client.pin_by_cid(CID)


def test_gateway_url():
    client = PinataClient(jwt_token="test-jwt", gateway_domain="medialane.mypinata.cloud")

    assert client.get_gateway_url(CID) == f"https://medialane.mypinata.cloud/ipfs/{CID}"


@pytest.mark.asyncio
async def test_pin_handler():
    client, requests = make_client(lambda r: httpx.Response(200, json={"status": "prechecking"}))
    handler = MetadataPinHandler(client)

    await handler.handle({"cid": CID})
    await handler.handle({})

    assert len(requests) == 1
