"""Starknet JSON-RPC client.

Narrow async client over httpx for the three node methods the mirror and
the job handlers need. Constructed explicitly by the host process and
injected into its consumers.
"""

import itertools
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from medialane.services.blockchain.felt import get_selector_from_name, normalize_address, parse_felt
from medialane.services.exceptions import (
    MalformedResponseError,
    RpcContractError,
    RpcError,
    RpcTimeoutError,
    RpcUnavailableError,
)

logger = structlog.get_logger(__name__)

# CONTRACT_NOT_FOUND, ENTRYPOINT_NOT_FOUND, CONTRACT_ERROR
CONTRACT_ERROR_CODES = frozenset({20, 21, 40})


@dataclass
class EventsPage:
    """One page of starknet_getEvents results."""

    events: list[dict[str, Any]] = field(default_factory=list)
    continuation_token: str | None = None


class StarknetRpcClient:
    """JSON-RPC 2.0 client for a Starknet node."""

    def __init__(
        self,
        rpc_url: str,
        marketplace_address: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize RPC client.

        Args:
            rpc_url: Node JSON-RPC endpoint (from STARKNET_RPC_URL env var)
            marketplace_address: Marketplace contract queried for order details
            timeout: Per-request timeout in seconds
            client: Optional shared httpx client (tests pass one with a MockTransport)
        """
        self.rpc_url = rpc_url
        self.marketplace_address = normalize_address(marketplace_address)
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, params: dict[str, Any]) -> Any:
        """Send one JSON-RPC request and return its result.

        Raises:
            RpcTimeoutError: Request exceeded timeout
            RpcUnavailableError: Network failure, 429, 5xx, or a body that is not JSON-RPC
            RpcContractError: Contract-level JSON-RPC error (permanent)
            RpcError: Any other JSON-RPC error (transient)
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

        try:
            response = await self._client.post(self.rpc_url, json=payload, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise RpcTimeoutError(f"{method} timed out after {self.timeout}s: {str(e)}")
        except httpx.HTTPError as e:
            raise RpcUnavailableError(f"{method} network error: {str(e)}")

        if response.status_code == 429 or response.status_code >= 500:
            raise RpcUnavailableError(
                f"{method} failed ({response.status_code}): {response.text[:200]}"
            )
        if response.status_code >= 400:
            raise RpcError(f"{method} rejected ({response.status_code}): {response.text[:200]}")

        try:
            body = response.json()
        except ValueError as e:
            raise RpcUnavailableError(f"{method} returned non-JSON body: {response.text[:200]}") from e

        if not isinstance(body, dict):
            raise RpcUnavailableError(f"{method} returned unexpected body type")

        error = body.get("error")
        if error:
            code = error.get("code")
            message = error.get("message", "unknown error")
            data = error.get("data")
            detail = f"{method} error {code}: {message}" + (f" ({data})" if data else "")
            if code in CONTRACT_ERROR_CODES:
                raise RpcContractError(detail, code=code)
            raise RpcError(detail, code=code)

        if "result" not in body:
            raise RpcUnavailableError(f"{method} response has neither result nor error")

        return body["result"]

    async def get_latest_block(self) -> int:
        """Latest accepted block number."""
        result = await self._request("starknet_blockNumber", {})
        return int(result)

    async def get_events(
        self,
        address: str,
        from_block: int,
        to_block: int,
        keys: list[list[str]],
        chunk_size: int = 1000,
        continuation_token: str | None = None,
    ) -> EventsPage:
        """Fetch one page of events emitted by address in [from_block, to_block].

        Args:
            address: Emitting contract address
            from_block: First block (inclusive)
            to_block: Last block (inclusive)
            keys: Key filter, e.g. [[selector_a, selector_b]] matches either in position 0
            chunk_size: Maximum events per page
            continuation_token: Token from the previous page, None for the first

        Returns:
            EventsPage with raw event dicts and the next continuation token
        """
        event_filter: dict[str, Any] = {
            "from_block": {"block_number": from_block},
            "to_block": {"block_number": to_block},
            "address": address,
            "keys": keys,
            "chunk_size": chunk_size,
        }
        if continuation_token:
            event_filter["continuation_token"] = continuation_token

        result = await self._request("starknet_getEvents", {"filter": event_filter})

        if not isinstance(result, dict) or not isinstance(result.get("events", []), list):
            raise MalformedResponseError("starknet_getEvents result has no events list")

        return EventsPage(
            events=result.get("events", []),
            continuation_token=result.get("continuation_token") or None,
        )

    async def call(
        self, contract_address: str, entry_point: str, calldata: list[int]
    ) -> list[int]:
        """Call a view function at the latest block.

        Args:
            contract_address: Target contract
            entry_point: Function name (selector computed here)
            calldata: Serialized arguments as felts

        Returns:
            Result felts as ints
        """
        request = {
            "contract_address": normalize_address(contract_address),
            "entry_point_selector": hex(get_selector_from_name(entry_point)),
            "calldata": [hex(value) for value in calldata],
        }
        result = await self._request("starknet_call", {"request": request, "block_id": "latest"})

        if not isinstance(result, list):
            raise MalformedResponseError(f"starknet_call {entry_point} returned non-list result")

        try:
            return [parse_felt(value) for value in result]
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"starknet_call {entry_point} returned bad felt: {e}")

    async def get_order_details(self, order_hash: int | str) -> list[int]:
        """Raw get_order_details felts for an order hash on the marketplace contract."""
        return await self.call(self.marketplace_address, "get_order_details", [parse_felt(order_hash)])
