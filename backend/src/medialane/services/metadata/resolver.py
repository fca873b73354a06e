"""Token metadata resolution with IPFS gateway fallback and a hard deadline."""

import asyncio
import base64
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable
from urllib.parse import unquote_to_bytes

import httpx
import structlog

from medialane.core.timezone import utcnow

logger = structlog.get_logger(__name__)

IPFS_TTL_SECONDS = 7 * 24 * 3600
HTTP_TTL_SECONDS = 24 * 3600


class ResolutionStatus(str, Enum):
    """Outcome of one resolution attempt."""

    RESOLVED = "RESOLVED"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"


@dataclass
class MetadataResolution:
    status: ResolutionStatus
    metadata: dict[str, Any] | None = None
    resolved_url: str | None = None
    error: str | None = None


def is_ipfs_uri(uri: str) -> bool:
    return uri.startswith("ipfs://")


def extract_cid(uri: str) -> str | None:
    """CID of an ipfs:// URI or an HTTP gateway URL, None for anything else."""
    if is_ipfs_uri(uri):
        path = uri[len("ipfs://") :]
        if path.startswith("ipfs/"):
            path = path[len("ipfs/") :]
        return path.split("/")[0] or None
    marker = "/ipfs/"
    if marker in uri:
        cid = uri.split(marker, 1)[1].split("/")[0].split("?")[0]
        return cid or None
    return None


def gateway_urls(uri: str, gateways: list[str]) -> list[str]:
    """HTTP URLs to try for an ipfs:// URI, one per gateway in order."""
    path = uri[len("ipfs://") :]
    if path.startswith("ipfs/"):
        path = path[len("ipfs/") :]
    return [f"{gateway.rstrip('/')}/{path}" for gateway in gateways]


def decode_data_uri(uri: str) -> dict[str, Any]:
    """Decode a data: URI carrying JSON (base64 or percent-encoded).

    Raises:
        ValueError: Not a JSON object, or undecodable
    """
    header, sep, data = uri.partition(",")
    if not sep:
        raise ValueError("data: URI without payload")
    if header.endswith(";base64"):
        raw = base64.b64decode(data)
    else:
        raw = unquote_to_bytes(data)
    document = json.loads(raw.decode("utf-8"))
    if not isinstance(document, dict):
        raise ValueError("Metadata document is not a JSON object")
    return document


class MetadataResolver:
    """Resolves token URIs to metadata JSON, caching successful results."""

    def __init__(
        self,
        uow_factory,
        client: httpx.AsyncClient,
        gateways: list[str],
        request_timeout: float = 10.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize resolver.

        Args:
            uow_factory: Factory returned by create_uow_factory (metadata cache access)
            client: Shared httpx client
            gateways: IPFS gateway base URLs in priority order
            request_timeout: Timeout of each individual HTTP request in seconds
            clock: Returns naive UTC "now"
        """
        self.uow_factory = uow_factory
        self.client = client
        self.gateways = gateways
        self.request_timeout = request_timeout
        self.clock = clock

    async def resolve(self, uri: str, deadline_seconds: float) -> MetadataResolution:
        """Resolve uri within deadline_seconds.

        Returns:
            RESOLVED with the document, TIMED_OUT when the deadline passed (or every
            request timed out), FAILED when the URI cannot be resolved
        """
        try:
            return await asyncio.wait_for(self._resolve(uri), timeout=deadline_seconds)
        except TimeoutError:
            logger.warning("metadata.resolve.deadline_exceeded", uri=uri, deadline=deadline_seconds)
            return MetadataResolution(
                status=ResolutionStatus.TIMED_OUT,
                error=f"Deadline of {deadline_seconds}s exceeded",
            )

    async def _resolve(self, uri: str) -> MetadataResolution:
        cached = await self._cached(uri)
        if cached is not None:
            return cached

        if uri.startswith("data:"):
            try:
                document = decode_data_uri(uri)
            except ValueError as e:
                return MetadataResolution(status=ResolutionStatus.FAILED, error=str(e))
            return MetadataResolution(status=ResolutionStatus.RESOLVED, metadata=document)

        if is_ipfs_uri(uri):
            candidates = gateway_urls(uri, self.gateways)
            ttl_seconds = IPFS_TTL_SECONDS
        elif uri.startswith(("http://", "https://")):
            candidates = [uri]
            ttl_seconds = HTTP_TTL_SECONDS
        else:
            return MetadataResolution(
                status=ResolutionStatus.FAILED, error=f"Unsupported URI scheme: {uri[:64]}"
            )

        errors: list[str] = []
        timeouts = 0

        for url in candidates:
            try:
                response = await self.client.get(
                    url,
                    timeout=self.request_timeout,
                    headers={"Accept": "application/json"},
                    follow_redirects=True,
                )
            except httpx.TimeoutException:
                timeouts += 1
                errors.append(f"{url}: timeout")
                logger.debug("metadata.fetch.timeout", url=url)
                continue
            except httpx.HTTPError as e:
                errors.append(f"{url}: {type(e).__name__}")
                logger.debug("metadata.fetch.network_error", url=url, error=str(e))
                continue

            if response.status_code != 200:
                errors.append(f"{url}: HTTP {response.status_code}")
                logger.debug("metadata.fetch.bad_status", url=url, status_code=response.status_code)
                continue

            try:
                document = response.json()
            except ValueError:
                errors.append(f"{url}: invalid JSON")
                continue

            if not isinstance(document, dict):
                errors.append(f"{url}: not a JSON object")
                continue

            await self._store(uri, url, document, ttl_seconds)
            return MetadataResolution(
                status=ResolutionStatus.RESOLVED, metadata=document, resolved_url=url
            )

        status = ResolutionStatus.TIMED_OUT if timeouts == len(candidates) else ResolutionStatus.FAILED
        return MetadataResolution(status=status, error="; ".join(errors)[:1000])

    async def _cached(self, uri: str) -> MetadataResolution | None:
        async with await self.uow_factory() as uow:
            entry = await uow.metadata_cache.get(uri)
        if entry is None or not entry.is_fresh(self.clock()):
            return None
        logger.debug("metadata.cache.hit", uri=uri)
        return MetadataResolution(
            status=ResolutionStatus.RESOLVED, metadata=entry.content, resolved_url=entry.resolved_url
        )

    async def _store(self, uri: str, url: str, document: dict, ttl_seconds: int) -> None:
        async with await self.uow_factory() as uow:
            await uow.metadata_cache.put(
                uri,
                content=document,
                resolved_url=url,
                ttl_seconds=ttl_seconds,
                fetched_at=self.clock(),
            )
