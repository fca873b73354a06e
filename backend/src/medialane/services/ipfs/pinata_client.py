"""Pinata IPFS client for pinning existing content by CID."""

import httpx
import structlog

from medialane.services.exceptions import (
    IPFSAuthError,
    IPFSNetworkError,
    IPFSRateLimitError,
    IPFSValidationError,
    TransientError,
)

logger = structlog.get_logger(__name__)


class PinataClient:
    """IPFS pinning client using the Pinata pinning service."""

    def __init__(
        self,
        jwt_token: str,
        gateway_domain: str = "gateway.pinata.cloud",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Pinata client.

        Args:
            jwt_token: Pinata API JWT token (from PINATA_JWT env var)
            gateway_domain: Gateway domain for URL generation (default: public gateway)
            timeout: Request timeout in seconds
            client: Optional shared httpx client
        """
        self.jwt_token = jwt_token
        self.gateway_domain = gateway_domain
        self.timeout = timeout
        self.base_url = "https://api.pinata.cloud"
        self.headers = {
            "Authorization": f"Bearer {jwt_token}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def pin_by_cid(self, cid: str, name: str | None = None) -> dict:
        """Ask Pinata to fetch and persistently pin content that is already on IPFS.

        Args:
            cid: IPFS CID to pin
            name: Label shown in the Pinata dashboard (default: "medialane-<cid>")

        Returns:
            Pinata pin request record (id, ipfsHash, status, ...)

        Raises:
            TransientError: Network timeout, rate limit (429), service unavailable (5xx)
            PermanentError: Invalid API key (401), forbidden (403), bad request (400)
        """
        payload = {
            "hashToPin": cid,
            "pinataMetadata": {"name": name or f"medialane-{cid}"},
        }

        try:
            response = await self._client.post(
                f"{self.base_url}/pinning/pinByHash",
                headers=self.headers,
                json=payload,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise IPFSNetworkError(f"Request timeout after {self.timeout}s: {str(e)}")
        except httpx.HTTPError as e:
            raise IPFSNetworkError(f"Network error: {str(e)}")

        # Error classification
        if response.status_code == 429:
            raise IPFSRateLimitError(f"Rate limit exceeded: {response.text}")
        elif response.status_code >= 500:
            raise TransientError(f"Service unavailable ({response.status_code}): {response.text}")
        elif response.status_code == 401:
            raise IPFSAuthError(
                "Unauthorized: Invalid API key. "
                "Check PINATA_JWT configuration in .env file. "
                "Verify JWT token is active at https://app.pinata.cloud/developers/api-keys"
            )
        elif response.status_code == 403:
            raise IPFSAuthError(
                "Forbidden: Access denied. "
                "Check PINATA_JWT permissions (requires pinByHash access)."
            )
        elif response.status_code == 400:
            raise IPFSValidationError(f"Bad request: {response.text}")
        elif response.status_code >= 300:
            raise IPFSValidationError(f"Unexpected response ({response.status_code}): {response.text}")

        result = response.json()
        logger.info("ipfs.pin.requested", cid=cid, status=result.get("status"))
        return result

    def get_gateway_url(self, cid: str) -> str:
        """Convert CID to gateway URL for browser access.

        Args:
            cid: IPFS CID

        Returns:
            Gateway URL (e.g., "https://gateway.pinata.cloud/ipfs/<CID>")
        """
        return f"https://{self.gateway_domain}/ipfs/{cid}"
