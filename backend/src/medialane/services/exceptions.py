"""Service error hierarchy for chain, IPFS, metadata and webhook operations.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- TransientError: Retryable errors (network, rate limits, timeouts)
- PermanentError: Non-retryable errors (authentication, validation, reverts)
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Transient error that may succeed on retry.

    Examples:
    - Network timeouts
    - Rate limit exceeded (429)
    - Service unavailable (503)
    - Webhook receiver returned non-2xx
    """

    pass


class PermanentError(ServiceError):
    """Permanent error that will not succeed on retry.

    Examples:
    - Authentication failures (401, 403)
    - Invalid request parameters (400)
    - Contract call reverted
    - Malformed node response
    """

    pass


# Starknet RPC errors
class RpcError(TransientError):
    """JSON-RPC error reported by the node."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class RpcTimeoutError(RpcError):
    """RPC request exceeded its timeout."""

    pass


class RpcUnavailableError(RpcError):
    """Node unreachable, rate limited (429) or failing (5xx)."""

    pass


class RpcContractError(PermanentError):
    """Contract call failed (missing contract, entry point or revert)."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class MalformedResponseError(PermanentError):
    """Node or contract returned data that does not match the expected layout."""

    pass


# IPFS-specific errors
class IPFSRateLimitError(TransientError):
    """Rate limit exceeded (429)."""

    pass


class IPFSNetworkError(TransientError):
    """Network timeout or service unavailable."""

    pass


class IPFSAuthError(PermanentError):
    """Authentication failure (401, 403)."""

    pass


class IPFSValidationError(PermanentError):
    """Bad request (400)."""

    pass


# Metadata errors
class MetadataTimeoutError(TransientError):
    """Metadata resolution did not finish before its deadline."""

    pass


# Webhook errors
class WebhookDeliveryError(TransientError):
    """Webhook receiver did not accept the delivery."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
