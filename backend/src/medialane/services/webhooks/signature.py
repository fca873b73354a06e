"""HMAC signatures for outgoing webhook deliveries.

Receivers verify `x-signature: sha256=<hex>` by recomputing HMAC-SHA256 over
the exact request body bytes with their endpoint secret.
"""

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def sign_payload(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of body keyed with the endpoint secret.

    Args:
        body: Exact serialized request body
        secret: Endpoint signing secret

    Returns:
        Lowercase hex digest (without the "sha256=" prefix)
    """
    return hmac.new(key=secret.encode("utf-8"), msg=body, digestmod=hashlib.sha256).hexdigest()


def signature_header(body: bytes, secret: str) -> str:
    """Value of the x-signature header for body."""
    return f"{SIGNATURE_PREFIX}{sign_payload(body, secret)}"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check a delivery signature using constant-time comparison.

    Accepts the digest with or without the "sha256=" prefix, in either hex case.

    Args:
        body: Raw request body bytes as received (NOT re-serialized JSON)
        signature: x-signature header value
        secret: Endpoint signing secret

    Returns:
        True if the signature matches body and secret
    """
    if signature.startswith(SIGNATURE_PREFIX):
        signature = signature[len(SIGNATURE_PREFIX) :]

    expected = sign_payload(body, secret)

    # Constant-time comparison; never use == for signatures
    return hmac.compare_digest(expected.lower(), signature.lower())
