"""Unit tests for outgoing webhook signatures.

Tests the HMAC-SHA256 signing and verification used by webhook receivers
to authenticate deliveries.
"""

import hashlib
import hmac

import pytest

from medialane.services.webhooks.signature import (
    sign_payload,
    signature_header,
    verify_signature,
)


class TestWebhookSignature:
    """Test suite for HMAC signature signing and verification."""

    @pytest.fixture
    def secret(self) -> str:
        """Endpoint signing secret for tests."""
        return "whsec_test_secret"

    @pytest.fixture
    def sample_body(self) -> bytes:
        """Sample delivery body as raw bytes."""
        return b'{"id":"d-1","event":"ORDER_CREATED","data":{"orderHash":"0xabc"}}'

    @pytest.fixture
    def expected_digest(self, sample_body: bytes, secret: str) -> str:
        """Independently computed HMAC for the sample body."""
        return hmac.new(key=secret.encode("utf-8"), msg=sample_body, digestmod=hashlib.sha256).hexdigest()

    def test_sign_matches_hmac_sha256(self, sample_body: bytes, secret: str, expected_digest: str):
        """Test that signing is plain hex HMAC-SHA256 over the body."""
        assert sign_payload(sample_body, secret) == expected_digest

    def test_header_has_sha256_prefix(self, sample_body: bytes, secret: str, expected_digest: str):
        """Test that the header value carries the sha256= prefix."""
        assert signature_header(sample_body, secret) == f"sha256={expected_digest}"

    def test_valid_signature_acceptance(self, sample_body: bytes, secret: str):
        """Test that a signature produced by signature_header verifies."""
        header = signature_header(sample_body, secret)

        assert verify_signature(sample_body, header, secret) is True

    def test_signature_without_prefix_accepted(
        self, sample_body: bytes, secret: str, expected_digest: str
    ):
        """Test that a bare hex digest is accepted."""
        assert verify_signature(sample_body, expected_digest, secret) is True

    def test_uppercase_hex_accepted(self, sample_body: bytes, secret: str, expected_digest: str):
        """Test that hex case does not matter."""
        assert verify_signature(sample_body, "sha256=" + expected_digest.upper(), secret) is True

    def test_invalid_signature_rejection(self, sample_body: bytes, secret: str):
        """Test that invalid signatures are rejected."""
        assert verify_signature(sample_body, "sha256=" + "0" * 64, secret) is False

    def test_tampered_payload_rejection(self, sample_body: bytes, secret: str):
        """Test that modifying the body invalidates the signature."""
        header = signature_header(sample_body, secret)
        tampered = sample_body.replace(b"0xabc", b"0xabd")

        assert verify_signature(tampered, header, secret) is False

    def test_wrong_secret_rejection(self, sample_body: bytes, secret: str):
        """Test that a signature made with another secret is rejected."""
        header = signature_header(sample_body, "other_secret")

        assert verify_signature(sample_body, header, secret) is False

    def test_empty_signature_rejection(self, sample_body: bytes, secret: str):
        """Test that an empty signature is rejected."""
        assert verify_signature(sample_body, "", secret) is False
