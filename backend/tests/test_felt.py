"""Unit tests for Starknet felt helpers."""

import pytest

from medialane.services.blockchain.felt import (
    MASK_250,
    decode_short_string,
    decode_string_result,
    encode_short_string,
    get_selector_from_name,
    normalize_address,
    parse_felt,
    to_hex,
    u256_from_limbs,
    u256_to_limbs,
)


class TestSelectors:
    def test_transfer_event_selector(self):
        assert get_selector_from_name("Transfer") == int(
            "0x99cd8bde557814842a3121e8ddfd433a539b8c9f14bf31ebf108d12e6196e9", 16
        )

    def test_selector_fits_in_250_bits(self):
        for name in ("OrderCreated", "OrderFulfilled", "OrderCancelled", "get_order_details"):
            selector = get_selector_from_name(name)
            assert 0 < selector <= MASK_250

    def test_distinct_names_have_distinct_selectors(self):
        assert get_selector_from_name("token_uri") != get_selector_from_name("tokenURI")


class TestFeltParsing:
    def test_parse_hex_decimal_and_int(self):
        assert parse_felt("0x1f") == 31
        assert parse_felt("0X1F") == 31
        assert parse_felt("31") == 31
        assert parse_felt(31) == 31

    def test_parse_invalid_raises(self):
        with pytest.raises(ValueError):
            parse_felt("0xzz")

    def test_to_hex_is_minimal_lowercase(self):
        assert to_hex("0x000ABC") == "0xabc"

    def test_normalize_address_pads_to_64_hex_chars(self):
        address = normalize_address("0x49D36570D4E46F48E99674BD3FCC84644DDD6B96F7C741B1562B82F9E004DC7")
        assert address == "0x049d36570d4e46f48e99674bd3fcc84644ddd6b96f7c741b1562b82f9e004dc7"
        assert len(address) == 66


class TestU256:
    def test_from_limbs_uses_high_limb(self):
        assert u256_from_limbs("0x5", "0x0") == 5
        assert u256_from_limbs(0, 1) == 2**128
        assert u256_from_limbs(3, 2) == 3 + 2 * 2**128

    def test_to_limbs_splits_at_128_bits(self):
        assert u256_to_limbs(2**128 + 7) == (7, 1)
        assert u256_to_limbs(42) == (42, 0)


class TestStrings:
    def test_short_string_decoding(self):
        assert decode_short_string(encode_short_string("ERC721")) == "ERC721"
        assert decode_short_string(0) == ""

    def test_short_string_too_long_rejected(self):
        with pytest.raises(ValueError, match="too long"):
            encode_short_string("x" * 32)

    def test_byte_array_result(self, byte_array_felts):
        uri = "ipfs://QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG/1.json"
        felts = byte_array_felts(uri)
        assert felts[0] == 1  # one full 31-byte word
        assert decode_string_result(felts) == uri

    def test_short_byte_array_result(self, byte_array_felts):
        assert decode_string_result(byte_array_felts("ipfs://x")) == "ipfs://x"

    def test_felt_array_result(self):
        felts = [2, encode_short_string("https://example.com/"), encode_short_string("1.json")]
        assert decode_string_result(felts) == "https://example.com/1.json"

    def test_unrecognized_layout_rejected(self):
        with pytest.raises(ValueError):
            decode_string_result([5, 1])

    def test_empty_result_rejected(self):
        with pytest.raises(ValueError):
            decode_string_result([])
