"""Starknet felt helpers: selectors, addresses, u256 limbs and short strings."""

from eth_utils import keccak

MASK_250 = (1 << 250) - 1
U128 = 1 << 128
ZERO_ADDRESS = "0x" + "0" * 64


def get_selector_from_name(name: str) -> int:
    """Starknet entry point / event selector: keccak256(name) truncated to 250 bits."""
    return int.from_bytes(keccak(text=name), "big") & MASK_250


def parse_felt(value: int | str) -> int:
    """Parse a felt given as int, 0x-hex string or decimal string."""
    if isinstance(value, int):
        return value
    text = value.strip()
    if text[:2].lower() == "0x":
        return int(text, 16)
    return int(text, 10)


def to_hex(value: int | str) -> str:
    """Minimal lowercase 0x-hex form of a felt (e.g., order hashes, selectors)."""
    return hex(parse_felt(value))


def normalize_address(value: int | str) -> str:
    """Normalize a contract address to 0x + 64 lowercase hex characters."""
    return "0x" + format(parse_felt(value), "064x")


def u256_from_limbs(low: int | str, high: int | str) -> int:
    """Rebuild a u256 from its (low, high) 128-bit limbs."""
    return parse_felt(low) + parse_felt(high) * U128


def u256_to_limbs(value: int | str) -> tuple[int, int]:
    """Split a u256 into (low, high) 128-bit limbs for calldata."""
    number = parse_felt(value)
    return number & (U128 - 1), number >> 128


def decode_short_string(value: int | str) -> str:
    """Decode a Cairo short string (up to 31 ASCII bytes packed in one felt)."""
    number = parse_felt(value)
    if number == 0:
        return ""
    raw = number.to_bytes((number.bit_length() + 7) // 8, "big")
    return raw.decode("ascii")


def encode_short_string(text: str) -> int:
    """Pack an ASCII string of at most 31 characters into a felt."""
    raw = text.encode("ascii")
    if len(raw) > 31:
        raise ValueError(f"Short string too long ({len(raw)} > 31): {text!r}")
    return int.from_bytes(raw, "big")


def decode_string_result(felts: list[int]) -> str:
    """Decode a string returned by a contract call.

    Accepts the two encodings token URI getters use in practice:
    - ByteArray: [n_full_words, word_1..word_n, pending_word, pending_len]
    - Array<felt252>: [len, short_string_1..short_string_len]

    Raises:
        ValueError: If the felts match neither layout
    """
    if not felts:
        raise ValueError("Empty string result")

    head = felts[0]

    if len(felts) == head + 3 and felts[-1] < 31:
        chunks = [word.to_bytes(31, "big") for word in felts[1 : head + 1]]
        pending_word, pending_len = felts[head + 1], felts[head + 2]
        if pending_len:
            chunks.append(pending_word.to_bytes(pending_len, "big"))
        return b"".join(chunks).decode("utf-8")

    if len(felts) == head + 1:
        return "".join(decode_short_string(f) for f in felts[1:])

    raise ValueError(f"Unrecognized string layout ({len(felts)} felts, head={head})")
