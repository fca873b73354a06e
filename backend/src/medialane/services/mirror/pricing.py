"""Known settlement currencies and display price formatting."""

from dataclasses import dataclass

from medialane.services.blockchain.felt import normalize_address


@dataclass(frozen=True)
class SupportedToken:
    symbol: str
    address: str
    decimals: int


SUPPORTED_TOKENS = (
    SupportedToken(
        symbol="USDC",
        address="0x053c91253bc9682c04929ca02ed00b3e423f6710d2ee7e0d5ebb06f3ecf368a8",
        decimals=6,
    ),
    SupportedToken(
        symbol="USDT",
        address="0x068f5c6a61780768455de69077e07e89787839bf8166decfbf92b645209c0fb8",
        decimals=6,
    ),
    SupportedToken(
        symbol="ETH",
        address="0x049d36570d4e46f48e99674bd3fcc84644ddd6b96f7c741b1562b82f9e004dc7",
        decimals=18,
    ),
    SupportedToken(
        symbol="STRK",
        address="0x04718f5a0fc34cc1af16a1cdee98ffb20c31f5cd61d6ab07201858f4287c938d",
        decimals=18,
    ),
)

_BY_ADDRESS = {token.address: token for token in SUPPORTED_TOKENS}


def get_token_by_address(address: str | None) -> SupportedToken | None:
    """Look up a supported currency by contract address (any felt notation)."""
    if not address:
        return None
    try:
        return _BY_ADDRESS.get(normalize_address(address))
    except ValueError:
        return None


def format_amount(raw: str, decimals: int) -> str:
    """Format a raw integer amount as "whole.fraction" with exactly `decimals` digits.

    format_amount("1000000", 6) -> "1.000000". Unparseable input is returned as-is.
    """
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return raw
    if decimals == 0:
        return str(value)
    whole, remainder = divmod(value, 10**decimals)
    return f"{whole}.{str(remainder).rjust(decimals, '0')}"


def display_price(currency_address: str | None, raw: str) -> tuple[str, str | None]:
    """(formatted price, currency symbol) for a raw amount in a given currency.

    Unknown currencies keep the raw amount and have no symbol.
    """
    token = get_token_by_address(currency_address)
    if token is None:
        return raw, None
    return format_amount(raw, token.decimals), token.symbol
