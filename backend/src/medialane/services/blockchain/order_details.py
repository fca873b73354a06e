"""Typed decoding of the marketplace get_order_details return value.

Felt layout:
    [0]      offerer
    [1..5]   offer: item_type, token, identifier, start_amount, end_amount
    [6..11]  consideration: item_type, token, identifier, start_amount, end_amount, recipient
    [12]     start_time
    [13]     end_time
    [14]     order_status variant (None, Created, Filled, Cancelled)
    [15]     fulfiller Option variant (0 = Some, followed by [16]; 1 = None)
"""

from dataclasses import dataclass
from enum import Enum

from medialane.services.blockchain.felt import decode_short_string, normalize_address
from medialane.services.exceptions import MalformedResponseError

NFT_ITEM_TYPES = frozenset({"ERC721", "ERC1155"})
U64_MAX = 2**64 - 1


class OnChainOrderStatus(str, Enum):
    """Order status enum as stored by the marketplace contract."""

    NONE = "None"
    CREATED = "Created"
    FILLED = "Filled"
    CANCELLED = "Cancelled"


_STATUS_VARIANTS = (
    OnChainOrderStatus.NONE,
    OnChainOrderStatus.CREATED,
    OnChainOrderStatus.FILLED,
    OnChainOrderStatus.CANCELLED,
)


@dataclass(frozen=True)
class OfferItem:
    item_type: str
    token: str
    identifier: str
    start_amount: str
    end_amount: str


@dataclass(frozen=True)
class ConsiderationItem:
    item_type: str
    token: str
    identifier: str
    start_amount: str
    end_amount: str
    recipient: str


@dataclass(frozen=True)
class OrderDetails:
    """On-chain order parameters."""

    offerer: str
    offer: OfferItem
    consideration: ConsiderationItem
    start_time: int
    end_time: int
    status: OnChainOrderStatus
    fulfiller: str | None

    @property
    def nft_contract(self) -> str | None:
        """Offered NFT contract, None when the offer is not an NFT."""
        return self.offer.token if self.offer.item_type in NFT_ITEM_TYPES else None

    @property
    def nft_token_id(self) -> str | None:
        return self.offer.identifier if self.nft_contract else None


def decode_order_details(felts: list[int]) -> OrderDetails:
    """Decode get_order_details felts into OrderDetails.

    Raises:
        MalformedResponseError: Too few felts, unknown enum variant or bad short string
    """
    if len(felts) < 16:
        raise MalformedResponseError(f"get_order_details returned {len(felts)} felts, expected 16+")

    try:
        offer = OfferItem(
            item_type=decode_short_string(felts[1]),
            token=normalize_address(felts[2]),
            identifier=str(felts[3]),
            start_amount=str(felts[4]),
            end_amount=str(felts[5]),
        )
        consideration = ConsiderationItem(
            item_type=decode_short_string(felts[6]),
            token=normalize_address(felts[7]),
            identifier=str(felts[8]),
            start_amount=str(felts[9]),
            end_amount=str(felts[10]),
            recipient=normalize_address(felts[11]),
        )
    except UnicodeDecodeError as e:
        raise MalformedResponseError(f"Invalid item type short string: {e}") from e

    if felts[12] > U64_MAX or felts[13] > U64_MAX:
        raise MalformedResponseError(f"Order times out of u64 range: {felts[12]}, {felts[13]}")

    status_index = felts[14]
    if status_index >= len(_STATUS_VARIANTS):
        raise MalformedResponseError(f"Unknown order_status variant {status_index}")

    option_variant = felts[15]
    if option_variant == 0:
        if len(felts) < 17:
            raise MalformedResponseError("fulfiller is Some but value is missing")
        fulfiller: str | None = normalize_address(felts[16])
    elif option_variant == 1:
        fulfiller = None
    else:
        raise MalformedResponseError(f"Unknown Option variant {option_variant}")

    return OrderDetails(
        offerer=normalize_address(felts[0]),
        offer=offer,
        consideration=consideration,
        start_time=felts[12],
        end_time=felts[13],
        status=_STATUS_VARIANTS[status_index],
        fulfiller=fulfiller,
    )
