"""Decoded chain events applied by the mirror."""

from dataclasses import dataclass
from enum import Enum

from medialane.services.blockchain.felt import get_selector_from_name


class EventKind(str, Enum):
    """Event names as declared by the contracts (selector = starknet_keccak(name))."""

    ORDER_CREATED = "OrderCreated"
    ORDER_FULFILLED = "OrderFulfilled"
    ORDER_CANCELLED = "OrderCancelled"
    TRANSFER = "Transfer"

    @property
    def selector(self) -> int:
        return _SELECTORS[self]


# Hashed once at import
_SELECTORS: dict[EventKind, int] = {kind: get_selector_from_name(kind.value) for kind in EventKind}

MARKETPLACE_EVENT_KINDS = (
    EventKind.ORDER_CREATED,
    EventKind.ORDER_FULFILLED,
    EventKind.ORDER_CANCELLED,
)


@dataclass(frozen=True)
class OrderCreated:
    order_hash: str
    offerer: str
    block_number: int
    tx_hash: str
    log_index: int

    kind = EventKind.ORDER_CREATED


@dataclass(frozen=True)
class OrderFulfilled:
    order_hash: str
    offerer: str
    fulfiller: str
    block_number: int
    tx_hash: str
    log_index: int

    kind = EventKind.ORDER_FULFILLED


@dataclass(frozen=True)
class OrderCancelled:
    order_hash: str
    offerer: str
    block_number: int
    tx_hash: str
    log_index: int

    kind = EventKind.ORDER_CANCELLED


@dataclass(frozen=True)
class Transfer:
    contract_address: str
    from_address: str
    to_address: str
    token_id: str
    block_number: int
    tx_hash: str
    log_index: int

    kind = EventKind.TRANSFER


DomainEvent = OrderCreated | OrderFulfilled | OrderCancelled | Transfer


def chain_order(event: DomainEvent) -> tuple[int, int]:
    """Sort key giving on-chain emission order."""
    return event.block_number, event.log_index
