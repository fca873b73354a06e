"""Raw event -> DomainEvent decoding.

Pure functions, no I/O. Dispatch is on the first key, compared against the
selectors of the closed EventKind set computed once at import.
"""

from collections.abc import Iterable

import structlog

from medialane.services.blockchain.event_fetcher import RawEvent
from medialane.services.blockchain.felt import (
    normalize_address,
    parse_felt,
    to_hex,
    u256_from_limbs,
)
from medialane.services.mirror.events import (
    DomainEvent,
    EventKind,
    OrderCancelled,
    OrderCreated,
    OrderFulfilled,
    Transfer,
    chain_order,
)

logger = structlog.get_logger(__name__)

SELECTORS: dict[int, EventKind] = {kind.selector: kind for kind in EventKind}


def decode(raw: RawEvent) -> DomainEvent | None:
    """Decode one raw event.

    Returns:
        The domain event, or None when the selector is unknown or the keys do
        not match the expected layout (logged as a warning)
    """
    try:
        keys = [parse_felt(key) for key in raw.keys]
        if not keys:
            logger.warning("event.decode.no_keys", tx_hash=raw.transaction_hash)
            return None

        kind = SELECTORS.get(keys[0])

        if kind is EventKind.ORDER_CREATED:
            return OrderCreated(
                order_hash=to_hex(keys[1]),
                offerer=normalize_address(keys[2]),
                block_number=raw.block_number,
                tx_hash=raw.transaction_hash,
                log_index=raw.log_index,
            )

        if kind is EventKind.ORDER_FULFILLED:
            return OrderFulfilled(
                order_hash=to_hex(keys[1]),
                offerer=normalize_address(keys[2]),
                fulfiller=normalize_address(keys[3]),
                block_number=raw.block_number,
                tx_hash=raw.transaction_hash,
                log_index=raw.log_index,
            )

        if kind is EventKind.ORDER_CANCELLED:
            return OrderCancelled(
                order_hash=to_hex(keys[1]),
                offerer=normalize_address(keys[2]),
                block_number=raw.block_number,
                tx_hash=raw.transaction_hash,
                log_index=raw.log_index,
            )

        if kind is EventKind.TRANSFER:
            # keys = [selector, from, to, token_id.low, token_id.high]
            if len(keys) < 5:
                logger.warning(
                    "event.decode.short_transfer",
                    tx_hash=raw.transaction_hash,
                    key_count=len(keys),
                )
                return None
            return Transfer(
                contract_address=normalize_address(raw.from_address),
                from_address=normalize_address(keys[1]),
                to_address=normalize_address(keys[2]),
                token_id=str(u256_from_limbs(keys[3], keys[4])),
                block_number=raw.block_number,
                tx_hash=raw.transaction_hash,
                log_index=raw.log_index,
            )

        logger.warning(
            "event.decode.unknown_selector",
            selector=hex(keys[0]),
            tx_hash=raw.transaction_hash,
        )
        return None

    except Exception as e:
        logger.warning(
            "event.decode.failed",
            tx_hash=raw.transaction_hash,
            block_number=raw.block_number,
            error=str(e),
            error_type=type(e).__name__,
        )
        return None


def decode_events(raw_events: Iterable[RawEvent]) -> list[DomainEvent]:
    """Decode a batch, drop undecodable events and order by (block_number, log_index)."""
    decoded = [event for event in (decode(raw) for raw in raw_events) if event is not None]
    decoded.sort(key=chain_order)
    return decoded
