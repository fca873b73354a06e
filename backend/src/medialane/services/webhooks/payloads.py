"""Webhook event types and payloads for decoded chain events."""

from typing import Any

from medialane.models.webhook import WebhookEventType
from medialane.services.mirror.events import (
    DomainEvent,
    OrderCancelled,
    OrderCreated,
    OrderFulfilled,
    Transfer,
)


def build_webhook_payload(event: DomainEvent) -> tuple[WebhookEventType, dict[str, Any]]:
    """Map a domain event to its webhook event type and JSON payload.

    Block numbers are sent as strings so clients never lose precision.
    """
    base: dict[str, Any] = {
        "blockNumber": str(event.block_number),
        "txHash": event.tx_hash,
        "logIndex": event.log_index,
    }

    if isinstance(event, OrderCreated):
        return WebhookEventType.ORDER_CREATED, {
            **base,
            "orderHash": event.order_hash,
            "offerer": event.offerer,
        }
    if isinstance(event, OrderFulfilled):
        return WebhookEventType.ORDER_FULFILLED, {
            **base,
            "orderHash": event.order_hash,
            "offerer": event.offerer,
            "fulfiller": event.fulfiller,
        }
    if isinstance(event, OrderCancelled):
        return WebhookEventType.ORDER_CANCELLED, {
            **base,
            "orderHash": event.order_hash,
            "offerer": event.offerer,
        }
    if isinstance(event, Transfer):
        return WebhookEventType.TRANSFER, {
            **base,
            "contractAddress": event.contract_address,
            "from": event.from_address,
            "to": event.to_address,
            "tokenId": event.token_id,
        }
    raise TypeError(f"Unsupported event type: {type(event).__name__}")
