"""WEBHOOK_DELIVER job handler: signed POST of one delivery to its endpoint."""

import json
from uuid import UUID

import httpx
import structlog

from medialane.core.timezone import utcnow
from medialane.models.webhook import WebhookEndpointStatus
from medialane.services.exceptions import WebhookDeliveryError
from medialane.services.webhooks.signature import signature_header

logger = structlog.get_logger(__name__)


class WebhookDeliverHandler:
    """Delivers a WebhookDelivery and records the receiver's answer."""

    def __init__(
        self,
        uow_factory,
        client: httpx.AsyncClient,
        timeout: float = 10.0,
        max_response_bytes: int = 2000,
    ):
        """Initialize handler.

        Args:
            uow_factory: Factory returned by create_uow_factory
            client: Shared httpx client
            timeout: Request timeout in seconds
            max_response_bytes: Stored response body limit
        """
        self.uow_factory = uow_factory
        self.client = client
        self.timeout = timeout
        self.max_response_bytes = max_response_bytes

    async def handle(self, payload: dict) -> None:
        """Deliver payload["deliveryId"].

        Missing deliveries and disabled endpoints are skipped without error.

        Raises:
            WebhookDeliveryError: Non-2xx answer or network failure (retried by the queue)
        """
        try:
            delivery_id = UUID(str(payload.get("deliveryId")))
        except ValueError:
            logger.warning("webhook.deliver.invalid_payload", payload=payload)
            return

        async with await self.uow_factory() as uow:
            delivery = await uow.webhook_deliveries.get_by_id(delivery_id)
            endpoint = (
                await uow.webhook_endpoints.get_by_id(delivery.endpoint_id) if delivery else None
            )

        if delivery is None or endpoint is None:
            logger.warning("webhook.deliver.not_found", delivery_id=str(delivery_id))
            return

        if endpoint.status == WebhookEndpointStatus.DISABLED:
            logger.info(
                "webhook.deliver.endpoint_disabled",
                delivery_id=str(delivery_id),
                endpoint_id=str(endpoint.id),
            )
            return

        event_type = delivery.event_type.value
        body = json.dumps(
            {"id": str(delivery.id), "event": event_type, "data": delivery.payload},
            separators=(",", ":"),
        ).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "x-event-type": event_type,
            "x-signature": signature_header(body, endpoint.secret),
            "x-delivery-id": str(delivery.id),
        }

        try:
            response = await self.client.post(
                endpoint.url, content=body, headers=headers, timeout=self.timeout
            )
        except httpx.HTTPError as e:
            error = f"{type(e).__name__}: {str(e)}"
            await self._record(delivery_id, None, error[: self.max_response_bytes])
            logger.warning(
                "webhook.deliver.network_error",
                delivery_id=str(delivery_id),
                url=endpoint.url,
                error=error,
            )
            raise WebhookDeliveryError(f"Delivery to {endpoint.url} failed: {error}") from e

        response_body = response.content[: self.max_response_bytes].decode(
            "utf-8", errors="ignore"
        )

        if response.is_success:
            await self._record(
                delivery_id, response.status_code, response_body, delivered_at=utcnow()
            )
            logger.info(
                "webhook.deliver.succeeded",
                delivery_id=str(delivery_id),
                status_code=response.status_code,
            )
            return

        await self._record(delivery_id, response.status_code, response_body)
        logger.warning(
            "webhook.deliver.rejected",
            delivery_id=str(delivery_id),
            url=endpoint.url,
            status_code=response.status_code,
        )
        raise WebhookDeliveryError(
            f"Endpoint returned {response.status_code}", status_code=response.status_code
        )

    async def _record(
        self,
        delivery_id: UUID,
        status_code: int | None,
        response_body: str | None,
        delivered_at=None,
    ) -> None:
        async with await self.uow_factory() as uow:
            await uow.webhook_deliveries.record_attempt(
                delivery_id, status_code, response_body, delivered_at=delivered_at
            )
