"""Webhook fanout: one delivery record and one WEBHOOK_DELIVER job per subscriber."""

from typing import Any
from uuid import uuid4

import structlog

from medialane.models.job import JobType
from medialane.models.webhook import WebhookDelivery, WebhookEventType
from medialane.services.jobs.queue import JobQueue

logger = structlog.get_logger(__name__)


class WebhookFanout:
    """Creates deliveries for every endpoint subscribed to an event type."""

    def __init__(self, uow_factory, queue: JobQueue, max_attempts: int = 5):
        """Initialize fanout.

        Args:
            uow_factory: Factory returned by create_uow_factory
            queue: Job queue receiving WEBHOOK_DELIVER jobs
            max_attempts: Attempt budget of each delivery job
        """
        self.uow_factory = uow_factory
        self.queue = queue
        self.max_attempts = max_attempts

    async def fanout(self, event_type: WebhookEventType, payload: dict[str, Any]) -> int:
        """Schedule delivery of payload to all ACTIVE subscribers of ACTIVE tenants.

        Each endpoint gets its delivery row and job in one transaction. A failure
        for one endpoint is logged and does not affect the others.

        Returns:
            Number of deliveries scheduled
        """
        async with await self.uow_factory() as uow:
            endpoints = await uow.webhook_endpoints.list_active_subscribers(event_type.value)
            endpoint_ids = [endpoint.id for endpoint in endpoints]

        if not endpoint_ids:
            return 0

        logger.debug("webhook.fanout", event_type=event_type.value, endpoints=len(endpoint_ids))

        scheduled = 0
        for endpoint_id in endpoint_ids:
            try:
                # Delivery id is known up front so the job payload can reference it
                delivery_id = uuid4()
                async with await self.uow_factory() as uow:
                    job_id = await self.queue.enqueue(
                        JobType.WEBHOOK_DELIVER.value,
                        {"deliveryId": str(delivery_id)},
                        max_attempts=self.max_attempts,
                        uow=uow,
                    )
                    await uow.webhook_deliveries.add(
                        WebhookDelivery(
                            id=delivery_id,
                            endpoint_id=endpoint_id,
                            event_type=event_type,
                            payload=payload,
                            job_id=job_id,
                        )
                    )
                scheduled += 1
            except Exception as e:
                logger.error(
                    "webhook.fanout.failed",
                    endpoint_id=str(endpoint_id),
                    event_type=event_type.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        return scheduled
