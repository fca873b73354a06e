"""Webhook repositories.

Provides data access for subscribed endpoints (read-only here, managed by
the tenant service) and for delivery records written by fanout and delivery.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medialane.models.webhook import (
    Tenant,
    TenantStatus,
    WebhookDelivery,
    WebhookEndpoint,
    WebhookEndpointStatus,
)


class WebhookEndpointRepository:
    """Repository for WebhookEndpoint entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_by_id(self, endpoint_id: UUID) -> WebhookEndpoint | None:
        """Retrieve endpoint by ID."""
        result = await self.session.execute(
            select(WebhookEndpoint).where(WebhookEndpoint.id == endpoint_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def list_active_subscribers(self, event_type: str) -> list[WebhookEndpoint]:
        """ACTIVE endpoints of ACTIVE tenants subscribed to event_type.

        Subscription is a JSONB containment test on the events array.

        Args:
            event_type: WebhookEventType value (e.g., "ORDER_CREATED")

        Returns:
            List of matching endpoints
        """
        result = await self.session.execute(
            select(WebhookEndpoint)
            .join(Tenant, Tenant.id == WebhookEndpoint.tenant_id)  # type: ignore[arg-type]
            .where(
                WebhookEndpoint.status == WebhookEndpointStatus.ACTIVE,  # type: ignore[arg-type]
                Tenant.status == TenantStatus.ACTIVE,  # type: ignore[arg-type]
                WebhookEndpoint.events.contains([event_type]),  # type: ignore[attr-defined]
            )
            .order_by(WebhookEndpoint.created_at.asc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def add(self, endpoint: WebhookEndpoint) -> WebhookEndpoint:
        """Persist new endpoint to database."""
        self.session.add(endpoint)
        await self.session.flush()
        return endpoint


class WebhookDeliveryRepository:
    """Repository for WebhookDelivery entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, delivery: WebhookDelivery) -> WebhookDelivery:
        """Persist new delivery record to database."""
        self.session.add(delivery)
        await self.session.flush()
        return delivery

    async def get_by_id(self, delivery_id: UUID) -> WebhookDelivery | None:
        """Retrieve delivery by ID."""
        result = await self.session.execute(
            select(WebhookDelivery).where(WebhookDelivery.id == delivery_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def record_attempt(
        self,
        delivery_id: UUID,
        status_code: int | None,
        response_body: str | None,
        delivered_at: datetime | None = None,
    ) -> None:
        """Store the outcome of one delivery attempt.

        delivered_at is only written on success and never cleared.
        """
        values: dict = {"status_code": status_code, "response_body": response_body}
        if delivered_at is not None:
            values["delivered_at"] = delivered_at
        await self.session.execute(
            update(WebhookDelivery)
            .where(WebhookDelivery.id == delivery_id)  # type: ignore[arg-type]
            .values(**values)
        )
        await self.session.flush()

    async def list_for_endpoint(self, endpoint_id: UUID) -> list[WebhookDelivery]:
        """Deliveries of one endpoint, oldest first."""
        result = await self.session.execute(
            select(WebhookDelivery)
            .where(WebhookDelivery.endpoint_id == endpoint_id)  # type: ignore[arg-type]
            .order_by(WebhookDelivery.created_at.asc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())
