"""Webhook entities - tenants, subscribed endpoints, and delivery records."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from medialane.core.timezone import utcnow


class WebhookEventType(str, Enum):
    """Event types an endpoint can subscribe to."""

    ORDER_CREATED = "ORDER_CREATED"
    ORDER_FULFILLED = "ORDER_FULFILLED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    TRANSFER = "TRANSFER"


class TenantStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class WebhookEndpointStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"


class Tenant(SQLModel, table=True):
    """API tenant owning webhook endpoints. Managed outside this service."""

    __tablename__ = "tenants"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=255)
    status: TenantStatus = Field(default=TenantStatus.ACTIVE)
    created_at: datetime = Field(default_factory=utcnow)


class WebhookEndpoint(SQLModel, table=True):
    """Tenant-registered URL receiving signed event notifications."""

    __tablename__ = "webhook_endpoints"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(foreign_key="tenants.id", index=True)
    url: str
    secret: str = Field(max_length=255)
    events: list = Field(default_factory=list, sa_column=Column(JSONB, nullable=False))
    status: WebhookEndpointStatus = Field(default=WebhookEndpointStatus.ACTIVE, index=True)
    created_at: datetime = Field(default_factory=utcnow)


class WebhookDelivery(SQLModel, table=True):
    """One delivery attempt record, 1:1 with a WEBHOOK_DELIVER job."""

    __tablename__ = "webhook_deliveries"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    endpoint_id: UUID = Field(foreign_key="webhook_endpoints.id", index=True)
    event_type: WebhookEventType
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    job_id: Optional[UUID] = Field(default=None, foreign_key="jobs.id")
    status_code: Optional[int] = Field(default=None)
    response_body: Optional[str] = Field(default=None)
    delivered_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
