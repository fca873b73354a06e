"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from medialane.models.collection import Collection
from medialane.models.cursor import IndexerCursor
from medialane.models.job import Job, JobStatus, JobType
from medialane.models.metadata_cache import MetadataCache
from medialane.models.order import Order, OrderStatus
from medialane.models.token import MetadataStatus, Token
from medialane.models.transfer import Transfer
from medialane.models.webhook import (
    Tenant,
    TenantStatus,
    WebhookDelivery,
    WebhookEndpoint,
    WebhookEndpointStatus,
    WebhookEventType,
)

__all__ = [
    "IndexerCursor",
    "Order",
    "OrderStatus",
    "Collection",
    "Token",
    "MetadataStatus",
    "Transfer",
    "Job",
    "JobStatus",
    "JobType",
    "Tenant",
    "TenantStatus",
    "WebhookEndpoint",
    "WebhookEndpointStatus",
    "WebhookDelivery",
    "WebhookEventType",
    "MetadataCache",
]
