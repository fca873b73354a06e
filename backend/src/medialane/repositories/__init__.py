"""Repository layer for the Medialane backend.

Provides data access abstractions for all domain entities.
No base classes - each repository is self-contained.
"""

from medialane.repositories.collection import CollectionRepository
from medialane.repositories.cursor import IndexerCursorRepository
from medialane.repositories.job import JobRepository
from medialane.repositories.metadata_cache import MetadataCacheRepository
from medialane.repositories.order import OrderRepository
from medialane.repositories.token import TokenRepository
from medialane.repositories.transfer import TransferRepository
from medialane.repositories.webhook import WebhookDeliveryRepository, WebhookEndpointRepository

__all__ = [
    "IndexerCursorRepository",
    "OrderRepository",
    "CollectionRepository",
    "TokenRepository",
    "TransferRepository",
    "JobRepository",
    "WebhookEndpointRepository",
    "WebhookDeliveryRepository",
    "MetadataCacheRepository",
]
