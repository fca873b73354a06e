"""MetadataCache entity - resolved token metadata keyed by URI."""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from medialane.core.timezone import utcnow


class MetadataCache(SQLModel, table=True):
    """Cached metadata document for a token URI."""

    __tablename__ = "metadata_cache"  # type: ignore[assignment]

    uri: str = Field(primary_key=True)
    resolved_url: Optional[str] = Field(default=None)
    content: dict = Field(sa_column=Column(JSON, nullable=False))
    fetched_at: datetime = Field(default_factory=utcnow)
    ttl_seconds: int = Field(default=86400)

    def is_fresh(self, now: datetime | None = None) -> bool:
        """Whether the entry is still within its TTL."""
        now = now or utcnow()
        return self.fetched_at + timedelta(seconds=self.ttl_seconds) > now
