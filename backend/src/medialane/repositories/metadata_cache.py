"""MetadataCache repository."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from medialane.models.metadata_cache import MetadataCache


class MetadataCacheRepository:
    """Repository for cached metadata documents keyed by token URI."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get(self, uri: str) -> MetadataCache | None:
        """Retrieve cache entry for a URI (fresh or stale)."""
        result = await self.session.execute(
            select(MetadataCache).where(MetadataCache.uri == uri)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def put(
        self,
        uri: str,
        content: dict,
        resolved_url: str | None,
        ttl_seconds: int,
        fetched_at: datetime,
    ) -> None:
        """Insert or refresh the cache entry for a URI (UPSERT)."""
        stmt = insert(MetadataCache).values(
            uri=uri,
            content=content,
            resolved_url=resolved_url,
            ttl_seconds=ttl_seconds,
            fetched_at=fetched_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["uri"],
            set_={
                "content": content,
                "resolved_url": resolved_url,
                "ttl_seconds": ttl_seconds,
                "fetched_at": fetched_at,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
