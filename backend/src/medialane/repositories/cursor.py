"""IndexerCursor repository.

Provides UPSERT access to the per-chain mirror cursor.
"""

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from medialane.core.timezone import utcnow
from medialane.models.cursor import IndexerCursor


class IndexerCursorRepository:
    """Repository for IndexerCursor rows (one per chain)."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get(self, chain: str) -> IndexerCursor | None:
        """Retrieve cursor row for a chain.

        Args:
            chain: Chain identifier (e.g., "STARKNET")

        Returns:
            IndexerCursor if one was ever saved, None otherwise
        """
        result = await self.session.execute(
            select(IndexerCursor).where(IndexerCursor.chain == chain)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def upsert(self, chain: str, last_block: int, continuation_token: str | None) -> None:
        """Set cursor position unconditionally (UPSERT).

        Args:
            chain: Chain identifier
            last_block: Highest fully-applied block
            continuation_token: Opaque node pagination token, if any
        """
        now = utcnow()
        stmt = insert(IndexerCursor).values(
            chain=chain,
            last_block=last_block,
            continuation_token=continuation_token,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["chain"],
            set_={
                "last_block": last_block,
                "continuation_token": continuation_token,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def advance(self, chain: str, last_block: int) -> bool:
        """Move cursor forward to last_block, never backward.

        Query explanation:
        - INSERT: First save for this chain
        - ON CONFLICT (chain) DO UPDATE ... WHERE last_block < excluded.last_block:
          only overwrite an older position

        Args:
            chain: Chain identifier
            last_block: Candidate new position

        Returns:
            True if the row was inserted or moved, False if it was already ahead
        """
        now = utcnow()
        stmt = insert(IndexerCursor).values(
            chain=chain,
            last_block=last_block,
            continuation_token=None,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["chain"],
            set_={
                "last_block": stmt.excluded.last_block,
                "continuation_token": None,
                "updated_at": now,
            },
            where=IndexerCursor.last_block < stmt.excluded.last_block,  # type: ignore[arg-type]
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount > 0  # type: ignore[attr-defined]
