"""Collection repository."""

from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from medialane.core.timezone import utcnow
from medialane.models.collection import Collection


class CollectionRepository:
    """Repository for Collection entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get(self, chain: str, contract_address: str) -> Collection | None:
        """Retrieve collection by natural key."""
        result = await self.session.execute(
            select(Collection).where(
                Collection.chain == chain,  # type: ignore[arg-type]
                Collection.contract_address == contract_address,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def ensure(self, chain: str, contract_address: str, start_block: int) -> None:
        """Create the collection row if it does not exist yet.

        Must run before any Token insert for the same contract (foreign key).

        Args:
            chain: Chain identifier
            contract_address: Normalized NFT contract address
            start_block: Block where the collection was first seen
        """
        now = utcnow()
        stmt = insert(Collection).values(
            id=uuid4(),
            chain=chain,
            contract_address=contract_address,
            start_block=start_block,
            is_known=False,
            holder_count=0,
            total_supply=0,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["chain", "contract_address"])
        await self.session.execute(stmt)
        await self.session.flush()

    async def update_stats(
        self,
        chain: str,
        contract_address: str,
        holder_count: int,
        total_supply: int,
        floor_price: str | None,
        total_volume: str,
    ) -> int:
        """Overwrite aggregate statistics.

        Returns:
            Number of rows updated
        """
        result = await self.session.execute(
            update(Collection)
            .where(
                Collection.chain == chain,  # type: ignore[arg-type]
                Collection.contract_address == contract_address,  # type: ignore[arg-type]
            )
            .values(
                holder_count=holder_count,
                total_supply=total_supply,
                floor_price=floor_price,
                total_volume=total_volume,
                updated_at=utcnow(),
            )
        )
        await self.session.flush()
        return result.rowcount  # type: ignore[attr-defined]
