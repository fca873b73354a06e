"""Order repository.

Provides idempotent writes used by the chain mirror appliers and the
read projections used by collection statistics.
"""

from typing import Any
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from medialane.core.timezone import utcnow
from medialane.models.order import Order, OrderStatus

# Columns refreshed when an OrderCreated event is replayed. Status is never reset.
REPLAY_REFRESHED_FIELDS = (
    "offerer",
    "nft_contract",
    "nft_token_id",
    "price_raw",
    "price_formatted",
    "currency_symbol",
)


class OrderRepository:
    """Repository for Order entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_by_hash(self, chain: str, order_hash: str) -> Order | None:
        """Retrieve order by its natural key.

        Args:
            chain: Chain identifier
            order_hash: Order hash as 0x-prefixed lowercase hex

        Returns:
            Order if found, None otherwise
        """
        result = await self.session.execute(
            select(Order).where(
                Order.chain == chain,  # type: ignore[arg-type]
                Order.order_hash == order_hash,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def upsert_created(self, values: dict[str, Any]) -> None:
        """Insert a newly created order, or refresh display fields on replay.

        Query explanation:
        - INSERT: New order in ACTIVE status
        - ON CONFLICT (chain, order_hash): Order already mirrored
        - DO UPDATE: Only offerer / NFT / price fields, status untouched

        Args:
            values: Column values for the new row (chain, order_hash, item fields, ...)
        """
        now = utcnow()
        row = {
            "id": uuid4(),
            "status": OrderStatus.ACTIVE,
            **values,
            "created_at": now,
            "updated_at": now,
        }
        stmt = insert(Order).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["chain", "order_hash"],
            set_={
                **{field: values.get(field) for field in REPLAY_REFRESHED_FIELDS},
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def mark_fulfilled(
        self, chain: str, order_hash: str, fulfiller: str, tx_hash: str
    ) -> int:
        """Set order FULFILLED by hash.

        Returns:
            Number of rows updated (0 when the order was never mirrored)
        """
        result = await self.session.execute(
            update(Order)
            .where(
                Order.chain == chain,  # type: ignore[arg-type]
                Order.order_hash == order_hash,  # type: ignore[arg-type]
            )
            .values(
                status=OrderStatus.FULFILLED,
                fulfiller=fulfiller,
                fulfilled_tx_hash=tx_hash,
                updated_at=utcnow(),
            )
        )
        await self.session.flush()
        return result.rowcount  # type: ignore[attr-defined]

    async def mark_cancelled(self, chain: str, order_hash: str, tx_hash: str) -> int:
        """Set order CANCELLED by hash.

        Returns:
            Number of rows updated (0 when the order was never mirrored)
        """
        result = await self.session.execute(
            update(Order)
            .where(
                Order.chain == chain,  # type: ignore[arg-type]
                Order.order_hash == order_hash,  # type: ignore[arg-type]
            )
            .values(
                status=OrderStatus.CANCELLED,
                cancelled_tx_hash=tx_hash,
                updated_at=utcnow(),
            )
        )
        await self.session.flush()
        return result.rowcount  # type: ignore[attr-defined]

    async def get_active_listing_prices(
        self, chain: str, nft_contract: str, now_ts: int
    ) -> list[tuple[str, str]]:
        """Price projection of ACTIVE, non-expired orders for a collection.

        Args:
            chain: Chain identifier
            nft_contract: Collection contract address
            now_ts: Current unix timestamp in seconds

        Returns:
            List of (price_raw, consideration_token) tuples
        """
        result = await self.session.execute(
            select(Order.price_raw, Order.consideration_token).where(
                Order.chain == chain,  # type: ignore[arg-type]
                Order.nft_contract == nft_contract,  # type: ignore[arg-type]
                Order.status == OrderStatus.ACTIVE,  # type: ignore[arg-type]
                Order.end_time > now_ts,  # type: ignore[arg-type]
                Order.price_raw.is_not(None),  # type: ignore[union-attr]
            )
        )
        return [(row[0], row[1]) for row in result.all()]

    async def get_fulfilled_prices(self, chain: str, nft_contract: str) -> list[str]:
        """Raw prices of FULFILLED orders for a collection."""
        result = await self.session.execute(
            select(Order.price_raw).where(
                Order.chain == chain,  # type: ignore[arg-type]
                Order.nft_contract == nft_contract,  # type: ignore[arg-type]
                Order.status == OrderStatus.FULFILLED,  # type: ignore[arg-type]
                Order.price_raw.is_not(None),  # type: ignore[union-attr]
            )
        )
        return list(result.scalars().all())
