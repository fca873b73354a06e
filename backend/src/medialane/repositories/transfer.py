"""Transfer repository."""

from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from medialane.core.timezone import utcnow
from medialane.models.transfer import Transfer


class TransferRepository:
    """Repository for the append-only Transfer log."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def insert_once(
        self,
        chain: str,
        contract_address: str,
        token_id: str,
        from_address: str,
        to_address: str,
        block_number: int,
        tx_hash: str,
        log_index: int,
    ) -> bool:
        """Append a transfer, ignoring an already-recorded duplicate.

        Uses INSERT ... ON CONFLICT DO NOTHING on the event's unique key, so a
        replayed block leaves the log unchanged.

        Returns:
            True if a row was inserted, False if it was a replay
        """
        stmt = insert(Transfer).values(
            id=uuid4(),
            chain=chain,
            contract_address=contract_address,
            token_id=token_id,
            from_address=from_address,
            to_address=to_address,
            block_number=block_number,
            tx_hash=tx_hash,
            log_index=log_index,
            created_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_nothing(
            index_elements=["chain", "contract_address", "token_id", "tx_hash", "log_index"]
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def list_for_token(
        self, chain: str, contract_address: str, token_id: str
    ) -> list[Transfer]:
        """Transfers of one token in chain order."""
        result = await self.session.execute(
            select(Transfer)
            .where(
                Transfer.chain == chain,  # type: ignore[arg-type]
                Transfer.contract_address == contract_address,  # type: ignore[arg-type]
                Transfer.token_id == token_id,  # type: ignore[arg-type]
            )
            .order_by(Transfer.block_number.asc(), Transfer.log_index.asc())  # type: ignore[union-attr, attr-defined]
        )
        return list(result.scalars().all())
