"""Durable mirror cursor."""

from dataclasses import dataclass

import structlog

from medialane.uow import UnitOfWork

logger = structlog.get_logger(__name__)


@dataclass
class Cursor:
    last_block: int
    continuation_token: str | None = None


class CursorStore:
    """Loads and persists the per-chain mirror cursor."""

    def __init__(self, uow_factory, start_block: int):
        """Initialize store.

        Args:
            uow_factory: Factory returned by create_uow_factory
            start_block: Position reported for a chain that was never indexed
                (the first indexed block is start_block + 1)
        """
        self.uow_factory = uow_factory
        self.start_block = start_block

    async def load(self, chain: str) -> Cursor:
        """Persisted cursor, or the configured start block if none exists."""
        async with await self.uow_factory() as uow:
            row = await uow.cursors.get(chain)
        if row is None:
            return Cursor(last_block=self.start_block)
        return Cursor(last_block=row.last_block, continuation_token=row.continuation_token)

    async def save(self, cursor: Cursor, chain: str, uow: UnitOfWork | None = None) -> None:
        """Persist cursor (UPSERT).

        With `uow` the write joins that transaction and becomes visible only
        when the caller commits. Without it the write commits on its own.
        """
        if uow is not None:
            await uow.cursors.upsert(chain, cursor.last_block, cursor.continuation_token)
            return
        async with await self.uow_factory() as own_uow:
            await own_uow.cursors.upsert(chain, cursor.last_block, cursor.continuation_token)

    async def advance(self, chain: str, to_block: int, uow: UnitOfWork | None = None) -> bool:
        """Move cursor to to_block only if it is ahead of the stored position.

        Returns:
            True if the cursor moved
        """
        if uow is not None:
            return await uow.cursors.advance(chain, to_block)
        async with await self.uow_factory() as own_uow:
            return await own_uow.cursors.advance(chain, to_block)

    async def reset(self, chain: str, to_block: int) -> None:
        """Administrative reset. Overwrites the cursor even if it moves backward."""
        async with await self.uow_factory() as uow:
            previous = await uow.cursors.get(chain)
            await uow.cursors.upsert(chain, to_block, None)
        logger.warning(
            "cursor.reset",
            chain=chain,
            previous_block=previous.last_block if previous else None,
            last_block=to_block,
        )
