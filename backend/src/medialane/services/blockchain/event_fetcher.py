"""Paginated event fetching for one contract and block range."""

from dataclasses import dataclass

import structlog

from medialane.services.blockchain.starknet_rpc import StarknetRpcClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RawEvent:
    """Event as emitted by the node, plus its ordinal within its block.

    log_index counts events of one contract stream inside one block, so it does
    not depend on how the block range was batched.
    """

    from_address: str
    keys: tuple[str, ...]
    data: tuple[str, ...]
    block_number: int
    transaction_hash: str
    log_index: int


class EventFetcher:
    """Fetches all events matching a selector set, following continuation tokens."""

    def __init__(self, rpc: StarknetRpcClient, chunk_size: int = 1000, max_pages: int = 100):
        """Initialize fetcher.

        Args:
            rpc: Starknet JSON-RPC client
            chunk_size: Events requested per page
            max_pages: Hard ceiling on pages per call
        """
        self.rpc = rpc
        self.chunk_size = chunk_size
        self.max_pages = max_pages

    async def fetch_events(
        self, contract: str, from_block: int, to_block: int, selectors: list[int]
    ) -> list[RawEvent]:
        """Fetch events of `contract` in [from_block, to_block] whose first key is a selector.

        Args:
            contract: Emitting contract address
            from_block: First block (inclusive)
            to_block: Last block (inclusive)
            selectors: Accepted event selectors

        Returns:
            Events in node order with log_index assigned
        """
        keys = [[hex(selector) for selector in selectors]]
        raw_events: list[dict] = []
        continuation_token: str | None = None
        pages = 0

        while True:
            page = await self.rpc.get_events(
                address=contract,
                from_block=from_block,
                to_block=to_block,
                keys=keys,
                chunk_size=self.chunk_size,
                continuation_token=continuation_token,
            )
            raw_events.extend(page.events)
            pages += 1
            continuation_token = page.continuation_token

            if not continuation_token:
                break

            if pages >= self.max_pages:
                logger.warning(
                    "events.page_ceiling_reached",
                    contract=contract,
                    from_block=from_block,
                    to_block=to_block,
                    pages=pages,
                    events=len(raw_events),
                )
                break

        logger.debug(
            "events.fetched",
            contract=contract,
            from_block=from_block,
            to_block=to_block,
            pages=pages,
            events=len(raw_events),
        )
        return self._assign_log_indexes(raw_events)

    def _assign_log_indexes(self, raw_events: list[dict]) -> list[RawEvent]:
        per_block: dict[int, int] = {}
        events: list[RawEvent] = []

        for raw in raw_events:
            block_number = raw.get("block_number")
            if block_number is None:
                # Pending events carry no block number
                logger.warning("events.skipped_pending", tx_hash=raw.get("transaction_hash"))
                continue

            block_number = int(block_number)
            log_index = per_block.get(block_number, 0)
            per_block[block_number] = log_index + 1

            events.append(
                RawEvent(
                    from_address=raw.get("from_address", ""),
                    keys=tuple(raw.get("keys", [])),
                    data=tuple(raw.get("data", [])),
                    block_number=block_number,
                    transaction_hash=raw.get("transaction_hash", ""),
                    log_index=log_index,
                )
            )

        return events
