"""Chain mirror worker.

Each tick indexes one bounded block range:

1. ComputeRange: from = cursor + 1, to = min(from + batch - 1, latest block)
2. Fetch: marketplace order events and collection Transfer events in parallel
3. Decode: drop undecodable events, order by (block_number, log_index)
4. ApplyAtomically: apply every event and move the cursor in one transaction
5. EnqueueDerived: METADATA_FETCH and STATS_UPDATE jobs for touched contracts
6. FanoutWebhooks: one delivery per subscribed endpoint and event

A failure before step 4 commits leaves the cursor where it was, so the next
tick retries the same range. Every write in step 4 is idempotent.
"""

import asyncio
from dataclasses import dataclass

import structlog

from medialane.models.job import JobType
from medialane.services.blockchain.event_fetcher import EventFetcher, RawEvent
from medialane.services.blockchain.felt import normalize_address
from medialane.services.blockchain.starknet_rpc import StarknetRpcClient
from medialane.services.jobs.queue import JobQueue
from medialane.services.mirror.appliers import EventApplier
from medialane.services.mirror.cursor_store import Cursor, CursorStore
from medialane.services.mirror.decoder import decode_events
from medialane.services.mirror.events import MARKETPLACE_EVENT_KINDS, DomainEvent, EventKind
from medialane.services.webhooks.fanout import WebhookFanout
from medialane.services.webhooks.payloads import build_webhook_payload

logger = structlog.get_logger(__name__)

ERROR_BACKOFF_SECONDS = 5


@dataclass
class RangeResult:
    from_block: int
    to_block: int
    events: int
    touched_contracts: list[str]
    metadata_jobs: int
    webhook_deliveries: int


class MirrorTick:
    """Runs the mirror pipeline over block ranges."""

    def __init__(
        self,
        uow_factory,
        cursor_store: CursorStore,
        rpc: StarknetRpcClient,
        fetcher: EventFetcher,
        applier: EventApplier,
        queue: JobQueue,
        fanout: WebhookFanout,
        chain: str,
        marketplace_address: str,
        collection_address: str,
        block_batch_size: int = 500,
        metadata_batch_size: int = 200,
    ):
        """Initialize mirror.

        Args:
            uow_factory: Factory returned by create_uow_factory
            cursor_store: Durable cursor
            rpc: Starknet client (latest block)
            fetcher: Paginated event fetcher
            applier: Idempotent event appliers
            queue: Job queue for derived work
            fanout: Webhook fanout
            chain: Chain identifier
            marketplace_address: Contract emitting order events
            collection_address: Contract emitting Transfer events
            block_batch_size: Maximum blocks per tick
            metadata_batch_size: Maximum METADATA_FETCH jobs enqueued per range
        """
        self.uow_factory = uow_factory
        self.cursor_store = cursor_store
        self.rpc = rpc
        self.fetcher = fetcher
        self.applier = applier
        self.queue = queue
        self.fanout = fanout
        self.chain = chain
        self.marketplace_address = normalize_address(marketplace_address)
        self.collection_address = normalize_address(collection_address)
        self.block_batch_size = block_batch_size
        self.metadata_batch_size = metadata_batch_size

    def compute_range(self, cursor: Cursor, latest_block: int) -> tuple[int, int] | None:
        """Next block range to index, or None when caught up."""
        from_block = cursor.last_block + 1
        to_block = min(from_block + self.block_batch_size - 1, latest_block)
        if from_block > to_block:
            return None
        return from_block, to_block

    async def fetch(self, from_block: int, to_block: int) -> list[RawEvent]:
        """Fetch both event streams concurrently and merge them."""
        marketplace_events, transfer_events = await asyncio.gather(
            self.fetcher.fetch_events(
                self.marketplace_address,
                from_block,
                to_block,
                [kind.selector for kind in MARKETPLACE_EVENT_KINDS],
            ),
            self.fetcher.fetch_events(
                self.collection_address,
                from_block,
                to_block,
                [EventKind.TRANSFER.selector],
            ),
        )
        return [*marketplace_events, *transfer_events]

    async def apply_atomically(self, events: list[DomainEvent], to_block: int) -> list[str]:
        """Apply events and advance the cursor in a single transaction.

        The cursor only moves forward, so replaying an older range (backfill
        or a concurrent tick) never rewinds it.

        Args:
            events: Decoded events in chain order
            to_block: Last block of the range

        Returns:
            NFT contracts touched by the events, in first-seen order
        """
        touched: dict[str, None] = {}

        async with await self.uow_factory() as uow:
            for event in events:
                contract = await self.applier.apply(event, uow)
                if contract:
                    touched[contract] = None

            await self.cursor_store.advance(self.chain, to_block, uow=uow)

        return list(touched)

    async def enqueue_derived(self, touched_contracts: list[str]) -> int:
        """Enqueue metadata fetches for new tokens and stats updates per contract.

        Returns:
            Number of METADATA_FETCH jobs enqueued
        """
        if not touched_contracts:
            return 0

        async with await self.uow_factory() as uow:
            pending = await uow.tokens.list_pending_without_uri(
                self.chain, touched_contracts, limit=self.metadata_batch_size
            )
            for token in pending:
                await self.queue.enqueue(
                    JobType.METADATA_FETCH.value,
                    {
                        "chain": self.chain,
                        "contractAddress": token.contract_address,
                        "tokenId": token.token_id,
                    },
                    uow=uow,
                )
            for contract in touched_contracts:
                await self.queue.enqueue(
                    JobType.STATS_UPDATE.value,
                    {"chain": self.chain, "contractAddress": contract},
                    uow=uow,
                )

        return len(pending)

    async def fanout_webhooks(self, events: list[DomainEvent]) -> int:
        """Schedule webhook deliveries for every event. Failures are logged only."""
        scheduled = 0
        for event in events:
            try:
                event_type, payload = build_webhook_payload(event)
                scheduled += await self.fanout.fanout(event_type, payload)
            except Exception as e:
                logger.error(
                    "mirror.fanout.failed",
                    event=event.kind.value,
                    tx_hash=event.tx_hash,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return scheduled

    async def process_range(
        self,
        from_block: int,
        to_block: int,
        *,
        fanout: bool = True,
    ) -> RangeResult:
        """Fetch, decode and apply one block range, then schedule derived work.

        Shared by the polling tick and the backfill CLI.
        """
        raw_events = await self.fetch(from_block, to_block)
        events = decode_events(raw_events)

        touched = await self.apply_atomically(events, to_block)

        try:
            metadata_jobs = await self.enqueue_derived(touched)
        except Exception as e:
            metadata_jobs = 0
            logger.error(
                "mirror.enqueue_derived.failed",
                from_block=from_block,
                to_block=to_block,
                contracts=touched,
                error=str(e),
                error_type=type(e).__name__,
            )

        deliveries = await self.fanout_webhooks(events) if fanout else 0

        return RangeResult(
            from_block=from_block,
            to_block=to_block,
            events=len(events),
            touched_contracts=touched,
            metadata_jobs=metadata_jobs,
            webhook_deliveries=deliveries,
        )

    async def run_tick(self) -> RangeResult | None:
        """Index the next block range.

        Returns:
            Result of the processed range, or None when already caught up
        """
        cursor = await self.cursor_store.load(self.chain)
        latest_block = await self.rpc.get_latest_block()

        block_range = self.compute_range(cursor, latest_block)
        if block_range is None:
            logger.debug(
                "mirror.tick.caught_up", last_block=cursor.last_block, latest_block=latest_block
            )
            return None

        from_block, to_block = block_range
        logger.info(
            "mirror.tick.started",
            from_block=from_block,
            to_block=to_block,
            latest_block=latest_block,
        )

        result = await self.process_range(from_block, to_block)

        logger.info(
            "mirror.tick.complete",
            from_block=from_block,
            to_block=to_block,
            events=result.events,
            contracts=len(result.touched_contracts),
            metadata_jobs=result.metadata_jobs,
            webhook_deliveries=result.webhook_deliveries,
        )
        return result


async def run_mirror_worker(mirror: MirrorTick, poll_interval: float) -> None:
    """Main mirror loop.

    Runs a tick every poll_interval seconds. A failed tick is logged and the
    same range is retried on the next iteration.

    Args:
        mirror: Configured mirror pipeline
        poll_interval: Seconds between ticks
    """
    logger.info(
        "worker.started",
        worker_type="mirror",
        chain=mirror.chain,
        poll_interval=poll_interval,
        batch_size=mirror.block_batch_size,
    )

    try:
        while True:
            try:
                await mirror.run_tick()
                await asyncio.sleep(poll_interval)

            except asyncio.CancelledError:
                raise

            except Exception as e:
                logger.error(
                    "worker.error",
                    worker_type="mirror",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )
                await asyncio.sleep(ERROR_BACKOFF_SECONDS)

    except asyncio.CancelledError:
        logger.info("worker.stopped", worker_type="mirror")
        raise
