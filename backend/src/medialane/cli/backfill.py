"""CLI command for re-indexing a historical block range.

Usage:
    python -m medialane.cli.backfill [OPTIONS]

Examples:
    # Everything from the marketplace deployment block to the chain head
    python -m medialane.cli.backfill --from-block 6204232

    # Specific block range with a smaller batch
    python -m medialane.cli.backfill --from-block 6204232 --to-block 6300000 --batch-size 500

    # Also notify webhook subscribers about the replayed events
    python -m medialane.cli.backfill --from-block 6204232 --with-webhooks

Runs the same apply pipeline as the mirror worker. Re-applying blocks that
were already indexed is harmless, and the cursor only moves when a batch ends
beyond its stored position.
"""

import asyncio
import sys
import time
from argparse import ArgumentParser, Namespace

import structlog

from medialane.core import timezone  # noqa: F401
from medialane.core.config import Settings, configure_logging
from medialane.core.database import setup_db_session
from medialane.services.blockchain.event_fetcher import EventFetcher
from medialane.services.blockchain.starknet_rpc import StarknetRpcClient
from medialane.services.jobs.queue import JobQueue
from medialane.services.mirror.appliers import EventApplier
from medialane.services.mirror.cursor_store import CursorStore
from medialane.services.webhooks.fanout import WebhookFanout
from medialane.uow import create_uow_factory
from medialane.workers.mirror_worker import MirrorTick

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(description="Re-index a historical block range of the marketplace")

    parser.add_argument(
        "--from-block",
        type=int,
        help="Starting block number (default: INDEXER_START_BLOCK)",
    )

    parser.add_argument(
        "--to-block",
        default="latest",
        help='Ending block number or "latest" (default: latest)',
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        help="Blocks per batch (default: BACKFILL_BATCH_SIZE)",
    )

    parser.add_argument(
        "--with-webhooks",
        action="store_true",
        help="Fan out webhook deliveries for backfilled events",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


def iter_batches(from_block: int, to_block: int, batch_size: int):
    """Yield inclusive (start, end) ranges covering [from_block, to_block]."""
    start = from_block
    while start <= to_block:
        end = min(start + batch_size - 1, to_block)
        yield start, end
        start = end + 1


async def run_backfill(
    mirror: MirrorTick, from_block: int, to_block: int, batch_size: int, with_webhooks: bool
) -> int:
    """Process [from_block, to_block] batch by batch.

    Stops at the first failing batch so the cursor never skips a gap.

    Returns:
        Exit code: 0 (success), 1 (a batch failed)
    """
    total_blocks = to_block - from_block + 1
    total_events = 0
    started = time.time()

    for start, end in iter_batches(from_block, to_block, batch_size):
        try:
            result = await mirror.process_range(start, end, fanout=with_webhooks)
        except Exception as e:
            logger.error(
                "backfill.batch_failed",
                start=start,
                end=end,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return 1

        total_events += result.events
        logger.info(
            "backfill.batch_complete",
            start=start,
            end=end,
            events=result.events,
            metadata_jobs=result.metadata_jobs,
            progress=f"{end - from_block + 1}/{total_blocks}",
        )

    logger.info(
        "backfill.complete",
        from_block=from_block,
        to_block=to_block,
        events=total_events,
        duration_seconds=round(time.time() - started, 1),
    )
    return 0


async def async_main(argv: list[str] | None = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error), 2 (interrupted)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]

    if args.verbose:
        settings.log_level = "DEBUG"

    configure_logging(settings)

    from_block = args.from_block if args.from_block is not None else settings.indexer_start_block
    batch_size = args.batch_size or settings.backfill_batch_size

    if batch_size <= 0:
        logger.error("backfill.error", message=f"Invalid --batch-size value: {batch_size}")
        return 1

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)

    rpc = StarknetRpcClient(
        rpc_url=settings.starknet_rpc_url,
        marketplace_address=settings.marketplace_contract_address,
        timeout=settings.rpc_timeout_seconds,
    )

    try:
        if args.to_block == "latest":
            to_block = await rpc.get_latest_block()
        else:
            try:
                to_block = int(args.to_block)
            except ValueError:
                logger.error("backfill.error", message=f"Invalid --to-block value: {args.to_block}")
                return 1

        if from_block > to_block:
            logger.error(
                "backfill.error",
                message=f"--from-block {from_block} is after --to-block {to_block}",
            )
            return 1

        queue = JobQueue(
            uow_factory,
            default_max_attempts=settings.job_default_max_attempts,
            retry_base_ms=settings.job_retry_base_ms,
        )
        mirror = MirrorTick(
            uow_factory=uow_factory,
            cursor_store=CursorStore(uow_factory, start_block=settings.indexer_start_block),
            rpc=rpc,
            fetcher=EventFetcher(
                rpc, chunk_size=settings.event_chunk_size, max_pages=settings.event_max_pages
            ),
            applier=EventApplier(rpc, chain=settings.chain),
            queue=queue,
            fanout=WebhookFanout(uow_factory, queue, max_attempts=settings.webhook_max_attempts),
            chain=settings.chain,
            marketplace_address=settings.marketplace_contract_address,
            collection_address=settings.collection_contract_address,
            block_batch_size=batch_size,
            metadata_batch_size=settings.metadata_job_batch_size,
        )

        logger.info(
            "backfill.start",
            chain=settings.chain,
            from_block=from_block,
            to_block=to_block,
            batch_size=batch_size,
            with_webhooks=args.with_webhooks,
        )

        return await run_backfill(mirror, from_block, to_block, batch_size, args.with_webhooks)

    except KeyboardInterrupt:
        logger.warning("backfill.interrupted", message="Backfill interrupted by user")
        return 2

    except Exception as e:
        logger.error("backfill.fatal_error", error=str(e), exc_info=True)
        return 1

    finally:
        await rpc.aclose()


def main() -> int:
    """Synchronous wrapper for async main."""
    return asyncio.run(async_main())


if __name__ == "__main__":
    sys.exit(main())
