"""CLI command for resetting the chain mirror cursor.

Usage:
    python -m medialane.cli.reset_cursor --block N [--chain CHAIN]

The next mirror tick starts at block N + 1. The reset is unconditional and
may move the cursor backwards, which replays the blocks after N (all writes
are idempotent).
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace

import structlog

from medialane.core import timezone  # noqa: F401
from medialane.core.config import Settings, configure_logging
from medialane.core.database import setup_db_session
from medialane.services.mirror.cursor_store import CursorStore
from medialane.uow import create_uow_factory

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(description="Reset the chain mirror cursor to a block number")

    parser.add_argument(
        "--block",
        type=int,
        required=True,
        help="Last indexed block to record (indexing resumes at block + 1)",
    )

    parser.add_argument(
        "--chain",
        type=str,
        help="Chain identifier (default: CHAIN setting)",
    )

    return parser.parse_args(argv)


async def async_main(argv: list[str] | None = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]
    configure_logging(settings)

    if args.block < 0:
        logger.error("reset_cursor.error", message=f"Invalid --block value: {args.block}")
        return 1

    chain = args.chain or settings.chain

    try:
        session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
        uow_factory = create_uow_factory(session_factory)

        store = CursorStore(uow_factory, start_block=settings.indexer_start_block)
        await store.reset(chain, args.block)

        logger.info("reset_cursor.complete", chain=chain, last_block=args.block)
        return 0

    except Exception as e:
        logger.error("reset_cursor.fatal_error", error=str(e), exc_info=True)
        return 1


def main() -> int:
    """Synchronous wrapper for async main."""
    return asyncio.run(async_main())


if __name__ == "__main__":
    sys.exit(main())
