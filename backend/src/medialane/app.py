"""FastAPI application factory."""

# Import timezone enforcement (sets TZ=UTC)
import asyncio
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Response, status
from sqlalchemy import text

from medialane.core import timezone  # noqa: F401
from medialane.core.config import Settings, configure_logging
from medialane.core.database import setup_db_session
from medialane.models.job import JobType
from medialane.services.blockchain.event_fetcher import EventFetcher
from medialane.services.blockchain.starknet_rpc import StarknetRpcClient
from medialane.services.ipfs.pinata_client import PinataClient
from medialane.services.jobs.metadata_fetch import MetadataFetchHandler
from medialane.services.jobs.metadata_pin import MetadataPinHandler
from medialane.services.jobs.queue import JobQueue
from medialane.services.jobs.stats_update import StatsUpdateHandler
from medialane.services.jobs.webhook_deliver import WebhookDeliverHandler
from medialane.services.metadata.resolver import MetadataResolver
from medialane.services.mirror.appliers import EventApplier
from medialane.services.mirror.cursor_store import CursorStore
from medialane.services.webhooks.fanout import WebhookFanout
from medialane.uow import create_uow_factory
from medialane.workers.mirror_worker import MirrorTick, run_mirror_worker
from medialane.workers.orchestrator_worker import Orchestrator

logger = structlog.get_logger()


def create_resilient_worker(coro_factory, worker_name: str, shutdown_event: asyncio.Event):
    """Create a worker with automatic restart on failure.

    Args:
        coro_factory: Zero-argument callable returning the worker coroutine
        worker_name: Human-readable worker name for logging
        shutdown_event: Event to signal graceful shutdown

    Returns:
        Holder dict whose "task" key always points at the live task
    """
    RESTART_DELAY = 1  # Fixed 1 second delay between restarts

    holder: dict[str, asyncio.Task] = {}

    def on_worker_done(task: asyncio.Task):
        if shutdown_event.is_set():
            logger.info("worker.shutdown_complete", worker=worker_name)
            return

        if task.cancelled():
            logger.info("worker.cancelled", worker=worker_name)
            return

        exc = task.exception()
        if exc:
            logger.error(
                "worker.crashed",
                worker=worker_name,
                error=str(exc),
                error_type=type(exc).__name__,
                retry_in_seconds=RESTART_DELAY,
                exc_info=exc,
            )
        else:
            # Worker loops never return on their own
            logger.warning(
                "worker.stopped_unexpectedly",
                worker=worker_name,
                retry_in_seconds=RESTART_DELAY,
            )

        async def restart_worker():
            await asyncio.sleep(RESTART_DELAY)

            if shutdown_event.is_set():
                return

            logger.info("worker.restarting", worker=worker_name)
            new_task = asyncio.create_task(coro_factory())
            new_task.add_done_callback(on_worker_done)
            holder["task"] = new_task

        holder["restart"] = asyncio.create_task(restart_worker())

    task = asyncio.create_task(coro_factory())
    task.add_done_callback(on_worker_done)
    holder["task"] = task
    return holder


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown tasks:
    - Startup: Configure logging, verify the database, build clients and services,
      start the mirror and orchestrator workers
    - Shutdown: Stop workers, close HTTP clients
    """
    settings = Settings()  # type: ignore[call-arg]

    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)

    # Storage unreachable at startup is fatal
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(
            "startup.database_unreachable",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise

    app.state.session_factory = session_factory
    app.state.uow_factory = uow_factory

    # External clients
    rpc = StarknetRpcClient(
        rpc_url=settings.starknet_rpc_url,
        marketplace_address=settings.marketplace_contract_address,
        timeout=settings.rpc_timeout_seconds,
    )
    pinata = PinataClient(jwt_token=settings.pinata_jwt, gateway_domain=settings.pinata_gateway)
    metadata_http = httpx.AsyncClient(
        timeout=settings.metadata_fetch_timeout_seconds, follow_redirects=True
    )
    webhook_http = httpx.AsyncClient(timeout=settings.webhook_timeout_seconds)

    # Services
    queue = JobQueue(
        uow_factory,
        default_max_attempts=settings.job_default_max_attempts,
        retry_base_ms=settings.job_retry_base_ms,
    )
    fanout = WebhookFanout(uow_factory, queue, max_attempts=settings.webhook_max_attempts)
    resolver = MetadataResolver(
        uow_factory,
        metadata_http,
        gateways=settings.ipfs_gateways,
        request_timeout=settings.metadata_fetch_timeout_seconds,
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
        fanout=fanout,
        chain=settings.chain,
        marketplace_address=settings.marketplace_contract_address,
        collection_address=settings.collection_contract_address,
        block_batch_size=settings.indexer_block_batch_size,
        metadata_batch_size=settings.metadata_job_batch_size,
    )

    handlers = {
        JobType.METADATA_FETCH.value: MetadataFetchHandler(
            uow_factory,
            rpc,
            resolver,
            queue,
            deadline_seconds=settings.metadata_deadline_seconds,
        ).handle,
        JobType.METADATA_PIN.value: MetadataPinHandler(pinata).handle,
        JobType.STATS_UPDATE.value: StatsUpdateHandler(uow_factory).handle,
        JobType.WEBHOOK_DELIVER.value: WebhookDeliverHandler(
            uow_factory,
            webhook_http,
            timeout=settings.webhook_timeout_seconds,
            max_response_bytes=settings.webhook_max_response_bytes,
        ).handle,
    }
    orchestrator = Orchestrator(
        queue, handlers, poll_interval=settings.orchestrator_poll_interval_seconds
    )

    shutdown_event = asyncio.Event()

    workers = [
        create_resilient_worker(
            lambda: run_mirror_worker(mirror, settings.indexer_poll_interval_seconds),
            "mirror",
            shutdown_event,
        ),
        create_resilient_worker(orchestrator.run, "orchestrator", shutdown_event),
    ]

    logger.info(
        "application.startup",
        db_url=settings.database_url.split("@")[-1],
        chain=settings.chain,
        marketplace=settings.marketplace_contract_address,
    )

    yield

    logger.info("application.shutdown")
    shutdown_event.set()

    tasks = [task for holder in workers for task in holder.values()]
    for task in tasks:
        task.cancel()

    await asyncio.gather(*tasks, return_exceptions=True)

    await rpc.aclose()
    await pinata.aclose()
    await metadata_http.aclose()
    await webhook_http.aclose()


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Medialane Backend",
        description="Starknet marketplace chain mirror and job orchestration",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "healthy"} if database connection succeeds
            503: {"status": "unhealthy", "error": {...}} if database connection fails
        """
        try:
            async with app.state.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            logger.debug("health_check.success")
            return {"status": "healthy"}

        except Exception as e:
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {
                    "type": type(e).__name__,
                    "message": str(e),
                },
            }

    return app


# Create app instance for uvicorn
app = create_app()
