"""pytest fixtures for Medialane backend tests.

Provides:
- utc_timezone: Autouse fixture enforcing UTC timezone
- postgres_container: Session-scoped testcontainer PostgreSQL instance with migrations applied
- session_factory: Function-scoped session factory with table truncation
- session: Function-scoped database session
- uow_factory: Function-scoped UnitOfWork factory
- fake_rpc: In-memory Starknet node (events, latest block, contract calls)
- order_felts: Builder for get_order_details return values
- byte_array_felts: Encoder for Cairo ByteArray return values
"""

import os
import subprocess
import sys
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from testcontainers.postgres import PostgresContainer

from medialane.core.database import setup_db_session
from medialane.services.blockchain.felt import (
    encode_short_string,
    normalize_address,
    parse_felt,
    to_hex,
)
from medialane.services.blockchain.starknet_rpc import EventsPage
from medialane.services.exceptions import RpcContractError
from medialane.uow import create_uow_factory

os.environ.setdefault("APP_ENV", "test")

OFFERER = "0x0123"
NFT_CONTRACT = "0x0abc"
USDC = "0x053c91253bc9682c04929ca02ed00b3e423f6710d2ee7e0d5ebb06f3ecf368a8"

BACKEND_DIR = Path(__file__).resolve().parents[1]

# Children before parents
TABLES = (
    "webhook_deliveries",
    "webhook_endpoints",
    "tenants",
    "jobs",
    "transfers",
    "tokens",
    "orders",
    "collections",
    "metadata_cache",
    "indexer_cursors",
)


@pytest.fixture(scope="session")
def postgres_container():
    """Provide session-scoped PostgreSQL container with migrations applied.

    Container starts once per test session and is reused across all tests.
    Migrations are applied using subprocess to avoid asyncio event loop conflicts.
    """
    with PostgresContainer(
        image="postgres:17",
        username="test",
        password="test",
        dbname="test_medialane",
    ).with_bind_ports(5432, None) as container:
        db_url = container.get_connection_url(driver="psycopg")

        # alembic env.py reads DATABASE_URL
        env = os.environ.copy()
        env["DATABASE_URL"] = db_url

        subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", "head"],
            check=True,
            capture_output=True,
            text=True,
            env=env,
            cwd=BACKEND_DIR,
        )

        yield container


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests.

    Autouse fixture ensures TZ=UTC is set before any test runs.
    """
    os.environ["TZ"] = "UTC"
    yield


@pytest_asyncio.fixture(scope="function")
async def session_factory(postgres_container):
    """Provide a session factory on the migrated container database.

    Tables are emptied after each test.
    """
    db_url = postgres_container.get_connection_url(driver="psycopg")
    factory = setup_db_session(db_url, pool_size=5)

    yield factory

    async with factory() as cleanup:
        for table in TABLES:
            await cleanup.execute(text(f"DELETE FROM {table}"))
        await cleanup.commit()

    await factory.kw["bind"].dispose()


@pytest_asyncio.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a function-scoped database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def uow_factory(session_factory):
    """Provide function-scoped UnitOfWork factory."""
    return create_uow_factory(session_factory)


class FakeStarknetRpc:
    """In-memory stand-in for StarknetRpcClient.

    Events are served from `events` filtered by address, block range and the
    selector key filter. Contract calls are answered from `order_details` and
    `call_results`; a missing entry behaves like a missing entry point.
    """

    def __init__(self):
        self.latest_block = 0
        self.events: dict[str, list[dict]] = {}
        self.order_details: dict[str, list[int] | Exception] = {}
        self.call_results: dict[tuple[str, str], list[int] | Exception] = {}
        self.get_events_calls: list[tuple[str, int, int]] = []
        self.calls: list[tuple[str, str, list[int]]] = []

    def add_event(self, address: str, keys: list[int], block_number: int, tx_hash: str = "0x1"):
        self.events.setdefault(normalize_address(address), []).append(
            {
                "from_address": address,
                "keys": [hex(key) for key in keys],
                "data": [],
                "block_number": block_number,
                "transaction_hash": tx_hash,
            }
        )

    async def get_latest_block(self) -> int:
        return self.latest_block

    async def get_events(
        self, address, from_block, to_block, keys, chunk_size=1000, continuation_token=None
    ) -> EventsPage:
        self.get_events_calls.append((normalize_address(address), from_block, to_block))
        wanted = {parse_felt(key) for key in keys[0]}
        matching = [
            event
            for event in self.events.get(normalize_address(address), [])
            if from_block <= event["block_number"] <= to_block
            and parse_felt(event["keys"][0]) in wanted
        ]
        return EventsPage(events=matching)

    async def get_order_details(self, order_hash) -> list[int]:
        result = self.order_details.get(to_hex(order_hash))
        if result is None:
            raise RpcContractError("starknet_call error 40: Contract error", code=40)
        if isinstance(result, Exception):
            raise result
        return result

    async def call(self, contract_address, entry_point, calldata) -> list[int]:
        self.calls.append((normalize_address(contract_address), entry_point, list(calldata)))
        result = self.call_results.get((normalize_address(contract_address), entry_point))
        if result is None:
            raise RpcContractError("starknet_call error 21: Requested entrypoint does not exist", code=21)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_rpc() -> FakeStarknetRpc:
    """Provide an empty in-memory Starknet node."""
    return FakeStarknetRpc()


@pytest.fixture
def order_felts():
    """Provide a builder for get_order_details felts (ERC721 listing priced in USDC)."""

    def build(
        offerer: str = OFFERER,
        nft_contract: str = NFT_CONTRACT,
        token_id: int = 1,
        currency: str = USDC,
        price: int = 1_500_000,
        start_time: int = 1_700_000_000,
        end_time: int = 4_000_000_000,
        offer_item_type: str = "ERC721",
        status: int = 1,
        fulfiller: str | None = None,
    ) -> list[int]:
        felts = [
            parse_felt(offerer),
            encode_short_string(offer_item_type),
            parse_felt(nft_contract),
            token_id,
            1,
            1,
            encode_short_string("ERC20"),
            parse_felt(currency),
            0,
            price,
            price,
            parse_felt(offerer),
            start_time,
            end_time,
            status,
        ]
        if fulfiller is None:
            felts.append(1)
        else:
            felts.extend([0, parse_felt(fulfiller)])
        return felts

    return build


@pytest.fixture
def byte_array_felts():
    """Provide an encoder for strings returned as a Cairo ByteArray."""

    def encode(text: str) -> list[int]:
        raw = text.encode("utf-8")
        full = len(raw) // 31
        words = [int.from_bytes(raw[i * 31 : (i + 1) * 31], "big") for i in range(full)]
        pending = raw[full * 31 :]
        return [full, *words, int.from_bytes(pending, "big") if pending else 0, len(pending)]

    return encode
