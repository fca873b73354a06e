"""Tests for collection statistics recomputation."""

from datetime import UTC, datetime

import pytest

from medialane.models.collection import Collection
from medialane.models.order import Order, OrderStatus
from medialane.models.token import Token
from medialane.services.jobs.stats_update import StatsUpdateHandler, compute_floor_price, sum_prices
from medialane.services.mirror.pricing import SUPPORTED_TOKENS

CHAIN = "STARKNET"
USDC = SUPPORTED_TOKENS[0].address
CONTRACT = "0x" + "0" * 61 + "abc"
UNKNOWN_CURRENCY = "0x" + "0" * 63 + "7"
NOW = datetime(2026, 6, 1, 12, 0, 0)
NOW_TS = int(NOW.replace(tzinfo=UTC).timestamp())


def make_order(order_hash: str, price: str, status=OrderStatus.ACTIVE, end_time=NOW_TS + 3600, currency=USDC):
    return Order(
        chain=CHAIN,
        order_hash=order_hash,
        offerer="0x1",
        offer_item_type="ERC721",
        offer_token=CONTRACT,
        offer_identifier="1",
        offer_start_amount="1",
        offer_end_amount="1",
        consideration_item_type="ERC20",
        consideration_token=currency,
        consideration_identifier="0",
        consideration_start_amount=price,
        consideration_end_amount=price,
        consideration_recipient="0x1",
        start_time=NOW_TS - 3600,
        end_time=end_time,
        status=status,
        nft_contract=CONTRACT,
        nft_token_id="1",
        price_raw=price,
        created_block_number=1,
        created_tx_hash="0x1",
    )


class TestFloorPrice:
    def test_lowest_price_formatted_with_symbol(self):
        assert compute_floor_price([("2500000", USDC), ("1500000", USDC)]) == "1.500000 USDC"

    def test_unknown_currency_keeps_raw_amount(self):
        assert compute_floor_price([("42", UNKNOWN_CURRENCY)]) == "42"

    def test_compares_integers_not_strings(self):
        assert compute_floor_price([("900", UNKNOWN_CURRENCY), ("1000", UNKNOWN_CURRENCY)]) == "900"

    def test_no_listings(self):
        assert compute_floor_price([]) is None

    def test_unparseable_prices_skipped(self):
        assert compute_floor_price([("n/a", USDC)]) is None


class TestSumPrices:
    def test_sum(self):
        assert sum_prices(["1000000", "2500000"]) == "3500000"

    def test_empty(self):
        assert sum_prices([]) == "0"

    def test_beyond_64_bits(self):
        big = str(2**70)
        assert sum_prices([big, big]) == str(2**71)


class TestStatsUpdateHandler:
    @pytest.mark.asyncio
    async def test_recomputes_aggregates(self, session, uow_factory):
        session.add(Collection(chain=CHAIN, contract_address=CONTRACT, start_block=1))
        await session.flush()
        session.add_all(
            [
                Token(chain=CHAIN, contract_address=CONTRACT, token_id="1", owner="0xa"),
                Token(chain=CHAIN, contract_address=CONTRACT, token_id="2", owner="0xa"),
                Token(chain=CHAIN, contract_address=CONTRACT, token_id="3", owner="0xb"),
                make_order("0x01", "3000000"),
                make_order("0x02", "2000000"),
                make_order("0x03", "100", end_time=NOW_TS - 1),
                make_order("0x04", "50", status=OrderStatus.CANCELLED),
                make_order("0x05", "1000000", status=OrderStatus.FULFILLED),
                make_order("0x06", "4000000", status=OrderStatus.FULFILLED),
            ]
        )
        await session.commit()

        await StatsUpdateHandler(uow_factory, clock=lambda: NOW).handle(
            {"chain": CHAIN, "contractAddress": "0xabc"}
        )

        async with await uow_factory() as uow:
            collection = await uow.collections.get(CHAIN, CONTRACT)
        assert collection.holder_count == 2
        assert collection.total_supply == 3
        assert collection.floor_price == "2.000000 USDC"
        assert collection.total_volume == "5000000"

    @pytest.mark.asyncio
    async def test_empty_collection(self, session, uow_factory):
        session.add(Collection(chain=CHAIN, contract_address=CONTRACT, start_block=1))
        await session.commit()

        await StatsUpdateHandler(uow_factory, clock=lambda: NOW).handle(
            {"chain": CHAIN, "contractAddress": CONTRACT}
        )

        async with await uow_factory() as uow:
            collection = await uow.collections.get(CHAIN, CONTRACT)
        assert collection.holder_count == 0
        assert collection.total_supply == 0
        assert collection.floor_price is None
        assert collection.total_volume == "0"

    @pytest.mark.asyncio
    async def test_missing_collection_is_skipped(self, uow_factory):
        await StatsUpdateHandler(uow_factory, clock=lambda: NOW).handle(
            {"chain": CHAIN, "contractAddress": CONTRACT}
        )

        async with await uow_factory() as uow:
            assert await uow.collections.get(CHAIN, CONTRACT) is None
