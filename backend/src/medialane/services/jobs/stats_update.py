"""STATS_UPDATE job handler: recompute collection aggregates."""

from datetime import UTC, datetime
from typing import Callable

import structlog

from medialane.core.timezone import utcnow
from medialane.services.blockchain.felt import normalize_address
from medialane.services.mirror.pricing import format_amount, get_token_by_address

logger = structlog.get_logger(__name__)


def compute_floor_price(listings: list[tuple[str, str]]) -> str | None:
    """Lowest listing price, formatted with its currency symbol when known.

    Args:
        listings: (price_raw, consideration_token) of active, unexpired orders

    Returns:
        e.g. "1.500000 USDC", the raw amount for unknown currencies, or None
    """
    floor: tuple[int, str, str] | None = None
    for price_raw, currency in listings:
        try:
            value = int(price_raw)
        except (TypeError, ValueError):
            continue
        if floor is None or value < floor[0]:
            floor = (value, price_raw, currency)

    if floor is None:
        return None

    _, price_raw, currency = floor
    token = get_token_by_address(currency)
    if token is None:
        return price_raw
    return f"{format_amount(price_raw, token.decimals)} {token.symbol}"


def sum_prices(prices: list[str]) -> str:
    """Sum of raw integer prices as a decimal string. Unparseable values are skipped."""
    total = 0
    for price in prices:
        try:
            total += int(price)
        except (TypeError, ValueError):
            continue
    return str(total)


class StatsUpdateHandler:
    """Recomputes holder count, supply, floor price and volume of one collection."""

    def __init__(self, uow_factory, clock: Callable[[], datetime] = utcnow):
        self.uow_factory = uow_factory
        self.clock = clock

    async def handle(self, payload: dict) -> None:
        chain = payload.get("chain")
        contract_address = payload.get("contractAddress")
        if not chain or not contract_address:
            logger.warning("stats.invalid_payload", payload=payload)
            return

        contract_address = normalize_address(contract_address)
        now_ts = int(self.clock().replace(tzinfo=UTC).timestamp())

        async with await self.uow_factory() as uow:
            collection = await uow.collections.get(chain, contract_address)
            if collection is None:
                logger.info("stats.collection_missing", chain=chain, contract=contract_address)
                return

            holder_count = await uow.tokens.count_holders(chain, contract_address)
            total_supply = await uow.tokens.count_for_contract(chain, contract_address)
            floor_price = compute_floor_price(
                await uow.orders.get_active_listing_prices(chain, contract_address, now_ts)
            )
            total_volume = sum_prices(
                await uow.orders.get_fulfilled_prices(chain, contract_address)
            )

            await uow.collections.update_stats(
                chain,
                contract_address,
                holder_count=holder_count,
                total_supply=total_supply,
                floor_price=floor_price,
                total_volume=total_volume,
            )

        logger.info(
            "stats.updated",
            chain=chain,
            contract=contract_address,
            holder_count=holder_count,
            total_supply=total_supply,
            floor_price=floor_price,
            total_volume=total_volume,
        )
