"""Idempotent application of decoded events to mirrored state.

Every write is either an upsert on a natural key, a conditional update, or an
insert that ignores duplicates, so re-applying a block range leaves the store
unchanged.
"""

import structlog

from medialane.services.blockchain.felt import ZERO_ADDRESS
from medialane.services.blockchain.order_details import decode_order_details
from medialane.services.blockchain.starknet_rpc import StarknetRpcClient
from medialane.services.exceptions import PermanentError
from medialane.services.mirror.events import (
    DomainEvent,
    OrderCancelled,
    OrderCreated,
    OrderFulfilled,
    Transfer,
)
from medialane.services.mirror.pricing import display_price
from medialane.uow import UnitOfWork

logger = structlog.get_logger(__name__)


class EventApplier:
    """Applies domain events inside a caller-owned Unit of Work."""

    def __init__(self, rpc: StarknetRpcClient, chain: str):
        """Initialize applier.

        Args:
            rpc: Starknet client used to re-read order parameters
            chain: Chain identifier written on every row
        """
        self.rpc = rpc
        self.chain = chain

    async def apply(self, event: DomainEvent, uow: UnitOfWork) -> str | None:
        """Apply one event.

        Args:
            event: Decoded domain event
            uow: Open Unit of Work (the caller commits)

        Returns:
            NFT contract address whose tokens or listings changed, if any
        """
        if isinstance(event, OrderCreated):
            return await self.apply_order_created(event, uow)
        if isinstance(event, OrderFulfilled):
            await self.apply_order_fulfilled(event, uow)
            return None
        if isinstance(event, OrderCancelled):
            await self.apply_order_cancelled(event, uow)
            return None
        if isinstance(event, Transfer):
            return await self.apply_transfer(event, uow)
        raise TypeError(f"Unsupported event type: {type(event).__name__}")

    async def apply_order_created(self, event: OrderCreated, uow: UnitOfWork) -> str | None:
        """Mirror a new order from its on-chain parameters.

        Transient RPC errors propagate so the whole cycle is retried. A reverted
        call or a malformed response skips the event.
        """
        try:
            felts = await self.rpc.get_order_details(event.order_hash)
            details = decode_order_details(felts)
        except PermanentError as e:
            logger.error(
                "mirror.order_created.details_unavailable",
                order_hash=event.order_hash,
                tx_hash=event.tx_hash,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        price_raw = details.consideration.start_amount
        price_formatted, currency_symbol = display_price(details.consideration.token, price_raw)
        nft_contract = details.nft_contract
        nft_token_id = details.nft_token_id

        await uow.orders.upsert_created(
            {
                "chain": self.chain,
                "order_hash": event.order_hash,
                "offerer": details.offerer,
                "offer_item_type": details.offer.item_type,
                "offer_token": details.offer.token,
                "offer_identifier": details.offer.identifier,
                "offer_start_amount": details.offer.start_amount,
                "offer_end_amount": details.offer.end_amount,
                "consideration_item_type": details.consideration.item_type,
                "consideration_token": details.consideration.token,
                "consideration_identifier": details.consideration.identifier,
                "consideration_start_amount": details.consideration.start_amount,
                "consideration_end_amount": details.consideration.end_amount,
                "consideration_recipient": details.consideration.recipient,
                "start_time": details.start_time,
                "end_time": details.end_time,
                "nft_contract": nft_contract,
                "nft_token_id": nft_token_id,
                "price_raw": price_raw,
                "price_formatted": price_formatted,
                "currency_symbol": currency_symbol,
                "created_block_number": event.block_number,
                "created_tx_hash": event.tx_hash,
            }
        )

        if nft_contract and nft_token_id is not None:
            # Collection first (token foreign key)
            await uow.collections.ensure(self.chain, nft_contract, event.block_number)
            await uow.tokens.insert_if_absent(
                self.chain, nft_contract, nft_token_id, owner=details.offerer
            )

        logger.debug(
            "mirror.order_created",
            order_hash=event.order_hash,
            nft_contract=nft_contract,
            nft_token_id=nft_token_id,
            price=price_formatted,
            currency=currency_symbol,
        )
        return nft_contract

    async def apply_order_fulfilled(self, event: OrderFulfilled, uow: UnitOfWork) -> None:
        updated = await uow.orders.mark_fulfilled(
            self.chain, event.order_hash, fulfiller=event.fulfiller, tx_hash=event.tx_hash
        )
        if not updated:
            logger.debug("mirror.order_fulfilled.unknown_order", order_hash=event.order_hash)
            return
        logger.debug(
            "mirror.order_fulfilled", order_hash=event.order_hash, fulfiller=event.fulfiller
        )

    async def apply_order_cancelled(self, event: OrderCancelled, uow: UnitOfWork) -> None:
        updated = await uow.orders.mark_cancelled(
            self.chain, event.order_hash, tx_hash=event.tx_hash
        )
        if not updated:
            logger.debug("mirror.order_cancelled.unknown_order", order_hash=event.order_hash)
            return
        logger.debug("mirror.order_cancelled", order_hash=event.order_hash)

    async def apply_transfer(self, event: Transfer, uow: UnitOfWork) -> str:
        """Track ownership and append to the transfer log.

        A transfer from the zero address is a mint and creates the token (and
        its collection). Any other transfer only moves ownership of a token
        that is already mirrored.
        """
        if event.from_address == ZERO_ADDRESS:
            await uow.collections.ensure(self.chain, event.contract_address, event.block_number)
            await uow.tokens.upsert_owner(
                self.chain, event.contract_address, event.token_id, owner=event.to_address
            )
        else:
            await uow.tokens.update_owner(
                self.chain, event.contract_address, event.token_id, owner=event.to_address
            )

        inserted = await uow.transfers.insert_once(
            chain=self.chain,
            contract_address=event.contract_address,
            token_id=event.token_id,
            from_address=event.from_address,
            to_address=event.to_address,
            block_number=event.block_number,
            tx_hash=event.tx_hash,
            log_index=event.log_index,
        )
        if not inserted:
            logger.debug(
                "mirror.transfer.replayed",
                contract=event.contract_address,
                token_id=event.token_id,
                tx_hash=event.tx_hash,
                log_index=event.log_index,
            )

        return event.contract_address
