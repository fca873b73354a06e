"""Order entity - mirrored marketplace order."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Column, Numeric, UniqueConstraint
from sqlmodel import Field, SQLModel

from medialane.core.timezone import utcnow


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    ACTIVE = "ACTIVE"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class Order(SQLModel, table=True):
    """Marketplace order, unique per (chain, order_hash). Never deleted."""

    __tablename__ = "orders"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("chain", "order_hash", name="uq_orders_chain_order_hash"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    chain: str = Field(max_length=32)
    order_hash: str = Field(max_length=66, index=True)
    offerer: str = Field(max_length=66, index=True)

    # Offer item
    offer_item_type: str = Field(max_length=32)
    offer_token: str = Field(max_length=66)
    offer_identifier: str
    offer_start_amount: str
    offer_end_amount: str

    # Consideration item
    consideration_item_type: str = Field(max_length=32)
    consideration_token: str = Field(max_length=66)
    consideration_identifier: str
    consideration_start_amount: str
    consideration_end_amount: str
    consideration_recipient: str = Field(max_length=66)

    # u64 unix seconds, wider than BIGINT
    start_time: int = Field(sa_column=Column(Numeric(20, 0), nullable=False))
    end_time: int = Field(sa_column=Column(Numeric(20, 0), nullable=False))
    status: OrderStatus = Field(default=OrderStatus.ACTIVE, index=True)

    # Denormalized display fields
    nft_contract: Optional[str] = Field(default=None, max_length=66, index=True)
    nft_token_id: Optional[str] = Field(default=None)
    price_raw: Optional[str] = Field(default=None)
    price_formatted: Optional[str] = Field(default=None)
    currency_symbol: Optional[str] = Field(default=None, max_length=16)

    fulfiller: Optional[str] = Field(default=None, max_length=66)
    created_block_number: int = Field(sa_column=Column(BigInteger, nullable=False))
    created_tx_hash: str = Field(max_length=66)
    fulfilled_tx_hash: Optional[str] = Field(default=None, max_length=66)
    cancelled_tx_hash: Optional[str] = Field(default=None, max_length=66)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
