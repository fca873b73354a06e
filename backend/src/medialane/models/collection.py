"""Collection entity - NFT contract with aggregate statistics."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from medialane.core.timezone import utcnow


class Collection(SQLModel, table=True):
    """NFT collection, unique per (chain, contract_address).

    Aggregates are only written by the STATS_UPDATE job.
    """

    __tablename__ = "collections"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint("chain", "contract_address", name="uq_collections_chain_contract"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    chain: str = Field(max_length=32)
    contract_address: str = Field(max_length=66, index=True)
    name: Optional[str] = Field(default=None)
    start_block: int = Field(sa_column=Column(BigInteger, nullable=False))
    is_known: bool = Field(default=False)

    holder_count: int = Field(default=0)
    total_supply: int = Field(default=0)
    floor_price: Optional[str] = Field(default=None)
    total_volume: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
