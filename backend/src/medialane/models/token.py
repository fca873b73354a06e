"""Token entity - NFT with ownership and metadata enrichment state."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, ForeignKeyConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel

from medialane.core.timezone import utcnow


class MetadataStatus(str, Enum):
    """Metadata enrichment status."""

    PENDING = "PENDING"
    FETCHING = "FETCHING"
    FETCHED = "FETCHED"
    FAILED = "FAILED"


class Token(SQLModel, table=True):
    """Token, unique per (chain, contract_address, token_id).

    token_id is the decimal string of a u256. The row always references an
    existing Collection.
    """

    __tablename__ = "tokens"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint("chain", "contract_address", "token_id", name="uq_tokens_natural_key"),
        ForeignKeyConstraint(
            ["chain", "contract_address"],
            ["collections.chain", "collections.contract_address"],
            name="fk_tokens_collection",
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    chain: str = Field(max_length=32)
    contract_address: str = Field(max_length=66, index=True)
    token_id: str = Field(max_length=80)
    owner: str = Field(max_length=66, index=True)

    token_uri: Optional[str] = Field(default=None)
    metadata_status: MetadataStatus = Field(default=MetadataStatus.PENDING, index=True)
    name: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)
    image: Optional[str] = Field(default=None)
    attributes: Optional[list] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
