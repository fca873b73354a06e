"""Transfer entity - append-only token movement log."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from medialane.core.timezone import utcnow


class Transfer(SQLModel, table=True):
    """Token transfer. Duplicate (tx_hash, log_index) rows are rejected."""

    __tablename__ = "transfers"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint(
            "chain",
            "contract_address",
            "token_id",
            "tx_hash",
            "log_index",
            name="uq_transfers_event",
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    chain: str = Field(max_length=32)
    contract_address: str = Field(max_length=66, index=True)
    token_id: str = Field(max_length=80)
    from_address: str = Field(max_length=66)
    to_address: str = Field(max_length=66)
    block_number: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    tx_hash: str = Field(max_length=66)
    log_index: int
    created_at: datetime = Field(default_factory=utcnow)
