"""IndexerCursor entity - chain mirror progress marker."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Column
from sqlmodel import Field, SQLModel

from medialane.core.timezone import utcnow


class IndexerCursor(SQLModel, table=True):
    """Highest block whose events are fully applied, one row per chain.

    last_block only moves forward, and only inside the transaction that
    applied the events up to it.
    """

    __tablename__ = "indexer_cursors"  # type: ignore[assignment]

    chain: str = Field(primary_key=True, max_length=32)
    last_block: int = Field(sa_column=Column(BigInteger, nullable=False))
    continuation_token: Optional[str] = Field(default=None)
    updated_at: datetime = Field(default_factory=utcnow)
