"""Token repository.

Provides idempotent ownership writes for the chain mirror and conditional
metadata status transitions for the METADATA_FETCH job.
"""

from uuid import uuid4

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from medialane.core.timezone import utcnow
from medialane.models.token import MetadataStatus, Token


class TokenRepository:
    """Repository for Token entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    def _natural_key(self, chain: str, contract_address: str, token_id: str):
        return (
            Token.chain == chain,  # type: ignore[arg-type]
            Token.contract_address == contract_address,  # type: ignore[arg-type]
            Token.token_id == token_id,  # type: ignore[arg-type]
        )

    def _insert(self, chain: str, contract_address: str, token_id: str, owner: str):
        now = utcnow()
        return insert(Token).values(
            id=uuid4(),
            chain=chain,
            contract_address=contract_address,
            token_id=token_id,
            owner=owner,
            metadata_status=MetadataStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    async def get(self, chain: str, contract_address: str, token_id: str) -> Token | None:
        """Retrieve token by natural key.

        Args:
            chain: Chain identifier
            contract_address: Normalized NFT contract address
            token_id: Decimal string of the u256 token id

        Returns:
            Token if found, None otherwise
        """
        result = await self.session.execute(
            select(Token).where(*self._natural_key(chain, contract_address, token_id))
        )
        return result.scalar_one_or_none()

    async def insert_if_absent(
        self, chain: str, contract_address: str, token_id: str, owner: str
    ) -> None:
        """Create token in PENDING metadata status unless it already exists."""
        stmt = self._insert(chain, contract_address, token_id, owner)
        stmt = stmt.on_conflict_do_nothing(
            index_elements=["chain", "contract_address", "token_id"]
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def upsert_owner(
        self, chain: str, contract_address: str, token_id: str, owner: str
    ) -> None:
        """Create token (mint) or overwrite its owner if it already exists."""
        stmt = self._insert(chain, contract_address, token_id, owner)
        stmt = stmt.on_conflict_do_update(
            index_elements=["chain", "contract_address", "token_id"],
            set_={"owner": owner, "updated_at": utcnow()},
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def update_owner(
        self, chain: str, contract_address: str, token_id: str, owner: str
    ) -> int:
        """Set owner of an existing token.

        Returns:
            Number of rows updated (0 when the token was never mirrored)
        """
        result = await self.session.execute(
            update(Token)
            .where(*self._natural_key(chain, contract_address, token_id))
            .values(owner=owner, updated_at=utcnow())
        )
        await self.session.flush()
        return result.rowcount  # type: ignore[attr-defined]

    async def list_pending_without_uri(
        self, chain: str, contract_addresses: list[str], limit: int = 200
    ) -> list[Token]:
        """Tokens of the given contracts still awaiting their first metadata fetch.

        Query explanation:
        - WHERE metadata_status = PENDING AND token_uri IS NULL
        - ORDER BY created_at ASC: Oldest first
        - LIMIT: Bound the number of jobs one mirror cycle enqueues

        Args:
            chain: Chain identifier
            contract_addresses: Contracts touched by the current cycle
            limit: Maximum number of tokens to return (default: 200)

        Returns:
            List of tokens
        """
        if not contract_addresses:
            return []
        result = await self.session.execute(
            select(Token)
            .where(
                Token.chain == chain,  # type: ignore[arg-type]
                Token.contract_address.in_(contract_addresses),  # type: ignore[attr-defined]
                Token.metadata_status == MetadataStatus.PENDING,  # type: ignore[arg-type]
                Token.token_uri.is_(None),  # type: ignore[union-attr]
            )
            .order_by(Token.created_at.asc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(result.scalars().all())

    async def transition_metadata_status(
        self,
        chain: str,
        contract_address: str,
        token_id: str,
        from_status: MetadataStatus,
        to_status: MetadataStatus,
    ) -> bool:
        """Conditionally move metadata_status (e.g., PENDING -> FETCHING).

        Returns:
            True if this caller performed the transition
        """
        result = await self.session.execute(
            update(Token)
            .where(
                *self._natural_key(chain, contract_address, token_id),
                Token.metadata_status == from_status,  # type: ignore[arg-type]
            )
            .values(metadata_status=to_status, updated_at=utcnow())
        )
        await self.session.flush()
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def set_metadata_status(
        self,
        chain: str,
        contract_address: str,
        token_id: str,
        status: MetadataStatus,
        token_uri: str | None = None,
    ) -> None:
        """Set metadata_status unconditionally, recording the URI when known."""
        values: dict = {"metadata_status": status, "updated_at": utcnow()}
        if token_uri is not None:
            values["token_uri"] = token_uri
        await self.session.execute(
            update(Token).where(*self._natural_key(chain, contract_address, token_id)).values(**values)
        )
        await self.session.flush()

    async def store_metadata(
        self,
        chain: str,
        contract_address: str,
        token_id: str,
        token_uri: str,
        metadata: dict,
    ) -> None:
        """Persist resolved metadata and mark the token FETCHED."""
        attributes = metadata.get("attributes")
        await self.session.execute(
            update(Token)
            .where(*self._natural_key(chain, contract_address, token_id))
            .values(
                token_uri=token_uri,
                metadata_status=MetadataStatus.FETCHED,
                name=_as_text(metadata.get("name")),
                description=_as_text(metadata.get("description")),
                image=_as_text(metadata.get("image")),
                attributes=attributes if isinstance(attributes, list) else None,
                updated_at=utcnow(),
            )
        )
        await self.session.flush()

    async def count_for_contract(self, chain: str, contract_address: str) -> int:
        """Total number of mirrored tokens for a contract."""
        result = await self.session.execute(
            select(func.count(Token.id)).where(  # type: ignore[arg-type]
                Token.chain == chain,  # type: ignore[arg-type]
                Token.contract_address == contract_address,  # type: ignore[arg-type]
            )
        )
        return result.scalar() or 0

    async def count_holders(self, chain: str, contract_address: str) -> int:
        """Number of distinct owners holding tokens of a contract."""
        result = await self.session.execute(
            select(func.count(func.distinct(Token.owner))).where(
                Token.chain == chain,  # type: ignore[arg-type]
                Token.contract_address == contract_address,  # type: ignore[arg-type]
            )
        )
        return result.scalar() or 0


def _as_text(value) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
