"""METADATA_FETCH job handler: read a token URI on-chain and resolve its metadata."""

import structlog

from medialane.models.job import JobType
from medialane.models.token import MetadataStatus
from medialane.services.blockchain.felt import decode_string_result, normalize_address, u256_to_limbs
from medialane.services.blockchain.starknet_rpc import StarknetRpcClient
from medialane.services.exceptions import MetadataTimeoutError, RpcContractError
from medialane.services.jobs.queue import JobQueue
from medialane.services.metadata.resolver import (
    MetadataResolver,
    ResolutionStatus,
    extract_cid,
    is_ipfs_uri,
)

logger = structlog.get_logger(__name__)

TOKEN_URI_ENTRY_POINTS = ("token_uri", "tokenURI")


class MetadataFetchHandler:
    """Enriches a mirrored token with its off-chain metadata.

    Metadata status transitions: PENDING -> FETCHING -> FETCHED | FAILED.
    A resolution that runs out of time returns the token to PENDING and
    raises so the job is retried with backoff.
    """

    def __init__(
        self,
        uow_factory,
        rpc: StarknetRpcClient,
        resolver: MetadataResolver,
        queue: JobQueue,
        deadline_seconds: float = 30.0,
    ):
        self.uow_factory = uow_factory
        self.rpc = rpc
        self.resolver = resolver
        self.queue = queue
        self.deadline_seconds = deadline_seconds

    async def handle(self, payload: dict) -> None:
        chain = payload.get("chain")
        contract_address = payload.get("contractAddress")
        token_id = payload.get("tokenId")
        if not chain or not contract_address or token_id is None:
            logger.warning("metadata.invalid_payload", payload=payload)
            return

        contract_address = normalize_address(contract_address)
        token_id = str(token_id)
        log = logger.bind(chain=chain, contract=contract_address, token_id=token_id)

        async with await self.uow_factory() as uow:
            claimed = await uow.tokens.transition_metadata_status(
                chain, contract_address, token_id, MetadataStatus.PENDING, MetadataStatus.FETCHING
            )
            token = None if claimed else await uow.tokens.get(chain, contract_address, token_id)

        if not claimed:
            if token is None:
                log.warning("metadata.token_missing")
                return
            if token.metadata_status == MetadataStatus.FETCHED:
                log.debug("metadata.already_fetched")
                return

        try:
            token_uri = await self.fetch_token_uri(contract_address, token_id)
            if not token_uri:
                log.warning("metadata.no_token_uri")
                await self._set_status(chain, contract_address, token_id, MetadataStatus.FAILED)
                return

            resolution = await self.resolver.resolve(token_uri, self.deadline_seconds)

            if resolution.status is ResolutionStatus.TIMED_OUT:
                await self._set_status(
                    chain, contract_address, token_id, MetadataStatus.PENDING, token_uri
                )
                raise MetadataTimeoutError(resolution.error or f"Timed out resolving {token_uri}")

            if resolution.status is ResolutionStatus.RESOLVED and resolution.metadata is not None:
                async with await self.uow_factory() as uow:
                    await uow.tokens.store_metadata(
                        chain, contract_address, token_id, token_uri, resolution.metadata
                    )
                log.info("metadata.fetched", token_uri=token_uri, url=resolution.resolved_url)

                cid = extract_cid(token_uri) if is_ipfs_uri(token_uri) else None
                if cid:
                    await self.queue.enqueue(JobType.METADATA_PIN.value, {"cid": cid})
                return

            await self._set_status(
                chain, contract_address, token_id, MetadataStatus.FAILED, token_uri
            )
            log.warning("metadata.unresolvable", token_uri=token_uri, error=resolution.error)

        except MetadataTimeoutError:
            log.warning("metadata.timed_out")
            raise
        except Exception as e:
            log.error("metadata.fetch_failed", error=str(e), error_type=type(e).__name__)
            await self._set_status(chain, contract_address, token_id, MetadataStatus.FAILED)
            raise

    async def fetch_token_uri(self, contract_address: str, token_id: str) -> str | None:
        """Read the token URI, trying token_uri then tokenURI.

        Returns:
            Decoded URI, or None if neither entry point yields one
        """
        low, high = u256_to_limbs(int(token_id))

        for entry_point in TOKEN_URI_ENTRY_POINTS:
            try:
                felts = await self.rpc.call(contract_address, entry_point, [low, high])
            except RpcContractError as e:
                logger.debug(
                    "metadata.token_uri.entry_point_failed",
                    contract=contract_address,
                    entry_point=entry_point,
                    error=str(e),
                )
                continue

            try:
                uri = decode_string_result(felts)
            except (ValueError, UnicodeDecodeError) as e:
                logger.warning(
                    "metadata.token_uri.undecodable",
                    contract=contract_address,
                    entry_point=entry_point,
                    error=str(e),
                )
                continue

            if uri:
                return uri

        return None

    async def _set_status(
        self,
        chain: str,
        contract_address: str,
        token_id: str,
        status: MetadataStatus,
        token_uri: str | None = None,
    ) -> None:
        async with await self.uow_factory() as uow:
            await uow.tokens.set_metadata_status(
                chain, contract_address, token_id, status, token_uri=token_uri
            )
