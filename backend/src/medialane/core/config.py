"""Application configuration using Pydantic BaseSettings."""

import logging

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAINNET_MARKETPLACE_CONTRACT = "0x059deafbbafbf7051c315cf75a94b03c5547892bc0c6dfa36d7ac7290d4cc33a"
MAINNET_COLLECTION_CONTRACT = "0x05e73b7be06d82beeb390a0e0d655f2c9e7cf519658e04f05d9c690ccc41da03"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file="../.env", env_file_encoding="utf-8", extra="ignore")

    # Application Database Configuration
    database_url: str = Field(alias="DATABASE_URL")
    db_pool_size: int = Field(default=20, alias="DB_POOL_SIZE")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Starknet RPC
    chain: str = Field(default="STARKNET", alias="CHAIN")
    starknet_rpc_url: str = Field(default="", alias="STARKNET_RPC_URL")
    rpc_timeout_seconds: float = Field(default=30.0, alias="RPC_TIMEOUT_SECONDS")
    marketplace_contract_address: str = Field(
        default=MAINNET_MARKETPLACE_CONTRACT, alias="MARKETPLACE_CONTRACT_ADDRESS"
    )
    collection_contract_address: str = Field(
        default=MAINNET_COLLECTION_CONTRACT, alias="COLLECTION_CONTRACT_ADDRESS"
    )

    # Chain mirror
    indexer_start_block: int = Field(default=6204232, alias="INDEXER_START_BLOCK")
    indexer_poll_interval_seconds: float = Field(default=6.0, alias="INDEXER_POLL_INTERVAL_SECONDS")
    indexer_block_batch_size: int = Field(default=500, alias="INDEXER_BLOCK_BATCH_SIZE")
    event_chunk_size: int = Field(default=1000, alias="EVENT_CHUNK_SIZE")
    event_max_pages: int = Field(default=100, alias="EVENT_MAX_PAGES")
    metadata_job_batch_size: int = Field(default=200, alias="METADATA_JOB_BATCH_SIZE")
    backfill_batch_size: int = Field(default=2000, alias="BACKFILL_BATCH_SIZE")

    # Job orchestration
    orchestrator_poll_interval_seconds: float = Field(
        default=2.0, alias="ORCHESTRATOR_POLL_INTERVAL_SECONDS"
    )
    job_default_max_attempts: int = Field(default=3, alias="JOB_DEFAULT_MAX_ATTEMPTS")
    job_retry_base_ms: int = Field(default=5000, alias="JOB_RETRY_BASE_MS")

    # Webhook delivery
    webhook_max_attempts: int = Field(default=5, alias="WEBHOOK_MAX_ATTEMPTS")
    webhook_timeout_seconds: float = Field(default=10.0, alias="WEBHOOK_TIMEOUT_SECONDS")
    webhook_max_response_bytes: int = Field(default=2000, alias="WEBHOOK_MAX_RESPONSE_BYTES")

    # Metadata resolution
    metadata_fetch_timeout_seconds: float = Field(
        default=10.0, alias="METADATA_FETCH_TIMEOUT_SECONDS"
    )
    metadata_deadline_seconds: float = Field(default=30.0, alias="METADATA_DEADLINE_SECONDS")

    # IPFS pinning (Pinata)
    pinata_jwt: str = Field(default="", alias="PINATA_JWT")
    pinata_gateway: str = Field(default="gateway.pinata.cloud", alias="PINATA_GATEWAY")

    @property
    def ipfs_gateways(self) -> list[str]:
        """IPFS gateway base URLs in the order they are tried."""
        return [
            f"https://{self.pinata_gateway}/ipfs",
            "https://cloudflare-ipfs.com/ipfs",
            "https://ipfs.io/ipfs",
        ]

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Fails fast with a list of every missing variable. Validation is skipped
        in test environments.
        """
        if self.app_env in ("test", "testing"):
            return self

        missing = []

        if not self.starknet_rpc_url:
            missing.append("STARKNET_RPC_URL: JSON-RPC endpoint of a Starknet node (v0.7+)")

        if not self.pinata_jwt:
            missing.append("PINATA_JWT: Get your JWT token from https://pinata.cloud")

        if missing:
            error_msg = "CRITICAL: Missing required environment variables:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nThe application cannot start without these variables."
            error_msg += "\nPlease update your .env file and restart."
            raise ValueError(error_msg)

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability
    """
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    if settings.app_env == "production":
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=True,
        )
    else:
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.dev.ConsoleRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=True,
        )
