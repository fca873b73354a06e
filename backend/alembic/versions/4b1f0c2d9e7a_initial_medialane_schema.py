"""initial_medialane_schema

Revision ID: 4b1f0c2d9e7a
Revises:
Create Date: 2026-10-17 09:12:41.380254

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4b1f0c2d9e7a"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

order_status = sa.Enum("ACTIVE", "FULFILLED", "CANCELLED", "EXPIRED", name="orderstatus")
metadata_status = sa.Enum("PENDING", "FETCHING", "FETCHED", "FAILED", name="metadatastatus")
job_status = sa.Enum("PENDING", "PROCESSING", "DONE", "FAILED", name="jobstatus")
tenant_status = sa.Enum("ACTIVE", "SUSPENDED", name="tenantstatus")
endpoint_status = sa.Enum("ACTIVE", "DISABLED", name="webhookendpointstatus")
webhook_event_type = sa.Enum(
    "ORDER_CREATED", "ORDER_FULFILLED", "ORDER_CANCELLED", "TRANSFER", name="webhookeventtype"
)


def upgrade() -> None:
    """Create mirror, job queue, webhook and metadata cache tables."""
    # Chain mirror
    op.create_table(
        "indexer_cursors",
        sa.Column("chain", sa.String(length=32), nullable=False),
        sa.Column("last_block", sa.BigInteger(), nullable=False),
        sa.Column("continuation_token", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("chain"),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("chain", sa.String(length=32), nullable=False),
        sa.Column("order_hash", sa.String(length=66), nullable=False),
        sa.Column("offerer", sa.String(length=66), nullable=False),
        sa.Column("offer_item_type", sa.String(length=32), nullable=False),
        sa.Column("offer_token", sa.String(length=66), nullable=False),
        sa.Column("offer_identifier", sa.String(), nullable=False),
        sa.Column("offer_start_amount", sa.String(), nullable=False),
        sa.Column("offer_end_amount", sa.String(), nullable=False),
        sa.Column("consideration_item_type", sa.String(length=32), nullable=False),
        sa.Column("consideration_token", sa.String(length=66), nullable=False),
        sa.Column("consideration_identifier", sa.String(), nullable=False),
        sa.Column("consideration_start_amount", sa.String(), nullable=False),
        sa.Column("consideration_end_amount", sa.String(), nullable=False),
        sa.Column("consideration_recipient", sa.String(length=66), nullable=False),
        sa.Column("start_time", sa.Numeric(20, 0), nullable=False),
        sa.Column("end_time", sa.Numeric(20, 0), nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("nft_contract", sa.String(length=66), nullable=True),
        sa.Column("nft_token_id", sa.String(), nullable=True),
        sa.Column("price_raw", sa.String(), nullable=True),
        sa.Column("price_formatted", sa.String(), nullable=True),
        sa.Column("currency_symbol", sa.String(length=16), nullable=True),
        sa.Column("fulfiller", sa.String(length=66), nullable=True),
        sa.Column("created_block_number", sa.BigInteger(), nullable=False),
        sa.Column("created_tx_hash", sa.String(length=66), nullable=False),
        sa.Column("fulfilled_tx_hash", sa.String(length=66), nullable=True),
        sa.Column("cancelled_tx_hash", sa.String(length=66), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("chain", "order_hash", name="uq_orders_chain_order_hash"),
    )
    op.create_index("ix_orders_order_hash", "orders", ["order_hash"])
    op.create_index("ix_orders_offerer", "orders", ["offerer"])
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_nft_contract", "orders", ["nft_contract"])

    op.create_table(
        "collections",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("chain", sa.String(length=32), nullable=False),
        sa.Column("contract_address", sa.String(length=66), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("start_block", sa.BigInteger(), nullable=False),
        sa.Column("is_known", sa.Boolean(), nullable=False),
        sa.Column("holder_count", sa.Integer(), nullable=False),
        sa.Column("total_supply", sa.Integer(), nullable=False),
        sa.Column("floor_price", sa.String(), nullable=True),
        sa.Column("total_volume", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("chain", "contract_address", name="uq_collections_chain_contract"),
    )
    op.create_index("ix_collections_contract_address", "collections", ["contract_address"])

    op.create_table(
        "tokens",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("chain", sa.String(length=32), nullable=False),
        sa.Column("contract_address", sa.String(length=66), nullable=False),
        sa.Column("token_id", sa.String(length=80), nullable=False),
        sa.Column("owner", sa.String(length=66), nullable=False),
        sa.Column("token_uri", sa.String(), nullable=True),
        sa.Column("metadata_status", metadata_status, nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("image", sa.String(), nullable=True),
        sa.Column("attributes", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("chain", "contract_address", "token_id", name="uq_tokens_natural_key"),
        sa.ForeignKeyConstraint(
            ["chain", "contract_address"],
            ["collections.chain", "collections.contract_address"],
            name="fk_tokens_collection",
        ),
    )
    op.create_index("ix_tokens_contract_address", "tokens", ["contract_address"])
    op.create_index("ix_tokens_owner", "tokens", ["owner"])
    op.create_index("ix_tokens_metadata_status", "tokens", ["metadata_status"])

    op.create_table(
        "transfers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("chain", sa.String(length=32), nullable=False),
        sa.Column("contract_address", sa.String(length=66), nullable=False),
        sa.Column("token_id", sa.String(length=80), nullable=False),
        sa.Column("from_address", sa.String(length=66), nullable=False),
        sa.Column("to_address", sa.String(length=66), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("tx_hash", sa.String(length=66), nullable=False),
        sa.Column("log_index", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "chain", "contract_address", "token_id", "tx_hash", "log_index", name="uq_transfers_event"
        ),
    )
    op.create_index("ix_transfers_contract_address", "transfers", ["contract_address"])
    op.create_index("ix_transfers_block_number", "transfers", ["block_number"])

    # Job queue
    op.create_table(
        "jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", job_status, nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("process_after", sa.DateTime(), nullable=False),
        sa.Column("error", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_jobs_status_process_after", "jobs", ["status", "process_after"])

    # Webhooks
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", tenant_status, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "webhook_endpoints",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("secret", sa.String(length=255), nullable=False),
        sa.Column("events", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", endpoint_status, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
    )
    op.create_index("ix_webhook_endpoints_tenant_id", "webhook_endpoints", ["tenant_id"])
    op.create_index("ix_webhook_endpoints_status", "webhook_endpoints", ["status"])

    op.create_table(
        "webhook_deliveries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("endpoint_id", sa.Uuid(), nullable=False),
        sa.Column("event_type", webhook_event_type, nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.String(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["endpoint_id"], ["webhook_endpoints.id"]),
        sa.ForeignKeyConstraint(["job_id"], ["jobs.id"]),
    )
    op.create_index("ix_webhook_deliveries_endpoint_id", "webhook_deliveries", ["endpoint_id"])

    # Metadata cache
    op.create_table(
        "metadata_cache",
        sa.Column("uri", sa.String(), nullable=False),
        sa.Column("resolved_url", sa.String(), nullable=True),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("fetched_at", sa.DateTime(), nullable=False),
        sa.Column("ttl_seconds", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("uri"),
    )


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_table("metadata_cache")
    op.drop_index("ix_webhook_deliveries_endpoint_id", table_name="webhook_deliveries")
    op.drop_table("webhook_deliveries")
    op.drop_index("ix_webhook_endpoints_status", table_name="webhook_endpoints")
    op.drop_index("ix_webhook_endpoints_tenant_id", table_name="webhook_endpoints")
    op.drop_table("webhook_endpoints")
    op.drop_table("tenants")
    op.drop_index("ix_jobs_status_process_after", table_name="jobs")
    op.drop_table("jobs")
    op.drop_index("ix_transfers_block_number", table_name="transfers")
    op.drop_index("ix_transfers_contract_address", table_name="transfers")
    op.drop_table("transfers")
    op.drop_index("ix_tokens_metadata_status", table_name="tokens")
    op.drop_index("ix_tokens_owner", table_name="tokens")
    op.drop_index("ix_tokens_contract_address", table_name="tokens")
    op.drop_table("tokens")
    op.drop_index("ix_collections_contract_address", table_name="collections")
    op.drop_table("collections")
    op.drop_index("ix_orders_nft_contract", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_offerer", table_name="orders")
    op.drop_index("ix_orders_order_hash", table_name="orders")
    op.drop_table("orders")
    op.drop_table("indexer_cursors")

    bind = op.get_bind()
    for enum_type in (
        webhook_event_type,
        endpoint_status,
        tenant_status,
        job_status,
        metadata_status,
        order_status,
    ):
        enum_type.drop(bind, checkfirst=True)
