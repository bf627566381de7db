"""create assets and price_history tables

Revision ID: 20241020_01
Revises: None
Create Date: 2025-10-20 00:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20241020_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.String(length=120), nullable=False),
        sa.Column("symbol", sa.String(length=40), nullable=True),
        sa.Column("name", sa.String(length=120), nullable=True),
        sa.Column("current_price", sa.Double(), nullable=True),
        sa.Column("market_cap", sa.Double(), nullable=True),
        sa.Column("total_volume", sa.Double(), nullable=True),
        sa.Column("price_change_24h", sa.Double(), nullable=True),
        sa.Column("image_url", sa.String(length=255), nullable=True),
        sa.Column("market_cap_rank", sa.Integer(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_assets_id", "assets", ["id"], unique=False)
    op.create_unique_constraint("uq_assets_external_id", "assets", ["external_id"])

    op.create_table(
        "price_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("asset_id", sa.Integer(), sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("vs_currency", sa.String(length=10), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Double(), nullable=False),
        sa.Column("market_cap", sa.Double(), nullable=True),
        sa.Column("total_volume", sa.Double(), nullable=True),
    )
    op.create_index("ix_price_history_asset_id", "price_history", ["asset_id"], unique=False)
    op.create_unique_constraint(
        "uq_price_history_point",
        "price_history",
        ["asset_id", "vs_currency", "ts"],
    )


def downgrade() -> None:
    op.drop_constraint("uq_price_history_point", "price_history", type_="unique")
    op.drop_index("ix_price_history_asset_id", table_name="price_history")
    op.drop_table("price_history")
    op.drop_constraint("uq_assets_external_id", "assets", type_="unique")
    op.drop_index("ix_assets_id", table_name="assets")
    op.drop_table("assets")
