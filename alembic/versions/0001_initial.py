"""initial schema: shops, webhook deliveries

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "shops",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("shop_domain", sa.String(255), nullable=False, unique=True),
        sa.Column("access_token", sa.Text, nullable=False),
        sa.Column("installed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_shops_shop_domain", "shops", ["shop_domain"], unique=True)

    op.create_table(
        "webhook_deliveries",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("delivery_id", sa.String(128), nullable=False, unique=True),
        sa.Column("shop_domain", sa.String(255), nullable=True),
        sa.Column("topic", sa.String(128)),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_webhook_deliveries_shop_domain", "webhook_deliveries", ["shop_domain"])

def downgrade():
    op.drop_index("ix_webhook_deliveries_shop_domain", table_name="webhook_deliveries")
    op.drop_table("webhook_deliveries")

    op.drop_index("ix_shops_shop_domain", table_name="shops")
    op.drop_table("shops")
