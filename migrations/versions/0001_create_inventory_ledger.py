"""
Create inventory ledger tables, stock view and movement protection trigger.

Revision ID: 0001_inventory_ledger
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from pgsql_scripts.functions import protect_movement_identity_func
from pgsql_scripts.triggers import trg_before_delete_movements, trg_before_update_movements
from pgsql_scripts.views import stock_view


# revision identifiers, used by Alembic.
revision: str = "0001_inventory_ledger"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS inventory")

    op.create_table(
        "shipping_methods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        schema="inventory",
    )

    op.create_table(
        "movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=100), nullable=False),
        sa.Column("article", sa.String(length=255), nullable=False),
        sa.Column("qty_delta", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=20), nullable=False),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("purchase_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("sale_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("delivery_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("box_number", sa.String(length=50), nullable=True),
        sa.Column("track_number", sa.String(length=100), nullable=True),
        sa.Column(
            "shipping_method_id",
            sa.Integer(),
            sa.ForeignKey("inventory.shipping_methods.id"),
            nullable=True,
        ),
        sa.Column("sale_status", sa.String(length=30), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("qty_delta <> 0", name="ck_movements_qty_delta_nonzero"),
        sa.CheckConstraint(
            "reason IN ('purchase', 'sale', 'return', 'writeoff')", name="ck_movements_reason"
        ),
        schema="inventory",
    )
    op.create_index("ix_inventory_movements_code", "movements", ["code"], schema="inventory")
    op.create_index("ix_inventory_movements_note", "movements", ["note"], schema="inventory")

    op.create_entity(protect_movement_identity_func)
    op.create_entity(trg_before_update_movements)
    op.create_entity(trg_before_delete_movements)
    op.create_entity(stock_view)


def downgrade() -> None:
    op.drop_entity(stock_view)
    op.drop_entity(trg_before_delete_movements)
    op.drop_entity(trg_before_update_movements)
    op.drop_entity(protect_movement_identity_func)
    op.drop_index("ix_inventory_movements_note", table_name="movements", schema="inventory")
    op.drop_index("ix_inventory_movements_code", table_name="movements", schema="inventory")
    op.drop_table("movements", schema="inventory")
    op.drop_table("shipping_methods", schema="inventory")
