"""Add pantry items

Revision ID: 8b2e6f4c1d93
Revises: 3f9c1a7d2b40
Create Date: 2026-10-16 14:03:27.559021

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8b2e6f4c1d93"
down_revision: str | None = "3f9c1a7d2b40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "pantry_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("location_id", sa.Uuid(), nullable=False),
        sa.Column("expiration_date", sa.Date(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("unit_of_measure", sa.String(length=50), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_pantry_items_product_id"), "pantry_items", ["product_id"], unique=False)
    op.create_index(op.f("ix_pantry_items_location_id"), "pantry_items", ["location_id"], unique=False)
    op.create_index(op.f("ix_pantry_items_expiration_date"), "pantry_items", ["expiration_date"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_pantry_items_expiration_date"), table_name="pantry_items")
    op.drop_index(op.f("ix_pantry_items_location_id"), table_name="pantry_items")
    op.drop_index(op.f("ix_pantry_items_product_id"), table_name="pantry_items")
    op.drop_table("pantry_items")
