"""add earning refunds

Revision ID: c83f1d5a2e64
Revises: a1c4e2f90b37
Create Date: 2026-10-25 15:03:27.518904

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "c83f1d5a2e64"
down_revision: Union[str, Sequence[str], None] = "a1c4e2f90b37"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        # ADD VALUE cannot run inside a transaction block
        with op.get_context().autocommit_block():
            op.execute("ALTER TYPE earning_status ADD VALUE IF NOT EXISTS 'refunded'")
            op.execute("ALTER TYPE notification_event ADD VALUE IF NOT EXISTS 'earning_refunded'")

    with op.batch_alter_table("seller_earnings") as batch_op:
        batch_op.add_column(
            sa.Column("refunded_amount", sa.BigInteger(), nullable=False, server_default="0")
        )
        batch_op.create_check_constraint(
            "ck_seller_earnings_refunded_non_negative",
            "refunded_amount >= 0",
        )


def downgrade() -> None:
    # Postgres cannot drop enum values: 'refunded' / 'earning_refunded' stay on the types
    with op.batch_alter_table("seller_earnings") as batch_op:
        batch_op.drop_constraint("ck_seller_earnings_refunded_non_negative", type_="check")
        batch_op.drop_column("refunded_amount")
