"""create earnings schema

Revision ID: a1c4e2f90b37
Revises:
Create Date: 2026-10-18 09:12:44.201337

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c4e2f90b37"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum("customer", "seller", "manager", "admin", name="user_role")
order_status = sa.Enum(
    "pending_payment",
    "paid",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "refunded",
    "partially_refunded",
    "completed",
    "failed",
    name="order_status",
)
fulfillment_status = sa.Enum(
    "pending", "processing", "shipped", "delivered", "cancelled", name="fulfillment_status"
)
earning_status = sa.Enum("pending", "available", "paid", name="earning_status")
payout_method = sa.Enum("bank_transfer", "paypal", "stripe_connect", name="payout_method")
payout_status = sa.Enum("pending_approval", "approved", "rejected", "completed", name="payout_status")
notification_event = sa.Enum(
    "earning_created",
    "earnings_available",
    "payout_requested",
    "payout_approved",
    "payout_rejected",
    "payout_completed",
    name="notification_event",
)


def _timestamps(*names: str) -> list:
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True)
        for name in names
    ]


def upgrade() -> None:
    """
    Single owned schema for orders, sub-orders, seller earnings and payouts.
    Column names are fixed here: the code never checks which columns exist.
    """
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=150), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps("created_at"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("price", sa.BigInteger(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps("created_at"),
    )
    op.create_index(op.f("ix_products_id"), "products", ["id"], unique=False)
    op.create_index(op.f("ix_products_seller_id"), "products", ["seller_id"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("guest_email", sa.String(length=255), nullable=True),
        sa.Column("basket", sa.JSON(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("payment_intent_id", sa.String(length=255), nullable=True, unique=True),
        sa.Column("split_error", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_index(op.f("ix_orders_id"), "orders", ["id"], unique=False)
    op.create_index(op.f("ix_orders_user_id"), "orders", ["user_id"], unique=False)

    op.create_table(
        "sub_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("parent_order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("total_amount", sa.BigInteger(), nullable=False),
        sa.Column("fulfillment_status", fulfillment_status, nullable=False),
        *_timestamps("created_at"),
        sa.UniqueConstraint("parent_order_id", "seller_id", name="uq_sub_orders_parent_seller"),
    )
    op.create_index(op.f("ix_sub_orders_id"), "sub_orders", ["id"], unique=False)
    op.create_index(op.f("ix_sub_orders_parent_order_id"), "sub_orders", ["parent_order_id"], unique=False)
    op.create_index(op.f("ix_sub_orders_seller_id"), "sub_orders", ["seller_id"], unique=False)

    op.create_table(
        "seller_earnings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("sub_order_id", sa.Integer(), sa.ForeignKey("sub_orders.id"), nullable=False, unique=True),
        sa.Column("gross_amount", sa.BigInteger(), nullable=False),
        sa.Column("commission_rate", sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column("commission_amount", sa.BigInteger(), nullable=False),
        sa.Column("processing_fee", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("net_amount", sa.BigInteger(), nullable=False),
        sa.Column("reserved_amount", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("paid_amount", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("status", earning_status, nullable=False),
        sa.Column("available_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.CheckConstraint("net_amount >= 0", name="ck_seller_earnings_net_non_negative"),
        sa.CheckConstraint(
            "reserved_amount >= 0 AND paid_amount >= 0 "
            "AND reserved_amount + paid_amount <= net_amount",
            name="ck_seller_earnings_ledger_bounds",
        ),
    )
    op.create_index(op.f("ix_seller_earnings_id"), "seller_earnings", ["id"], unique=False)
    op.create_index(op.f("ix_seller_earnings_seller_id"), "seller_earnings", ["seller_id"], unique=False)
    op.create_index(op.f("ix_seller_earnings_order_id"), "seller_earnings", ["order_id"], unique=False)
    op.create_index(op.f("ix_seller_earnings_status"), "seller_earnings", ["status"], unique=False)

    op.create_table(
        "payouts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("method", payout_method, nullable=False),
        sa.Column("account_details", sa.JSON(), nullable=False),
        sa.Column("status", payout_status, nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transfer_reference", sa.String(length=255), nullable=True),
    )
    op.create_index(op.f("ix_payouts_id"), "payouts", ["id"], unique=False)
    op.create_index(op.f("ix_payouts_seller_id"), "payouts", ["seller_id"], unique=False)
    op.create_index(op.f("ix_payouts_status"), "payouts", ["status"], unique=False)

    op.create_table(
        "payout_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("payout_id", sa.Integer(), sa.ForeignKey("payouts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("earning_id", sa.Integer(), sa.ForeignKey("seller_earnings.id"), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
    )
    op.create_index(op.f("ix_payout_items_id"), "payout_items", ["id"], unique=False)
    op.create_index(op.f("ix_payout_items_payout_id"), "payout_items", ["payout_id"], unique=False)
    op.create_index(op.f("ix_payout_items_earning_id"), "payout_items", ["earning_id"], unique=False)

    op.create_table(
        "commission_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("default_rate", sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column("seller_custom_rates", sa.JSON(), nullable=False),
        sa.Column("processing_fee_pct", sa.Numeric(precision=5, scale=3), nullable=False, server_default="0"),
        sa.Column("processing_fee_fixed", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("updated_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps("updated_at"),
    )
    op.create_index(op.f("ix_commission_settings_id"), "commission_settings", ["id"], unique=False)

    op.create_table(
        "payout_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("holding_period_days", sa.Integer(), nullable=False),
        sa.Column("minimum_payout_amount", sa.BigInteger(), nullable=False),
        sa.Column("maximum_payout_amount", sa.BigInteger(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("updated_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps("updated_at"),
    )
    op.create_index(op.f("ix_payout_settings_id"), "payout_settings", ["id"], unique=False)

    op.create_table(
        "seller_notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event", notification_event, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps("created_at"),
    )
    op.create_index(op.f("ix_seller_notifications_id"), "seller_notifications", ["id"], unique=False)
    op.create_index(op.f("ix_seller_notifications_seller_id"), "seller_notifications", ["seller_id"], unique=False)


def downgrade() -> None:
    for table in (
        "seller_notifications",
        "payout_settings",
        "commission_settings",
        "payout_items",
        "payouts",
        "seller_earnings",
        "sub_orders",
        "orders",
        "products",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        notification_event,
        payout_status,
        payout_method,
        earning_status,
        fulfillment_status,
        order_status,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
