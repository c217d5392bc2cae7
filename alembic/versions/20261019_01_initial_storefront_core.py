"""Storefront core tables.

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


ORDER_STATUS = sa.Enum(
    "pending", "paid", "shipped", "delivered", "cancelled", "refunded", name="order_status_enum"
)
ORDER_CREATOR = sa.Enum("user", "admin", name="order_creator_enum")
ORDER_EVENT_TYPE = sa.Enum("state_change", "note", name="order_state_event_type_enum")
ORDER_ACTOR_TYPE = sa.Enum("system", "customer", "admin", name="order_state_actor_type_enum")
REDEMPTION_STATUS = sa.Enum(
    "pending", "confirmed", "shipped", "delivered", "cancelled", name="redemption_status_enum"
)
FULFILLMENT_METHOD = sa.Enum("pickup", "shipping", name="redemption_fulfillment_method_enum")
LEDGER_ENTRY_TYPE = sa.Enum(
    "order_earn",
    "order_spend",
    "redeem",
    "redeem_refund",
    "referral_welcome",
    "referral_bonus",
    "adjustment",
    name="points_ledger_entry_type",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("tax_id", sa.String(32), nullable=True),
        sa.Column("role", sa.String(16), nullable=False, server_default="client"),
        sa.Column("account_type", sa.String(16), nullable=False, server_default="standard"),
        sa.Column("points_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lifetime_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tier", sa.String(16), nullable=False, server_default="bronce"),
        sa.Column("referral_code", sa.String(16), nullable=False),
        sa.Column("referred_by", sa.String(16), nullable=True),
        sa.Column("addresses", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("points_balance >= 0", name="ck_users_points_balance_non_negative"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_referral_code", "users", ["referral_code"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("code", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points_cost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points_reward", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_redeemable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("origin", sa.String(16), nullable=False, server_default="store"),
        *_timestamps(),
        sa.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        sa.CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        sa.CheckConstraint("points_cost >= 0", name="ck_products_points_cost_non_negative"),
    )

    op.create_table(
        "orders",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("order_number", sa.String(), nullable=False, unique=True),
        sa.Column("user_id", _uuid(), nullable=False),
        sa.Column("status", ORDER_STATUS, nullable=False, server_default="pending"),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("tier_discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("points_discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("points_spent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shipping_address", sa.JSON(), nullable=True),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", ORDER_CREATOR, nullable=False, server_default="user"),
        sa.Column("admin_id", sa.String(64), nullable=True),
        sa.Column("admin_name", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        sa.CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
        sa.CheckConstraint("points_spent >= 0", name="ck_orders_points_spent_non_negative"),
        sa.CheckConstraint("points_earned >= 0", name="ck_orders_points_earned_non_negative"),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])

    op.create_table(
        "order_items",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("order_id", _uuid(), nullable=False),
        sa.Column("product_id", _uuid(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("product_code", sa.String(), nullable=False),
        sa.Column("product_name", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="SET NULL"),
        sa.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    op.create_table(
        "order_state_events",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("order_id", _uuid(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("event_type", ORDER_EVENT_TYPE, nullable=False),
        sa.Column("actor_type", ORDER_ACTOR_TYPE, nullable=True),
        sa.Column("actor_id", sa.String(255), nullable=True),
        sa.Column("actor_label", sa.String(255), nullable=True),
        sa.Column("from_status", sa.String(64), nullable=True),
        sa.Column("to_status", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("order_id", "sequence", name="uq_order_state_events_sequence"),
    )
    op.create_index("ix_order_state_events_order_id", "order_state_events", ["order_id"])

    op.create_table(
        "redemptions",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), nullable=False),
        sa.Column("product_id", _uuid(), nullable=False),
        sa.Column("points_spent", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("fulfillment_method", FULFILLMENT_METHOD, nullable=False, server_default="pickup"),
        sa.Column("status", REDEMPTION_STATUS, nullable=False, server_default="pending"),
        sa.Column("shipping_address", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("stock_reserved", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("points_spent > 0", name="ck_redemptions_points_spent_positive"),
        sa.CheckConstraint("quantity = 1", name="ck_redemptions_single_unit"),
    )
    op.create_index("ix_redemptions_user_id", "redemptions", ["user_id"])

    op.create_table(
        "redemption_state_events",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("redemption_id", _uuid(), nullable=False),
        sa.Column("from_status", sa.String(64), nullable=True),
        sa.Column("to_status", sa.String(64), nullable=False),
        sa.Column("actor_label", sa.String(255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["redemption_id"], ["redemptions.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_redemption_state_events_redemption_id", "redemption_state_events", ["redemption_id"])

    op.create_table(
        "points_ledger_entries",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), nullable=False),
        sa.Column("entry_type", LEDGER_ENTRY_TYPE, nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("reference", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_points_ledger_entries_user_id", "points_ledger_entries", ["user_id"])
    op.create_index("ix_points_ledger_entries_reference", "points_ledger_entries", ["reference"])

    op.create_table(
        "sessions",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("session_token", sa.String(), nullable=False),
        sa.Column("user_id", _uuid(), nullable=False),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=False),
        sa.Column("role_snapshot", sa.String(16), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_sessions_session_token", "sessions", ["session_token"], unique=True)
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_sessions_user_id", table_name="sessions")
    op.drop_index("ix_sessions_session_token", table_name="sessions")
    op.drop_table("sessions")
    op.drop_index("ix_points_ledger_entries_reference", table_name="points_ledger_entries")
    op.drop_index("ix_points_ledger_entries_user_id", table_name="points_ledger_entries")
    op.drop_table("points_ledger_entries")
    op.drop_index("ix_redemption_state_events_redemption_id", table_name="redemption_state_events")
    op.drop_table("redemption_state_events")
    op.drop_index("ix_redemptions_user_id", table_name="redemptions")
    op.drop_table("redemptions")
    op.drop_index("ix_order_state_events_order_id", table_name="order_state_events")
    op.drop_table("order_state_events")
    op.drop_table("order_items")
    op.drop_index("ix_orders_user_id", table_name="orders")
    op.drop_table("orders")
    op.drop_table("products")
    op.drop_index("ix_users_referral_code", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        LEDGER_ENTRY_TYPE,
        FULFILLMENT_METHOD,
        REDEMPTION_STATUS,
        ORDER_ACTOR_TYPE,
        ORDER_EVENT_TYPE,
        ORDER_CREATOR,
        ORDER_STATUS,
    ):
        enum_type.drop(bind, checkfirst=True)
