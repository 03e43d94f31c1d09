"""create_billing_tables

Revision ID: 3f8a1c2d9b47
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f8a1c2d9b47'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Step 1: Users (mirrored from the identity provider)
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Step 2: Customer mappings, one live row per user
    op.create_table(
        "stripe_customers",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("customer_id", sa.String(length=255), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_id"),
    )
    op.create_index("ix_stripe_customers_user_id", "stripe_customers", ["user_id"])
    op.create_index(
        "uq_stripe_customers_user_id_live",
        "stripe_customers",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    # Step 3: Subscription records, one per customer, overwritten by sync
    op.create_table(
        "stripe_subscriptions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("customer_id", sa.String(length=255), nullable=False),
        sa.Column("subscription_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("price_id", sa.String(length=255), nullable=True),
        sa.Column("product_limit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_period_start", sa.BigInteger(), nullable=True),
        sa.Column("current_period_end", sa.BigInteger(), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("trial_start", sa.BigInteger(), nullable=True),
        sa.Column("trial_end", sa.BigInteger(), nullable=True),
        sa.Column("is_trial_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payment_method_brand", sa.String(length=50), nullable=True),
        sa.Column("payment_method_last4", sa.String(length=4), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["customer_id"], ["stripe_customers.customer_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_stripe_subscriptions_customer_id", "stripe_subscriptions", ["customer_id"], unique=True
    )

    # Step 4: One-time orders
    op.create_table(
        "stripe_orders",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("checkout_session_id", sa.String(length=255), nullable=False),
        sa.Column("payment_intent_id", sa.String(length=255), nullable=True),
        sa.Column("customer_id", sa.String(length=255), nullable=False),
        sa.Column("amount_subtotal", sa.BigInteger(), nullable=True),
        sa.Column("amount_total", sa.BigInteger(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("payment_status", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("checkout_session_id"),
    )
    op.create_index("ix_stripe_orders_customer_id", "stripe_orders", ["customer_id"])

    # Step 5: Trial email ledger
    op.create_table(
        "trial_emails",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("email_type", sa.String(length=50), nullable=False),
        sa.Column("sent_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_trial_emails_user_id", "trial_emails", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_trial_emails_user_id", table_name="trial_emails")
    op.drop_table("trial_emails")
    op.drop_index("ix_stripe_orders_customer_id", table_name="stripe_orders")
    op.drop_table("stripe_orders")
    op.drop_index("ix_stripe_subscriptions_customer_id", table_name="stripe_subscriptions")
    op.drop_table("stripe_subscriptions")
    op.drop_index("uq_stripe_customers_user_id_live", table_name="stripe_customers")
    op.drop_index("ix_stripe_customers_user_id", table_name="stripe_customers")
    op.drop_table("stripe_customers")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
