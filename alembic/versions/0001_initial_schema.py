"""Initial schema for users, properties, transactions, votings and audit logs."""

from __future__ import annotations
from typing import Union, Sequence

from alembic import op
import sqlalchemy as sa
from estateshare.models.types import GUID, JSONType

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Initial schema for users, properties, transactions, votings and audit logs."""
    user_role_ref = sa.Enum("user", "admin", name="user_role", native_enum=False, length=32)
    property_status_ref = sa.Enum(
        "listed",
        "crowdfunding",
        "funded",
        "sold",
        name="property_status",
        native_enum=False,
        length=32,
    )
    transaction_type_ref = sa.Enum(
        "investment",
        "refund",
        "dividend",
        name="transaction_type",
        native_enum=False,
        length=32,
    )
    transaction_status_ref = sa.Enum(
        "pending",
        "completed",
        "failed",
        "refunded",
        name="transaction_status",
        native_enum=False,
        length=32,
    )
    voting_status_ref = sa.Enum(
        "active",
        "completed",
        "cancelled",
        name="voting_status",
        native_enum=False,
        length=32,
    )
    vote_choice_ref = sa.Enum("yes", "no", name="vote_choice", native_enum=False, length=32)

    op.create_table(
        "users",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("role", user_role_ref, nullable=False),
        sa.Column("reset_password_token_hash", sa.String(length=128), nullable=True),
        sa.Column("reset_password_expires", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_reset_token", "users", ["reset_password_token_hash"], unique=False)

    op.create_table(
        "properties",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", JSONType(), nullable=False),
        sa.Column("total_value", sa.Float(), nullable=False),
        sa.Column("total_tokens", sa.Integer(), nullable=False),
        sa.Column("token_price", sa.Float(), nullable=False),
        sa.Column("images", JSONType(), nullable=False),
        sa.Column("status", property_status_ref, nullable=False),
        sa.Column("created_by_id", GUID(), nullable=False),
        sa.Column("crowdfunding_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("crowdfunding_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("crowdfunding_description", sa.Text(), nullable=True),
        sa.Column("current_amount", sa.Float(), nullable=False),
        sa.Column("tokens_sold", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_value > 0", name="ck_properties_total_value_positive"),
        sa.CheckConstraint("total_tokens >= 1", name="ck_properties_total_tokens_min"),
        sa.CheckConstraint("tokens_sold <= total_tokens", name="ck_properties_tokens_sold_cap"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], name=op.f("fk_properties_created_by_id_users")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_properties")),
    )
    op.create_index("ix_properties_status", "properties", ["status"], unique=False)
    op.create_index("ix_properties_created_by", "properties", ["created_by_id"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("property_id", GUID(), nullable=False),
        sa.Column("type", transaction_type_ref, nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("tokens", sa.Integer(), nullable=True),
        sa.Column("status", transaction_status_ref, nullable=False),
        sa.Column("stripe_payment_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_charge_id", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("metadata", JSONType(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
        sa.CheckConstraint(
            "type != 'investment' OR (tokens IS NOT NULL AND tokens >= 1)",
            name="ck_transactions_investment_tokens",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name=op.f("fk_transactions_user_id_users")),
        sa.ForeignKeyConstraint(
            ["property_id"], ["properties.id"], name=op.f("fk_transactions_property_id_properties")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_transactions")),
        sa.UniqueConstraint("stripe_payment_id", name="uq_transactions_stripe_payment_id"),
    )
    op.create_index("ix_transactions_user_created", "transactions", ["user_id", "created_at"], unique=False)
    op.create_index(
        "ix_transactions_property_created", "transactions", ["property_id", "created_at"], unique=False
    )

    op.create_table(
        "property_investors",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("property_id", GUID(), nullable=False),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("transaction_id", GUID(), nullable=True),
        sa.Column("tokens", sa.Integer(), nullable=False),
        sa.Column("invested_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("tokens >= 1", name="ck_property_investors_tokens_min"),
        sa.ForeignKeyConstraint(
            ["property_id"],
            ["properties.id"],
            name=op.f("fk_property_investors_property_id_properties"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name=op.f("fk_property_investors_user_id_users")),
        sa.ForeignKeyConstraint(
            ["transaction_id"],
            ["transactions.id"],
            name=op.f("fk_property_investors_transaction_id_transactions"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_property_investors")),
    )
    op.create_index("ix_property_investors_property", "property_investors", ["property_id"], unique=False)
    op.create_index("ix_property_investors_user", "property_investors", ["user_id"], unique=False)

    op.create_table(
        "votings",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("property_id", GUID(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", voting_status_ref, nullable=False),
        sa.Column("created_by_id", GUID(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], name=op.f("fk_votings_property_id_properties")),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], name=op.f("fk_votings_created_by_id_users")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_votings")),
    )
    op.create_index("ix_votings_property", "votings", ["property_id"], unique=False)
    op.create_index("ix_votings_status", "votings", ["status"], unique=False)

    op.create_table(
        "votes",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("voting_id", GUID(), nullable=False),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("choice", vote_choice_ref, nullable=False),
        sa.Column("tokens", sa.Integer(), nullable=False),
        sa.Column("voted_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("tokens >= 1", name="ck_votes_tokens_min"),
        sa.ForeignKeyConstraint(
            ["voting_id"], ["votings.id"], name=op.f("fk_votes_voting_id_votings"), ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name=op.f("fk_votes_user_id_users")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_votes")),
        sa.UniqueConstraint("voting_id", "user_id", name="uq_votes_voting_user"),
    )
    op.create_index("ix_votes_user", "votes", ["user_id"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("action", sa.String(length=120), nullable=False),
        sa.Column("actor_id", GUID(), nullable=True),
        sa.Column("entity_id", GUID(), nullable=True),
        sa.Column("entity_type", sa.String(length=64), nullable=True),
        sa.Column("details", JSONType(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_logs")),
    )
    op.create_index("ix_audit_logs_actor", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_votes_user", table_name="votes")
    op.drop_table("votes")
    op.drop_index("ix_votings_status", table_name="votings")
    op.drop_index("ix_votings_property", table_name="votings")
    op.drop_table("votings")
    op.drop_index("ix_property_investors_user", table_name="property_investors")
    op.drop_index("ix_property_investors_property", table_name="property_investors")
    op.drop_table("property_investors")
    op.drop_index("ix_transactions_property_created", table_name="transactions")
    op.drop_index("ix_transactions_user_created", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_properties_created_by", table_name="properties")
    op.drop_index("ix_properties_status", table_name="properties")
    op.drop_table("properties")
    op.drop_index("ix_users_reset_token", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
