"""Create membership tables: users and credit_logs.

Revision ID: 001_membership_ledger
Revises:
Create Date: 2026-10-17

users carries approval status and the credit balance; credit_logs is the
append-only ledger of every balance or credit-driven status change.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_membership_ledger"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # IDs are generated application-side (uuid4), no DB extension needed.
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'PENDING'"),
        ),
        sa.Column(
            "role",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'USER'"),
        ),
        sa.Column(
            "credits",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "registration_date",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("last_credit_deduction", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "claims_invalidated_before", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("credits >= 0", name="ck_users_credits_nonneg"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'BLOCKED')",
            name="ck_users_status_valid",
        ),
        sa.CheckConstraint("role IN ('USER', 'ADMIN')", name="ck_users_role_valid"),
    )
    # Daily deduction and sweep select by status.
    op.create_index("ix_users_status", "users", ["status"])

    op.create_table(
        "credit_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "admin_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "type IN ('ADDED', 'DEDUCTED', 'DAILY_DEDUCTION')",
            name="ck_credit_logs_type_valid",
        ),
    )
    op.create_index("ix_credit_logs_user_id", "credit_logs", ["user_id"])
    op.create_index("ix_credit_logs_created_at", "credit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_credit_logs_created_at", table_name="credit_logs")
    op.drop_index("ix_credit_logs_user_id", table_name="credit_logs")
    op.drop_table("credit_logs")
    op.drop_index("ix_users_status", table_name="users")
    op.drop_table("users")
