"""User model - membership account and current credit balance.

The users row carries both halves of the access state: approval status
and credit balance. They are independent conditions; a user can be
APPROVED with 0 credits for the short window before the block lands.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tollgate.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from tollgate.models.credit_log import CreditLog


class UserStatus(str, Enum):
    """Approval/access status of a membership account."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    BLOCKED = "BLOCKED"


class UserRole(str, Enum):
    """The two roles the platform knows about."""

    USER = "USER"
    ADMIN = "ADMIN"


class User(Base, TimestampMixin):
    """Membership account.

    Attributes:
        id: UUID primary key (generated application-side).
        email: Unique email address, stored lowercase.
        password_hash: bcrypt hash.
        status: One of UserStatus.
        role: One of UserRole.
        credits: Current credit balance. Never negative.
        registration_date: When the account was registered.
        last_credit_deduction: Last daily deduction applied. NULL = never.
        claims_invalidated_before: Session claims issued before this must
            be re-read from this row.
        created_at: Row creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        CheckConstraint("credits >= 0", name="ck_users_credits_nonneg"),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'BLOCKED')",
            name="ck_users_status_valid",
        ),
        CheckConstraint("role IN ('USER', 'ADMIN')", name="ck_users_role_valid"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        server_default=text("'PENDING'"),
        default=UserStatus.PENDING.value,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=text("'USER'"),
        default=UserRole.USER.value,
    )
    credits: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
        default=0,
    )
    registration_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    last_credit_deduction: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    claims_invalidated_before: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    # Relationships
    credit_logs: Mapped[list["CreditLog"]] = relationship(
        "CreditLog",
        back_populates="user",
        foreign_keys="CreditLog.user_id",
        order_by="CreditLog.created_at.desc()",
        lazy="raise",
    )
