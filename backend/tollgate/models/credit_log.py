"""CreditLog model - append-only credit ledger, no TimestampMixin.

One row per change to a user's credits or credit-driven status. Rows are
never updated or deleted; history is permanent.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tollgate.models.base import Base

if TYPE_CHECKING:
    from tollgate.models.user import User


class CreditLogType(str, Enum):
    """Classification of a ledger entry."""

    ADDED = "ADDED"
    DEDUCTED = "DEDUCTED"
    DAILY_DEDUCTION = "DAILY_DEDUCTION"


class CreditLog(Base):
    """Immutable ledger entry.

    Positive amounts = credits added. Negative amounts = deductions.
    Zero amounts = status-only corrections (automatic blocking).

    Attributes:
        id: UUID primary key.
        user_id: FK to the affected user.
        admin_id: FK to the admin who caused the change. NULL = system.
        amount: Signed credit delta actually applied.
        type: One of CreditLogType.
        reason: Human-readable reason.
        created_at: Entry timestamp, immutable ordering key.
    """

    __tablename__ = "credit_logs"
    __table_args__ = (
        CheckConstraint(
            "type IN ('ADDED', 'DEDUCTED', 'DAILY_DEDUCTION')",
            name="ck_credit_logs_type_valid",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    admin_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="credit_logs",
        foreign_keys=[user_id],
    )
