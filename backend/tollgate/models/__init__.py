"""SQLAlchemy ORM models.

Import order follows FK dependencies: users first, then credit_logs.
"""

from tollgate.models.base import Base, TimestampMixin
from tollgate.models.user import User, UserRole, UserStatus
from tollgate.models.credit_log import CreditLog, CreditLogType

__all__ = [
    "Base",
    "CreditLog",
    "CreditLogType",
    "TimestampMixin",
    "User",
    "UserRole",
    "UserStatus",
]
