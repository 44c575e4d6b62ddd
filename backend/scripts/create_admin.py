"""Bootstrap an admin account.

Registration only ever creates PENDING users, so the first admin has to
be created out of band.

Usage:
    cd backend && python -m scripts.create_admin admin@example.com
    (password is read from the TOLLGATE_ADMIN_PASSWORD environment variable
    or prompted for)

An existing account with that email is promoted instead: role ADMIN,
status APPROVED. Its credits are left alone.
"""

import argparse
import getpass
import logging
import os
import sys

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.core.auth import hash_password, validate_password_strength
from tollgate.core.errors import ValidationError
from tollgate.models.user import User, UserRole, UserStatus
from tollgate.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


async def ensure_admin(db: AsyncSession, *, email: str, password: str) -> User:
    """Create or promote the admin account.

    Args:
        db: Async database session. The caller commits.
        email: Admin email.
        password: Plain-text password, checked against the strength rules.

    Returns:
        The admin user.

    Raises:
        ValidationError: Password too weak.
    """
    validate_password_strength(password)

    user = await UserRepository.get_by_email(db, email)
    if user is None:
        user = await UserRepository.create(
            db,
            email=email,
            password_hash=hash_password(password),
            status=UserStatus.APPROVED,
            role=UserRole.ADMIN,
        )
        logger.info("Created admin %s", user.email)
        return user

    user.role = UserRole.ADMIN.value
    user.status = UserStatus.APPROVED.value
    user.password_hash = hash_password(password)
    await db.flush()
    await db.refresh(user)
    logger.info("Promoted existing user %s to admin", user.email)
    return user


async def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    from tollgate.core.database import async_session_factory, engine

    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("email")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    password = os.environ.get("TOLLGATE_ADMIN_PASSWORD") or getpass.getpass(
        "Admin password: "
    )

    try:
        async with async_session_factory() as session:
            await ensure_admin(session, email=args.email, password=password)
            await session.commit()
    except ValidationError as exc:
        logger.error("%s", exc.message)
        return 1
    finally:
        await engine.dispose()
    return 0


if __name__ == "__main__":
    import asyncio

    sys.exit(asyncio.run(main()))
