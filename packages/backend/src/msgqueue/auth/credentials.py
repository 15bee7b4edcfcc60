"""Username/password verification."""

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from msgqueue.auth.hashing import digest, digests_match
from msgqueue.db.models import User
from msgqueue.errors import AuthError, StorageError

logger = structlog.get_logger()

# Compared against when the username is unknown, so both failure paths
# do the same amount of work.
_NO_USER_HASH = "0" * 64


class CredentialStore:
    """Checks login credentials against the users table. Read-only."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def authenticate(self, username: str, password: str) -> int:
        """Return the user id for a valid username/password pair.

        Raises AuthError for an unknown user or a wrong password — the
        two cases are indistinguishable to the caller.
        """
        try:
            result = await self.db.execute(
                select(User.id, User.password_hash).where(User.username == username)
            )
            row = result.first()
        except SQLAlchemyError as e:
            logger.error("auth.lookup_failed", error=str(e))
            raise StorageError("user lookup failed") from e

        stored_hash = row.password_hash if row else _NO_USER_HASH
        if not digests_match(stored_hash, digest(password)) or row is None:
            logger.info("auth.login_failed", username=username)
            raise AuthError("invalid credentials")

        return row.id
