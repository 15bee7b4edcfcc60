"""API key lifecycle — issue, validate, revoke.

Learn: The raw key leaves this module exactly once, as the return value
of issue_key(). Only its SHA-256 digest is stored, so a leaked database
doesn't hand out working keys, and lookups go by digest.

Rotation is a single transaction: delete every key the user holds,
insert the new one, commit. A concurrent validate sees either the old
key or the new one, never neither; two racing logins can't both leave a
live key behind (the unique user_id constraint rejects the loser).
"""

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from msgqueue.auth.hashing import digest, generate_token
from msgqueue.auth.roles import Role
from msgqueue.db.models import ApiKey
from msgqueue.errors import AuthError, StorageError

logger = structlog.get_logger()


class APIKeyManager:
    """Sole writer of the api_keys table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def issue_key(self, user_id: int, role: Role) -> str:
        """Replace all of a user's keys with a fresh one and return it.

        All-or-nothing: on any storage failure the old key survives and
        StorageError is raised. No retries.
        """
        token = generate_token()
        try:
            await self.db.execute(delete(ApiKey).where(ApiKey.user_id == user_id))
            self.db.add(ApiKey(key_hash=digest(token), user_id=user_id, role=role.value))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("api_key.issue_failed", user_id=user_id, error=str(e))
            raise StorageError("failed to issue api key") from e

        logger.info("api_key.issued", user_id=user_id, role=role.value)
        return token

    async def validate_token(self, token: str) -> Role:
        """Resolve a raw key to its role, or raise AuthError."""
        try:
            result = await self.db.execute(
                select(ApiKey.role).where(ApiKey.key_hash == digest(token))
            )
            stored_role = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("api_key.lookup_failed", error=str(e))
            raise StorageError("api key lookup failed") from e

        if stored_role is None:
            raise AuthError("invalid api key")

        try:
            return Role(stored_role)
        except ValueError:
            logger.warning("api_key.unknown_role", role=stored_role)
            raise AuthError("invalid api key")

    async def revoke_token(self, token: str) -> None:
        """Delete the key if it exists. Revoking an absent key is a no-op."""
        try:
            result = await self.db.execute(
                delete(ApiKey).where(ApiKey.key_hash == digest(token))
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("api_key.revoke_failed", error=str(e))
            raise StorageError("failed to revoke api key") from e

        if result.rowcount:
            logger.info("api_key.revoked")
