"""Message store — append, cursor pagination, retention purge.

Learn: The messages table is an append-only log. Ids are assigned by the
database in insertion order, which makes them a natural cursor: "give me
everything after the last id I saw" never skips or repeats a row, even
while other clients keep appending (only a purge can remove rows).

Timestamps come from the database clock (server_default), so add()
re-reads the row after inserting it instead of guessing the values.
"""

import json
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from msgqueue.db.models import Message
from msgqueue.errors import StorageError, ValidationError

logger = structlog.get_logger()

# Ids and limits are bound as SQL INTEGERs (signed 64-bit).
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def validate_json(content: str) -> None:
    """Raise ValidationError unless content is non-empty, strict JSON text."""
    if not content:
        raise ValidationError("content is required")
    try:
        # json.loads accepts NaN/Infinity by default; JSON doesn't.
        json.loads(content, parse_constant=_reject_constant)
    except ValueError as e:
        raise ValidationError("content must be valid JSON") from e


class MessageStore:
    """Sole writer of the messages table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, content: str) -> Message:
        """Validate and append a message, returning the stored row."""
        validate_json(content)

        msg = Message(content=content)
        try:
            self.db.add(msg)
            await self.db.flush()  # get the auto-generated id
            await self.db.refresh(msg)  # read back the store-assigned timestamp
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("message.add_failed", error=str(e))
            raise StorageError("failed to add message") from e

        logger.info("message.added", message_id=msg.id)
        return msg

    async def get_all(self, after_id: int = 0, limit: int = 0) -> list[Message]:
        """Messages with id > after_id in id order; limit=0 means no cap."""
        if limit < 0:
            raise ValidationError("limit must be zero or positive")
        if limit > _INT64_MAX:
            raise ValidationError("limit out of range")
        if not _INT64_MIN <= after_id <= _INT64_MAX:
            raise ValidationError("after_id out of range")

        query = select(Message).where(Message.id > after_id).order_by(Message.id)
        if limit > 0:
            query = query.limit(limit)

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error("messages.read_failed", error=str(e))
            raise StorageError("failed to read messages") from e
        return list(result.scalars().all())

    async def delete_older_than(self, days: int) -> int:
        """Delete messages older than `days` days and return how many went."""
        if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
            raise ValidationError("days must be a positive integer")

        try:
            cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        except OverflowError:
            # Further back than datetime can go, so nothing is that old.
            logger.info("messages.purged", days=days, deleted=0, cutoff=None)
            return 0

        try:
            result = await self.db.execute(
                delete(Message)
                .where(Message.timestamp < cutoff)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("messages.purge_failed", days=days, error=str(e))
            raise StorageError("failed to purge messages") from e

        deleted = result.rowcount
        logger.info("messages.purged", days=days, deleted=deleted, cutoff=cutoff.isoformat())
        return deleted
