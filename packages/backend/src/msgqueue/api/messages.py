"""Message API routes.

Learn: Routes just translate HTTP to MessageStore calls. Role checks live
in the require_role dependency; validation and storage errors raised by
the store are turned into 400/500 responses by the handlers in api/errors.py.

- POST /messages → append (user)
- GET /messages?after_id=&limit= → cursor page (user)
- DELETE /messages?days= → retention purge (admin)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from msgqueue.auth.dependencies import require_role
from msgqueue.auth.roles import Role
from msgqueue.db.engine import get_db
from msgqueue.errors import ValidationError
from msgqueue.schemas.message import MessageCreate, MessageRead, PurgeResult
from msgqueue.services.message_store import MessageStore

router = APIRouter()


def _store(db: AsyncSession = Depends(get_db)) -> MessageStore:
    return MessageStore(db)


@router.post(
    "/messages",
    response_model=MessageRead,
    status_code=201,
    dependencies=[Depends(require_role(Role.USER))],
)
async def add_message(body: MessageCreate, store: MessageStore = Depends(_store)):
    """Append a message. content must be a string holding valid JSON."""
    return await store.add(body.content)


@router.get(
    "/messages",
    response_model=list[MessageRead],
    dependencies=[Depends(require_role(Role.USER))],
)
async def list_messages(
    after_id: int = Query(0, description="Return messages with id greater than this"),
    limit: int = Query(0, description="Max messages to return (0 = all)"),
    store: MessageStore = Depends(_store),
):
    """Page forward through the queue.

    Learn: Pass the id of the last message you received as after_id to get
    the next page. limit=0 returns everything after the cursor.
    """
    return await store.get_all(after_id=after_id, limit=limit)


@router.delete(
    "/messages",
    response_model=PurgeResult,
    dependencies=[Depends(require_role(Role.ADMIN))],
)
async def purge_messages(
    days: Optional[int] = Query(None, description="Delete messages older than this many days"),
    store: MessageStore = Depends(_store),
):
    """Delete every message older than `days` days."""
    if days is None:
        raise ValidationError("days parameter required")
    return PurgeResult(deleted=await store.delete_older_than(days))
