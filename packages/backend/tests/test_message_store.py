"""MessageStore tests — validation, cursor pagination, retention purge."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from msgqueue.db.models import Message
from msgqueue.errors import ValidationError
from msgqueue.services.message_store import MessageStore


async def _count(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(Message))
    return result.scalar_one()


# ═══════════════════════════════════════════════════════════
# Add
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["{}", "[1,2,3]", '"hello"', '{"a": {"b": [null, true]}}', "42"])
async def test_add_accepts_json(db_session, content):
    msg = await MessageStore(db_session).add(content)
    assert msg.content == content
    assert msg.id >= 1
    assert isinstance(msg.timestamp, datetime)


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "{not json", "not json", "{'a': 1}", "NaN", "[Infinity]"])
async def test_add_rejects_invalid(db_session, content):
    with pytest.raises(ValidationError):
        await MessageStore(db_session).add(content)
    assert await _count(db_session) == 0


@pytest.mark.asyncio
async def test_add_assigns_increasing_ids(db_session):
    store = MessageStore(db_session)
    ids = [(await store.add(f'{{"n": {i}}}')).id for i in range(5)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 5
    assert ids[0] == 1


@pytest.mark.asyncio
async def test_add_returns_stored_row(db_session, app):
    msg = await MessageStore(db_session).add('{"a":1}')

    # Read through an independent session to prove it's durable
    async with app.state.database.session_factory() as other:
        stored = await other.get(Message, msg.id)
    assert stored.content == '{"a":1}'
    assert stored.timestamp == msg.timestamp


# ═══════════════════════════════════════════════════════════
# Cursor pagination
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_get_all_returns_everything_by_default(db_session):
    store = MessageStore(db_session)
    for i in range(4):
        await store.add(str(i))

    messages = await store.get_all()
    assert [m.content for m in messages] == ["0", "1", "2", "3"]


@pytest.mark.asyncio
async def test_get_all_after_id_and_limit(db_session):
    store = MessageStore(db_session)
    added = [await store.add(str(i)) for i in range(10)]

    page = await store.get_all(after_id=added[2].id, limit=3)

    assert [m.id for m in page] == [added[3].id, added[4].id, added[5].id]


@pytest.mark.asyncio
async def test_cursor_walk_has_no_gaps_or_duplicates(db_session):
    store = MessageStore(db_session)
    added = [await store.add(f'{{"n": {i}}}') for i in range(11)]

    seen = []
    cursor = 0
    while True:
        page = await store.get_all(after_id=cursor, limit=4)
        if not page:
            break
        assert len(page) <= 4
        assert all(m.id > cursor for m in page)
        assert [m.id for m in page] == sorted(m.id for m in page)
        seen.extend(m.id for m in page)
        cursor = page[-1].id

    assert seen == [m.id for m in added]


@pytest.mark.asyncio
async def test_cursor_picks_up_new_messages(db_session):
    store = MessageStore(db_session)
    first = await store.add("1")
    assert [m.id for m in await store.get_all(after_id=first.id)] == []

    second = await store.add("2")
    assert [m.id for m in await store.get_all(after_id=first.id)] == [second.id]


@pytest.mark.asyncio
async def test_get_all_past_the_end(db_session):
    store = MessageStore(db_session)
    await store.add("1")
    assert await store.get_all(after_id=1000) == []


@pytest.mark.asyncio
async def test_get_all_negative_limit(db_session):
    with pytest.raises(ValidationError):
        await MessageStore(db_session).get_all(limit=-1)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [{"limit": 2**63}, {"limit": 2**70}, {"after_id": 2**63}, {"after_id": -(2**63) - 1}],
)
async def test_get_all_rejects_values_beyond_sql_integer(db_session, kwargs):
    with pytest.raises(ValidationError):
        await MessageStore(db_session).get_all(**kwargs)


@pytest.mark.asyncio
async def test_get_all_accepts_sql_integer_bounds(db_session):
    store = MessageStore(db_session)
    msg = await store.add("{}")

    assert [m.id for m in await store.get_all(after_id=-(2**63), limit=2**63 - 1)] == [msg.id]
    assert await store.get_all(after_id=2**63 - 1) == []


# ═══════════════════════════════════════════════════════════
# Retention purge
# ═══════════════════════════════════════════════════════════


async def _seed_aged(db_session, ages_in_days: list[float]) -> None:
    now = datetime.now(timezone.utc)
    db_session.add_all(
        Message(content="{}", timestamp=now - timedelta(days=age)) for age in ages_in_days
    )
    await db_session.commit()


@pytest.mark.asyncio
@pytest.mark.parametrize("days", [0, -5])
async def test_purge_rejects_non_positive_days(db_session, days):
    await _seed_aged(db_session, [100])
    with pytest.raises(ValidationError):
        await MessageStore(db_session).delete_older_than(days)
    assert await _count(db_session) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("days", [True, 1.5, "7"])
async def test_purge_rejects_non_integer_days(db_session, days):
    with pytest.raises(ValidationError):
        await MessageStore(db_session).delete_older_than(days)


@pytest.mark.asyncio
async def test_purge_deletes_only_old_rows(db_session):
    await _seed_aged(db_session, [30, 10, 8, 6, 1, 0])
    store = MessageStore(db_session)

    deleted = await store.delete_older_than(7)

    assert deleted == 3
    assert await _count(db_session) == 3


@pytest.mark.asyncio
async def test_purge_keeps_fresh_messages(db_session):
    store = MessageStore(db_session)
    await store.add('{"fresh": true}')

    assert await store.delete_older_than(1) == 0
    assert len(await store.get_all()) == 1


@pytest.mark.asyncio
async def test_ids_not_reused_after_purge(db_session):
    """A cursor held by a client stays valid after the rows it saw are purged."""
    await _seed_aged(db_session, [30, 30])
    store = MessageStore(db_session)
    result = await db_session.execute(select(func.max(Message.id)))
    last_seen = result.scalar_one()

    assert await store.delete_older_than(7) == 2
    fresh = await store.add("{}")

    assert fresh.id > last_seen
    assert [m.id for m in await store.get_all(after_id=last_seen)] == [fresh.id]


@pytest.mark.asyncio
@pytest.mark.parametrize("days", [800_000, 999_999_999, 10**9])
async def test_purge_beyond_calendar_deletes_nothing(db_session, days):
    """A window reaching past year 1 can't contain any message."""
    await _seed_aged(db_session, [3650, 0])

    assert await MessageStore(db_session).delete_older_than(days) == 0
    assert await _count(db_session) == 2


@pytest.mark.asyncio
async def test_purge_far_but_representable_window(db_session):
    await _seed_aged(db_session, [3650, 0])
    assert await MessageStore(db_session).delete_older_than(700_000) == 0
    assert await _count(db_session) == 2
