"""Test fixtures — a fresh SQLite database per test.

Learn: Each test gets its own app built by create_app() against a
throwaway SQLite file under tmp_path. No Postgres or Redis needed:
the schema is created directly from the models, and the rate limiter
skips itself when app.state.redis is None (ASGITransport doesn't run
the lifespan, so Redis is never connected).

Two ways in:
- db_session: one AsyncSession for service-level tests
- client: an httpx client that drives the real HTTP stack, auth included
"""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from msgqueue.auth.api_keys import APIKeyManager
from msgqueue.auth.hashing import digest
from msgqueue.auth.roles import Role
from msgqueue.config import Settings
from msgqueue.db.models import User
from msgqueue.main import create_app


@pytest_asyncio.fixture()
async def app(tmp_path):
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        environment="development",
        debug=False,
    )
    app = create_app(settings)
    await app.state.database.create_all()
    try:
        yield app
    finally:
        await app.state.database.dispose()


@pytest_asyncio.fixture()
async def db_session(app):
    """A single session for service-level tests."""
    async with app.state.database.session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def make_user(app):
    """Insert a user (out-of-band, like `msgqueue create-user`) and return its id.

    Uses its own short-lived session so no transaction is left open while
    the app handles requests.
    """

    async def _make(username: str, password: str = "pw1") -> int:
        async with app.state.database.session_factory() as session:
            user = User(username=username, password_hash=digest(password))
            session.add(user)
            await session.commit()
            return user.id

    return _make


@pytest_asyncio.fixture()
async def issue_key(app):
    """Issue a key straight through APIKeyManager (how admins get keys)."""

    async def _issue(user_id: int, role: Role = Role.USER) -> str:
        async with app.state.database.session_factory() as session:
            return await APIKeyManager(session).issue_key(user_id, role)

    return _issue


@pytest_asyncio.fixture()
async def user_token(make_user, issue_key):
    user_id = await make_user("user-fixture")
    return await issue_key(user_id, Role.USER)


@pytest_asyncio.fixture()
async def admin_token(make_user, issue_key):
    user_id = await make_user("admin-fixture")
    return await issue_key(user_id, Role.ADMIN)
