"""msgqueue CLI — run the server, manage users and keys, talk to the queue.

Usage:
    msgqueue serve                               # Run the API (uvicorn)
    msgqueue init-db                             # Create tables
    msgqueue create-user alice --password pw1    # Add a login
    msgqueue issue-key alice --role admin        # Out-of-band key (only way to get admin)
    msgqueue purge --days 30                     # Retention purge, straight against the DB

    msgqueue login alice                         # Client: get a key from a running server
    msgqueue send '{"a": 1}'                     # Client: append a message
    msgqueue list --after-id 10 --limit 50       # Client: page through messages
    msgqueue clear --days 30                     # Client: purge via the API (admin key)

Operator commands open the database named by MSGQUEUE_DATABASE_URL (or
--database-url). Client commands use MSGQUEUE_API_URL and MSGQUEUE_API_KEY.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from msgqueue import __version__
from msgqueue.auth.api_keys import APIKeyManager
from msgqueue.auth.hashing import digest
from msgqueue.auth.roles import Role
from msgqueue.config import Settings
from msgqueue.db.engine import Database
from msgqueue.db.models import User
from msgqueue.errors import MsgQueueError
from msgqueue.log import configure_logging
from msgqueue.services.message_store import MessageStore

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8080"


def _api_url() -> str:
    return os.environ.get("MSGQUEUE_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(api_key: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the msgqueue server."""
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
    return httpx.AsyncClient(
        base_url=f"{_api_url()}/api/v1", headers=headers, timeout=30.0
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _settings(ctx: click.Context) -> Settings:
    overrides = {}
    if ctx.obj.get("database_url"):
        overrides["database_url"] = ctx.obj["database_url"]
    return Settings(**overrides)


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _require_api_key(api_key: Optional[str]) -> str:
    key = api_key or os.environ.get("MSGQUEUE_API_KEY")
    if not key:
        _fail("--api-key required (or set MSGQUEUE_API_KEY env var)")
    return key


def _check_response(r: httpx.Response) -> None:
    if r.status_code >= 400:
        try:
            detail = r.json().get("detail", r.text)
        except ValueError:
            detail = r.text
        _fail(f"{r.status_code} {detail}")


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


async def _with_database(settings: Settings, fn):
    """Open the store, run fn(session), and always dispose the engine."""
    configure_logging(settings.log_level, json=settings.log_json, stream=sys.stderr)
    database = Database.from_settings(settings)
    try:
        await database.create_all()
        async with database.session_factory() as session:
            return await fn(session)
    finally:
        await database.dispose()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="msgqueue")
@click.option("--database-url", help="Override MSGQUEUE_DATABASE_URL")
@click.pass_context
def main(ctx: click.Context, database_url: Optional[str]):
    """msgqueue — authenticated JSON message queue."""
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url


# ---------------------------------------------------------------------------
# Operator commands
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", help="Bind address (default: MSGQUEUE_HOST)")
@click.option("--port", type=int, help="Port (default: MSGQUEUE_PORT)")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]):
    """Run the API server."""
    import uvicorn

    from msgqueue.main import create_app

    settings = _settings(ctx)
    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )


@main.command("init-db")
@click.pass_context
def init_db(ctx: click.Context):
    """Create any missing tables."""
    settings = _settings(ctx)

    async def _noop(session):
        return None

    _run(_with_database(settings, _noop))
    click.secho("Schema ready", fg="green")


@main.command("create-user")
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.pass_context
def create_user(ctx: click.Context, username: str, password: str):
    """Add a user who can log in with USERNAME and the given password."""

    async def _create(session):
        session.add(User(username=username, password_hash=digest(password)))
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            return False
        return True

    if not _run(_with_database(_settings(ctx), _create)):
        _fail(f"user {username!r} already exists")
    click.secho(f"Created user {username}", fg="green")


@main.command("issue-key")
@click.argument("username")
@click.option(
    "--role",
    type=click.Choice([r.value for r in Role]),
    default=Role.USER.value,
    show_default=True,
)
@click.pass_context
def issue_key(ctx: click.Context, username: str, role: str):
    """Issue a key for USERNAME, replacing any key they hold. Prints it once."""

    async def _issue(session):
        result = await session.execute(select(User.id).where(User.username == username))
        user_id = result.scalar_one_or_none()
        if user_id is None:
            return None
        return await APIKeyManager(session).issue_key(user_id, Role(role))

    try:
        token = _run(_with_database(_settings(ctx), _issue))
    except MsgQueueError as e:
        _fail(str(e))
    if token is None:
        _fail(f"no such user {username!r}")
    click.echo(token)


@main.command()
@click.option("--days", type=int, required=True, help="Delete messages older than this")
@click.pass_context
def purge(ctx: click.Context, days: int):
    """Delete messages older than DAYS days, directly in the database."""

    async def _purge(session):
        return await MessageStore(session).delete_older_than(days)

    try:
        deleted = _run(_with_database(_settings(ctx), _purge))
    except MsgQueueError as e:
        _fail(str(e))
    click.echo(f"Deleted {deleted} message(s)")


# ---------------------------------------------------------------------------
# Client commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True)
def login(username: str, password: str):
    """Log in to a running server and print the new API key."""

    async def _login():
        async with _client() as c:
            r = await c.post("/auth/login", json={"username": username, "password": password})
            _check_response(r)
            return r.json()["api_key"]

    click.echo(_run(_login()))


@main.command()
@click.argument("content")
@click.option("--api-key", help="API key (or set MSGQUEUE_API_KEY)")
def send(content: str, api_key: Optional[str]):
    """Append CONTENT (a JSON document) to the queue."""
    key = _require_api_key(api_key)

    async def _send():
        async with _client(key) as c:
            r = await c.post("/messages", json={"content": content})
            _check_response(r)
            return r.json()

    click.echo(_pretty_json(_run(_send())))


@main.command("list")
@click.option("--after-id", type=int, default=0, show_default=True)
@click.option("--limit", type=int, default=0, help="0 = no limit")
@click.option("--api-key", help="API key (or set MSGQUEUE_API_KEY)")
def list_messages(after_id: int, limit: int, api_key: Optional[str]):
    """Print messages after AFTER_ID."""
    key = _require_api_key(api_key)

    async def _list():
        async with _client(key) as c:
            r = await c.get("/messages", params={"after_id": after_id, "limit": limit})
            _check_response(r)
            return r.json()

    click.echo(_pretty_json(_run(_list())))


@main.command()
@click.option("--days", type=int, required=True)
@click.option("--api-key", help="Admin API key (or set MSGQUEUE_API_KEY)")
def clear(days: int, api_key: Optional[str]):
    """Purge messages older than DAYS days through the API."""
    key = _require_api_key(api_key)

    async def _clear():
        async with _client(key) as c:
            r = await c.delete("/messages", params={"days": days})
            _check_response(r)
            return r.json()["deleted"]

    click.echo(f"Deleted {_run(_clear())} message(s)")


if __name__ == "__main__":
    main()
