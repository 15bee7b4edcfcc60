"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

There is no module-level engine. create_app() builds one Database and
parks it on app.state; get_db() hands each request its own session from
that factory, and services receive the session in their constructor.
"""

from pathlib import Path

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from msgqueue.config import Settings
from msgqueue.db.models import Base


class Database:
    """Owns the engine and session factory for one store."""

    def __init__(self, url: str, echo: bool = False, busy_timeout_ms: int = 5000):
        self.url = make_url(url)
        self.is_sqlite = self.url.get_backend_name() == "sqlite"

        if self.is_sqlite:
            self.engine: AsyncEngine = create_async_engine(url, echo=echo)
            self._install_sqlite_pragmas(busy_timeout_ms)
        else:
            # Connection pool: min 5, max 20 connections.
            self.engine = create_async_engine(
                url,
                echo=echo,
                pool_size=5,
                max_overflow=15,
                pool_pre_ping=True,
            )

        # Session factory: each request gets its own session.
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            echo=settings.debug,
            busy_timeout_ms=settings.sqlite_busy_timeout_ms,
        )

    def ensure_storage_dir(self) -> None:
        """Create the parent directory of a file-backed SQLite database."""
        if not self.is_sqlite:
            return
        db_path = self.url.database
        if db_path and db_path != ":memory:" and not db_path.startswith("file:"):
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    def _install_sqlite_pragmas(self, busy_timeout_ms: int) -> None:
        # Per connection: WAL so readers never block the writer, FK enforcement
        # (off by default in SQLite), and a wait instead of an instant
        # "database is locked" when two writers collide.
        @event.listens_for(self.engine.sync_engine, "connect")
        def _set_sqlite_pragmas(dbapi_conn, _connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
            cursor.close()

    async def create_all(self) -> None:
        """Create any missing tables (CREATE IF NOT EXISTS semantics)."""
        self.ensure_storage_dir()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
