"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations are generated from these models.

Key concepts:
- Integer autoincrement ids: message ids double as the pagination cursor,
  so they must be strictly increasing in insertion order
- server_default for DB-assigned timestamps (the store's clock, not ours)
- Only digests of credentials are stored, never raw passwords or tokens
"""

from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class User(Base):
    """A login identity. Created out-of-band (see `msgqueue create-user`)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(
        String(64), nullable=False
    )  # hex SHA-256
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class ApiKey(Base):
    """Bearer credential issued on login.

    Learn: One live key per user. Issuing a new key deletes the old one in
    the same transaction; the unique constraint on user_id is the backstop
    when two logins for the same user race.
    """

    __tablename__ = "api_keys"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_api_keys_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(10), nullable=False)  # "user" | "admin"
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Message(Base):
    """A queued JSON document. Immutable once written."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_timestamp", "timestamp"),
        # Never reuse ids of purged rows; clients hold them as cursors.
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
