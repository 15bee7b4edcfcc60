"""Pydantic schemas for messages.

Learn: content travels as a string holding JSON text, not as a nested
JSON value, so the queue stores and returns it byte-for-byte. Syntax is
checked by MessageStore, not here, so the same rule applies to the API
and the CLI.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, field_validator


class MessageCreate(BaseModel):
    content: str


class MessageRead(BaseModel):
    id: int
    content: str
    timestamp: datetime

    model_config = {"from_attributes": True}

    @field_validator("timestamp")
    @classmethod
    def as_utc(cls, v: datetime) -> datetime:
        # SQLite hands back naive values; the store clock is UTC.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class PurgeResult(BaseModel):
    deleted: int
