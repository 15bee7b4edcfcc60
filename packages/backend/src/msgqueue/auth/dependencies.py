"""FastAPI auth dependencies — the access control gate.

Learn: Routes declare what they need with Depends(require_role(...)).
The gate pulls the bearer key out of the Authorization header, resolves
it to a role through APIKeyManager, and checks the role against the
requirement. Failures raise AuthError (→ 401) or ForbiddenError (→ 403);
the exception handlers in api/errors.py do the HTTP translation.

The gate itself holds no state. Everything it knows comes from the
request and one lookup in api_keys.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from msgqueue.auth.api_keys import APIKeyManager
from msgqueue.auth.roles import Role
from msgqueue.db.engine import get_db
from msgqueue.errors import AuthError, ForbiddenError


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as seen by a route."""

    token: str
    role: Role


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the key out of an `Authorization: Bearer <key>` header value."""
    if not authorization:
        raise AuthError("missing authorization header")
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthError("malformed authorization header")
    return token


async def authorize(
    keys: APIKeyManager,
    authorization: Optional[str],
    required: Optional[Role] = None,
) -> Principal:
    """Run the full gate: extract, validate, role check."""
    token = extract_bearer_token(authorization)
    role = await keys.validate_token(token)
    if not role.satisfies(required):
        raise ForbiddenError(f"role {role.value!r} cannot access a {required.value!r} route")
    return Principal(token=token, role=role)


def require_role(required: Optional[Role] = None):
    """FastAPI dependency factory — resolves the caller or rejects the request.

    Usage:
        @router.delete("/messages")
        async def purge(principal: Principal = Depends(require_role(Role.ADMIN))): ...

    require_role() with no argument accepts any valid key.
    """

    async def _gate(
        authorization: Optional[str] = Header(None),
        db: AsyncSession = Depends(get_db),
    ) -> Principal:
        return await authorize(APIKeyManager(db), authorization, required)

    return _gate
