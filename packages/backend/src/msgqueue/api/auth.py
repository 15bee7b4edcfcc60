"""Auth API — login and logout.

Learn: Routes for the key lifecycle:
- POST /auth/login → username/password → fresh API key (old one dies)
- POST /auth/logout → revoke the key used to call it
- GET /auth/me → role of the calling key

Login always issues a "user" key. Admin keys are handed out by an
operator with `msgqueue issue-key --role admin`.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from msgqueue.auth.api_keys import APIKeyManager
from msgqueue.auth.credentials import CredentialStore
from msgqueue.auth.dependencies import Principal, require_role
from msgqueue.auth.roles import Role
from msgqueue.db.engine import get_db
from msgqueue.schemas.auth import LoginRequest, LoginResponse, LogoutResponse, WhoAmI

router = APIRouter(prefix="/auth")


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Verify credentials and issue a new key, replacing any previous one."""
    user_id = await CredentialStore(db).authenticate(body.username, body.password)
    api_key = await APIKeyManager(db).issue_key(user_id, Role.USER)
    return LoginResponse(api_key=api_key)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    principal: Principal = Depends(require_role()),
    db: AsyncSession = Depends(get_db),
):
    """Revoke the calling key."""
    await APIKeyManager(db).revoke_token(principal.token)
    return LogoutResponse()


@router.get("/me", response_model=WhoAmI)
async def get_me(principal: Principal = Depends(require_role())):
    """Report the role of the calling key."""
    return WhoAmI(role=principal.role.value)
