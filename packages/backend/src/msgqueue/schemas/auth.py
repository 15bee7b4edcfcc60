"""Pydantic schemas for login/logout."""

from pydantic import BaseModel


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    """The raw key — shown once, never retrievable again."""
    api_key: str
    token_type: str = "bearer"


class LogoutResponse(BaseModel):
    logged_out: bool = True


class WhoAmI(BaseModel):
    role: str
