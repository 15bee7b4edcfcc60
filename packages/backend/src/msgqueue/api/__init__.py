"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Unlike a router-wide auth dependency, each message route declares
its own role (user for read/append, admin for purge), so the gate is
applied per route. Health and login are open.
"""

from fastapi import APIRouter

from msgqueue.api.auth import router as auth_router
from msgqueue.api.health import router as health_router
from msgqueue.api.messages import router as messages_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(messages_router, tags=["messages"])
