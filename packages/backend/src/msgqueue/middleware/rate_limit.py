"""Rate limiting middleware — Redis fixed-window counter.

Learn: Each client IP gets a per-minute counter in Redis under
"msgqueue:rl:{ip}:{bucket}:{minute}". Login gets its own, much stricter
bucket to slow down password guessing.

Rate limiting is best-effort: when Redis isn't configured or errors,
requests go through unthrottled rather than failing.
"""

import time

import redis.asyncio as aioredis
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()

LOGIN_PATH = "/api/v1/auth/login"


async def connect_redis(url: str) -> aioredis.Redis:
    """Open a Redis connection pool and verify it answers."""
    client = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
    await client.ping()
    return client


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(self, app, default_rpm: int = 600, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        redis = getattr(request.app.state, "redis", None)
        if redis is None:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        is_auth = request.url.path == LOGIN_PATH
        rpm = self.auth_rpm if is_auth else self.default_rpm

        window = int(time.time() // 60)
        bucket = "auth" if is_auth else "api"
        key = f"msgqueue:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except aioredis.RedisError as e:
            logger.warning("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("rate_limit.exceeded", client_ip=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
