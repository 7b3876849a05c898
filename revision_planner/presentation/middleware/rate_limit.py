import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from revision_planner.data.repositories.redis_dependency import get_redis_client

logger = logging.getLogger("app").getChild("rate_limit")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window request limit per client address, counted in Redis."""

    def __init__(self, app, limit: int = 100, window: int = 60):
        super().__init__(app)
        self.limit = limit
        self.window = window

    async def dispatch(self, request: Request, call_next):
        # WebSocket handshakes bypass BaseHTTPMiddleware, so only HTTP calls are counted
        client_ip = request.client.host if request.client else "unknown"
        key = f"rate_limit:{client_ip}"

        count = await get_redis_client().hit(key, self.window)
        if count > self.limit:
            logger.warning(f"Rate limit exceeded for {client_ip} ({count}/{self.limit})")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded"},
            )

        return await call_next(request)
