import os
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from revision_planner import __version__
from revision_planner.business.services import store_registry
from revision_planner.config import Config, logger
from revision_planner.data.repositories import init_db, redis_client
from revision_planner.errors import register_exception_handlers
from revision_planner.presentation.middleware import RateLimitMiddleware
from revision_planner.presentation.routes import auth_router, problem_router
from revision_planner.presentation.websocket import manager


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every HTTP request and tags the response with its request id."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        client_host = request.client.host if request.client else "unknown"
        logger.info(
            f"Request started: {request.method} {request.url.path} - "
            f"ID: {request_id} - Client: {client_host}"
        )
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.url.path} - "
                f"ID: {request_id} - Error: {e} - "
                f"Time: {time.perf_counter() - start_time:.4f}s"
            )
            raise
        response.headers["X-Request-ID"] = request_id
        logger.info(
            f"Request completed: {request.method} {request.url.path} - "
            f"ID: {request_id} - Status: {response.status_code} - "
            f"Time: {time.perf_counter() - start_time:.4f}s"
        )
        return response


@asynccontextmanager
async def life_span(app: FastAPI):
    logger.info(f"Revision planner {__version__} is starting ({Config.ENVIRONMENT})...")
    if os.environ.get("TESTING") != "True":
        try:
            await init_db()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise
    else:
        logger.info("Skipping database initialization for tests")
    yield
    # Drop live feeds before the stores they listen to
    await manager.close_all()
    store_registry.clear()
    await redis_client.close()
    logger.info("Server has been stopped")


version = "v1"

app = FastAPI(
    title="Revision Planner API",
    description="Spaced-repetition tracker for coding practice problems",
    version=__version__,
    lifespan=life_span,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.add_middleware(LoggingMiddleware)

if Config.RATE_LIMIT_ENABLED:
    app.add_middleware(
        RateLimitMiddleware,
        limit=Config.RATE_LIMIT_REQUESTS,
        window=Config.RATE_LIMIT_WINDOW,
    )
    logger.info("Rate limiting middleware added")

register_exception_handlers(app)

app.include_router(auth_router, prefix=f"/api/{version}")
app.include_router(problem_router, prefix=f"/api/{version}")


@app.get("/health", tags=["health"], summary="Service health")
async def health():
    return {
        "status": "ok",
        "version": __version__,
        "active_stores": len(store_registry),
        "feed_connections": manager.total_connections(),
    }


logger.info(f"Application startup complete - API version: {version}")
