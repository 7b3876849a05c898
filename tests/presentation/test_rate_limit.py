from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from revision_planner.presentation.middleware import RateLimitMiddleware


def build_app(limit, window=60):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limit=limit, window=window)

    @app.get("/ping")
    async def ping():
        return {"message": "pong"}

    return app


def test_requests_over_limit_are_rejected(fake_redis):
    with patch(
        "revision_planner.presentation.middleware.rate_limit.get_redis_client",
        return_value=fake_redis,
    ):
        client = TestClient(build_app(limit=2, window=30))
        responses = [client.get("/ping") for _ in range(3)]

    assert [r.status_code for r in responses] == [200, 200, 429]
    assert responses[-1].json() == {"detail": "Rate limit exceeded"}
    assert fake_redis.expiry == {"rate_limit:testclient": 30}
