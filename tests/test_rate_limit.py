import httpx
import pytest
from pydantic import ValidationError

from marketplace.core.config import Settings
from marketplace.core.rate_limit import RequestRateLimiter
from marketplace.main import create_app


@pytest.fixture
def settings(settings):
    return settings.model_copy(update={"SEARCH_RATE_LIMIT": "2/minute"})


async def test_search_is_rate_limited(client):
    for remaining in ("1", "0"):
        r = await client.get("/api/properties")
        assert r.status_code == 200
        assert r.headers["X-RateLimit-Limit"] == "2"
        assert r.headers["X-RateLimit-Remaining"] == remaining

    r = await client.get("/api/properties", params={"city": "Lagos"})
    assert r.status_code == 429
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "rate_limited"
    assert int(r.headers["Retry-After"]) >= 0

    # other routes keep working
    assert (await client.get("/api/properties/unique-cities")).status_code == 200


async def test_each_app_counts_separately(settings, client):
    for _ in range(3):
        await client.get("/api/properties")

    other = create_app(settings)
    other.state.db.create_all()
    transport = httpx.ASGITransport(app=other)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        assert (await ac.get("/api/properties")).status_code == 200
    other.state.db.dispose()


async def test_disabled_limiter_never_blocks(settings):
    app = create_app(settings.model_copy(update={"RATE_LIMIT_ENABLED": False}))
    app.state.db.create_all()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        for _ in range(5):
            r = await ac.get("/api/properties")
            assert r.status_code == 200
            assert "X-RateLimit-Limit" not in r.headers
    app.state.db.dispose()


def test_limits_are_per_client_and_scope():
    limiter = RequestRateLimiter()
    assert limiter.allow(key="10.0.0.1", scope="search", limit="1/minute").allowed
    assert not limiter.allow(key="10.0.0.1", scope="search", limit="1/minute").allowed
    assert limiter.allow(key="10.0.0.2", scope="search", limit="1/minute").allowed
    assert limiter.allow(key="10.0.0.1", scope="other", limit="1/minute").allowed

    limiter.reset()
    assert limiter.allow(key="10.0.0.1", scope="search", limit="1/minute").allowed


def test_settings_reject_unparseable_limit():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, SEARCH_RATE_LIMIT="lots")
