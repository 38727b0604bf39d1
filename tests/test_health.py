async def test_root(client):
    r = await client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "active"


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


async def test_unknown_route_uses_envelope(client):
    r = await client.get("/api/nope")
    assert r.status_code == 404
    body = r.json()
    assert body["success"] is False
    assert body["data"] is None
