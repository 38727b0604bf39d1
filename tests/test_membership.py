import uuid


async def _update(client, headers, user_id, plan_id="premium", **extra):
    body = {"userId": str(user_id), "planId": plan_id, **extra}
    return await client.post("/api/membership/update", json=body, headers=headers)


async def test_upsert_creates_then_updates_in_place(client, tenant, auth_headers):
    headers = auth_headers(tenant)

    r = await _update(client, headers, tenant.id)
    assert r.status_code == 200, r.text
    first = r.json()["data"]
    assert first["planId"] == "premium"
    assert first["status"] == "active"
    assert first["userId"] == str(tenant.id)
    assert first["endDate"] is None

    r = await _update(client, headers, tenant.id, plan_id="basic")
    second = r.json()["data"]
    assert second["id"] == first["id"]
    assert second["planId"] == "basic"
    assert second["startDate"] == first["startDate"]


async def test_start_date_is_stored_as_utc(client, tenant, auth_headers):
    r = await _update(client, auth_headers(tenant), tenant.id, startDate="2026-03-01T10:00:00+02:00")
    assert r.status_code == 200
    assert r.json()["data"]["startDate"].startswith("2026-03-01T08:00:00")


async def test_get_membership(client, tenant, admin, make_user, auth_headers):
    url = f"/api/membership/user/{tenant.id}"
    assert (await client.get(url, headers=auth_headers(tenant))).status_code == 404

    await _update(client, auth_headers(tenant), tenant.id)
    r = await client.get(url, headers=auth_headers(tenant))
    assert r.status_code == 200
    assert r.json()["data"]["planId"] == "premium"

    assert (await client.get(url, headers=auth_headers(admin))).status_code == 200
    assert (await client.get(url, headers=auth_headers(make_user()))).status_code == 403
    assert (await client.get("/api/membership/user/abc", headers=auth_headers(tenant))).status_code == 400


async def test_cannot_manage_someone_elses_membership(client, tenant, make_user, auth_headers):
    other = make_user()
    r = await _update(client, auth_headers(other), tenant.id)
    assert r.status_code == 403

    r = await client.post(f"/api/membership/cancel/{tenant.id}", headers=auth_headers(other))
    assert r.status_code == 403


async def test_admin_manages_any_membership(client, tenant, admin, auth_headers):
    r = await _update(client, auth_headers(admin), tenant.id, plan_id="gold")
    assert r.status_code == 200
    assert r.json()["data"]["userId"] == str(tenant.id)

    r = await _update(client, auth_headers(admin), uuid.uuid4())
    assert r.status_code == 404
    assert r.json()["message"] == "User not found"


async def test_update_validation(client, tenant, auth_headers):
    headers = auth_headers(tenant)
    assert (await _update(client, headers, tenant.id, plan_id="  ")).status_code == 400
    assert (await _update(client, headers, "not-a-uuid")).status_code == 400
    assert (await _update(client, headers, tenant.id, level="vip")).status_code == 400


async def test_cancel_is_idempotent_and_renewable(client, tenant, auth_headers):
    headers = auth_headers(tenant)
    url = f"/api/membership/cancel/{tenant.id}"

    assert (await client.post(url, headers=headers)).status_code == 404

    await _update(client, headers, tenant.id)
    r = await client.post(url, headers=headers)
    assert r.status_code == 200
    cancelled = r.json()["data"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["endDate"] is not None
    assert r.json()["message"] == f"Membership cancelled for user {tenant.id}"

    again = (await client.post(url, headers=headers)).json()["data"]
    assert again["endDate"] == cancelled["endDate"]

    renewed = (await _update(client, headers, tenant.id, plan_id="basic")).json()["data"]
    assert renewed["status"] == "active"
    assert renewed["endDate"] is None


async def test_list_memberships_is_admin_only(client, tenant, admin, auth_headers):
    await _update(client, auth_headers(tenant), tenant.id)

    assert (await client.get("/api/membership", headers=auth_headers(tenant))).status_code == 403
    r = await client.get("/api/membership", headers=auth_headers(admin))
    assert r.status_code == 200
    assert [m["userId"] for m in r.json()["data"]] == [str(tenant.id)]
