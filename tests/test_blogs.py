import uuid

import pytest

from marketplace.models.user import UserRole


@pytest.fixture
def editor(make_user):
    return make_user(UserRole.EDITOR, full_name="Eze Editor")


@pytest.fixture
def new_blog(client, auth_headers):
    async def _create(user, **overrides):
        body = {"title": "Moving to Lagos", "content": "What to check before you sign.", "tags": ["moving"]}
        body.update(overrides)
        r = await client.post("/api/blogs", json=body, headers=auth_headers(user))
        assert r.status_code == 201, r.text
        return r.json()["data"]
    return _create


def _titles(response):
    return [b["title"] for b in response.json()["data"]["items"]]


async def test_admin_post_is_published(admin, new_blog):
    post = await new_blog(admin)
    assert post["status"] == "published"
    assert post["publishedAt"] is not None
    assert post["author"]["name"] == "Ada Admin"
    assert post["tags"] == ["moving"]
    assert post["createdAt"] == post["updatedAt"]


async def test_editor_post_starts_as_draft(client, editor, admin, tenant, auth_headers, new_blog):
    draft = await new_blog(editor, title="Draft tips")
    assert draft["status"] == "draft"
    assert draft["publishedAt"] is None

    url = f"/api/blogs/{draft['id']}"
    assert (await client.get(url)).status_code == 404
    assert (await client.get(url, headers=auth_headers(tenant))).status_code == 404
    assert (await client.get(url, headers=auth_headers(editor))).status_code == 200
    assert (await client.get(url, headers=auth_headers(admin))).status_code == 200

    assert _titles(await client.get("/api/blogs")) == []
    assert _titles(await client.get("/api/blogs", headers=auth_headers(editor))) == ["Draft tips"]
    assert _titles(await client.get("/api/blogs", headers=auth_headers(admin))) == ["Draft tips"]


async def test_create_requires_authentication(client):
    r = await client.post("/api/blogs", json={"title": "x", "content": "y"})
    assert r.status_code == 401


@pytest.mark.parametrize("body", [
    {"title": "", "content": "body"},
    {"title": "title", "content": "   "},
    {"title": "title"},
    {"title": "title", "content": "body", "status": "published"},
])
async def test_create_validation(client, editor, auth_headers, body):
    r = await client.post("/api/blogs", json=body, headers=auth_headers(editor))
    assert r.status_code == 400


async def test_publish(client, editor, admin, auth_headers, new_blog):
    draft = await new_blog(editor)
    url = f"/api/blogs/{draft['id']}/publish"

    assert (await client.post(url, headers=auth_headers(editor))).status_code == 403

    r = await client.post(url, headers=auth_headers(admin))
    assert r.status_code == 200
    published = r.json()["data"]
    assert published["status"] == "published"

    again = (await client.post(url, headers=auth_headers(admin))).json()["data"]
    assert again["publishedAt"] == published["publishedAt"]

    assert (await client.get(f"/api/blogs/{draft['id']}")).status_code == 200
    assert (await client.post(f"/api/blogs/{uuid.uuid4()}/publish", headers=auth_headers(admin))).status_code == 404


async def test_list_filters_and_pagination(client, admin, auth_headers, new_blog):
    await new_blog(admin, title="Deposit rules", content="How much is normal?")
    await new_blog(admin, title="Lease checklist", content="Read the deposit clause.")
    await new_blog(admin, title="Neighbourhoods", content="Quiet streets.")

    r = await client.get("/api/blogs", params={"search": "deposit"})
    assert set(_titles(r)) == {"Deposit rules", "Lease checklist"}

    r = await client.get("/api/blogs", params={"limit": 2})
    assert _titles(r) == ["Neighbourhoods", "Lease checklist"]
    assert r.json()["data"]["pageInfo"]["totalPages"] == 2

    r = await client.get("/api/blogs", params={"tag": "moving"})
    assert len(_titles(r)) == 3
    assert _titles(await client.get("/api/blogs", params={"tag": "mov"})) == []

    r = await client.get("/api/blogs", params={"status": "draft"})
    assert _titles(r) == []

    r = await client.get("/api/blogs", params={"status": "archived"})
    assert r.status_code == 400


async def test_user_blogs(client, editor, admin, auth_headers, new_blog):
    await new_blog(editor, title="Mine")
    await new_blog(admin, title="Theirs")

    r = await client.get(f"/api/blogs/user/{editor.id}", headers=auth_headers(editor))
    assert _titles(r) == ["Mine"]
    # drafts stay hidden from everyone else
    assert _titles(await client.get(f"/api/blogs/user/{editor.id}")) == []
    assert (await client.get("/api/blogs/user/nope")).status_code == 400


async def test_get_counts_views(client, admin, new_blog):
    post = await new_blog(admin)
    await client.get(f"/api/blogs/{post['id']}")
    r = await client.get(f"/api/blogs/{post['id']}")
    assert r.json()["data"]["views"] == 2
    assert r.json()["data"]["updatedAt"] == post["updatedAt"]


async def test_update_and_delete(client, editor, tenant, admin, auth_headers, new_blog):
    post = await new_blog(editor)
    url = f"/api/blogs/{post['id']}"

    assert (await client.put(url, json={"title": "Hijack"}, headers=auth_headers(tenant))).status_code == 403

    r = await client.put(url, json={"title": "Better title", "tags": "lagos, rent"}, headers=auth_headers(editor))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["title"] == "Better title"
    assert data["content"] == post["content"]
    assert data["tags"] == ["lagos", "rent"]

    assert (await client.delete(url, headers=auth_headers(tenant))).status_code == 403
    assert (await client.delete(url, headers=auth_headers(admin))).status_code == 200
    assert (await client.get(url, headers=auth_headers(editor))).status_code == 404


async def test_cover_image_upload(client, editor, auth_headers, media_root):
    r = await client.post(
        "/api/blogs",
        data={"title": "With cover", "content": "Pictures!", "tags": '["photos"]'},
        files=[("coverImage", ("cover.png", b"png-bytes", "image/png"))],
        headers=auth_headers(editor),
    )
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    assert data["coverImage"].startswith("/media/blogs/")
    assert data["tags"] == ["photos"]
    cover = media_root / data["coverImage"][len("/media/"):]
    assert cover.read_bytes() == b"png-bytes"

    await client.delete(f"/api/blogs/{data['id']}", headers=auth_headers(editor))
    assert not cover.exists()


async def test_cover_must_be_an_image(client, editor, auth_headers):
    r = await client.post(
        "/api/blogs",
        data={"title": "Bad cover", "content": "x"},
        files=[("coverImage", ("doc.pdf", b"%PDF", "application/pdf"))],
        headers=auth_headers(editor),
    )
    assert r.status_code == 400
    assert r.json()["error"] == "rejected_file"


# ─── Comments ─────────────────────────────────────────────────────────────────

async def test_comments_and_likes(client, admin, tenant, auth_headers, new_blog):
    post = await new_blog(admin)
    url = f"/api/blogs/{post['id']}/comments"

    r = await client.post(url, json={"content": "  Very helpful  "}, headers=auth_headers(tenant))
    assert r.status_code == 201
    comment = r.json()["data"]
    assert comment["content"] == "Very helpful"
    assert comment["likes"] == 0

    assert (await client.post(url, json={"content": "   "}, headers=auth_headers(tenant))).status_code == 400
    assert (await client.post(url, json={"content": "hi"})).status_code == 401

    like_url = f"{url}/{comment['id']}/like"
    assert (await client.post(like_url, headers=auth_headers(tenant))).json()["data"]["likes"] == 1
    assert (await client.post(like_url, headers=auth_headers(admin))).json()["data"]["likes"] == 2
    assert (await client.post(f"{url}/{uuid.uuid4()}/like", headers=auth_headers(tenant))).status_code == 404

    detail = (await client.get(f"/api/blogs/{post['id']}")).json()["data"]
    assert detail["commentCount"] == 1
    assert detail["comments"][0]["likes"] == 2


async def test_cannot_comment_on_hidden_draft(client, editor, tenant, auth_headers, new_blog):
    draft = await new_blog(editor)
    r = await client.post(
        f"/api/blogs/{draft['id']}/comments", json={"content": "first"}, headers=auth_headers(tenant)
    )
    assert r.status_code == 404


async def test_page_far_past_the_end(client, admin, new_blog):
    await new_blog(admin)
    r = await client.get("/api/blogs", params={"page": 10**20})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["items"] == []
    assert data["pageInfo"]["total"] == 1
    assert data["pageInfo"]["hasNext"] is False


async def test_comment_on_missing_post_is_404_even_with_bad_body(client, tenant, auth_headers):
    r = await client.post(
        f"/api/blogs/{uuid.uuid4()}/comments", json={"content": ""}, headers=auth_headers(tenant)
    )
    assert r.status_code == 404
