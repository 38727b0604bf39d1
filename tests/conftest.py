import uuid

import httpx
import pytest

from marketplace.core.config import Settings
from marketplace.main import create_app
from marketplace.models.user import UserRole
from marketplace.repositories.users import UserRepository
from marketplace.utils.auth import create_access_token, get_password_hash

PASSWORD = "password123"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        SECRET_KEY="test-secret-key-long-enough-for-hs256-signing-0123456789",
        MEDIA_ROOT=str(tmp_path / "media"),
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    # ASGITransport does not run the lifespan handler
    app.state.db.create_all()
    app.state.media.ensure_dirs()
    yield app
    app.state.db.dispose()


@pytest.fixture
def media_root(app):
    return app.state.media.root


@pytest.fixture
def db(app):
    session = app.state.db.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(scope="session")
def password_hash():
    # hashed once per run
    return get_password_hash(PASSWORD)


@pytest.fixture
def make_user(db, password_hash):
    def _make(role=UserRole.USER, email=None, full_name="Test User", is_active=True):
        user = UserRepository(db).create(
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            password_hash=password_hash,
            full_name=full_name,
            role=role,
        )
        if not is_active:
            user.is_active = False
            db.commit()
        return user
    return _make


@pytest.fixture
def auth_headers(settings):
    def _headers(user):
        token = create_access_token(data={"sub": str(user.id)}, settings=settings)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def owner(make_user):
    return make_user(UserRole.OWNER, full_name="Olu Owner")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, full_name="Ada Admin")


@pytest.fixture
def tenant(make_user):
    return make_user(UserRole.USER, full_name="Tola Tenant")


@pytest.fixture
def new_property(client, owner, auth_headers):
    """Create a listing through the API and return its JSON representation."""
    async def _create(user=None, **overrides):
        body = {
            "propertyName": "Sunny two bedroom flat",
            "propertyType": "apartment",
            "totalRooms": 2,
            "totalRent": 1200,
            "city": "Lagos",
            "amenities": ["wifi", "parking"],
        }
        body.update(overrides)
        r = await client.post("/api/properties", json=body, headers=auth_headers(user or owner))
        assert r.status_code == 201, r.text
        return r.json()["data"]
    return _create
