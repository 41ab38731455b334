"""
Test fixtures - file-backed SQLite gateway per test + authenticated HTTP client
"""
import os

os.environ.setdefault("BACKEND_SESSION_SECRET", "test-backend-secret")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("ALLOWED_EMAILS", None)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402

from prodotask.auth import get_gateway  # noqa: E402
from prodotask.db import Gateway  # noqa: E402
from prodotask.main import app  # noqa: E402
from prodotask.schemas import UserCreate  # noqa: E402
from prodotask.services import user_service  # noqa: E402
from prodotask.settings import get_settings  # noqa: E402


@pytest_asyncio.fixture()
async def gateway(tmp_path):
    """Fresh database file for each test"""
    gw = Gateway(f"sqlite+aiosqlite:///{tmp_path / 'prodotask-test.db'}")
    await gw.open()
    yield gw
    await gw.close()


@pytest_asyncio.fixture()
async def user(gateway):
    return await user_service.create_user(
        gateway,
        UserCreate(email="ana@example.com", password="correct horse", name="Ana"),
    )


@pytest_asyncio.fixture()
async def other_user(gateway):
    return await user_service.create_user(
        gateway,
        UserCreate(email="bruno@example.com", password="battery staple", name="Bruno"),
    )


def auth_headers(email: str | None = None) -> dict:
    headers = {"X-Backend-Token": get_settings().backend_session_secret}
    if email:
        headers["X-User-Email"] = email
    return headers


@pytest_asyncio.fixture()
async def unauth_client(gateway):
    """Client carrying only the backend token"""
    app.dependency_overrides[get_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.headers.update(auth_headers())
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(gateway, user):
    """Client acting as the ``user`` fixture"""
    app.dependency_overrides[get_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.headers.update(auth_headers(user.email))
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def headers_for():
    return auth_headers
