import pytest
from httpx import AsyncClient

from flashquery.core.config import settings
from flashquery.db.repositories.users import UserRepository
from flashquery.db.session import get_repository_context

from conftest import TEST_USER


@pytest.mark.asyncio
async def test_login_sets_session_cookie(client: AsyncClient, regular_user):
    response = await client.post(
        "/api/auth/login",
        json={"email": TEST_USER["email"].upper(), "password": TEST_USER["password"]},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["user"]["email"] == TEST_USER["email"]
    assert "hashedPassword" not in body["data"]["user"]
    assert settings.SESSION_COOKIE_NAME in response.cookies

    session = await client.get("/api/auth/session")
    assert session.status_code == 200
    assert session.json()["data"]["user"]["id"] == regular_user.id


@pytest.mark.asyncio
async def test_login_with_wrong_password(client: AsyncClient, regular_user):
    response = await client.post(
        "/api/auth/login",
        json={"email": TEST_USER["email"], "password": "wrong-password"},
    )
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid email or password"}


@pytest.mark.asyncio
async def test_login_deactivated_account(client: AsyncClient, regular_user):
    async with get_repository_context(UserRepository) as user_repo:
        await user_repo.update_user(user_id=regular_user.id, is_active=False)

    response = await client.post(
        "/api/auth/login",
        json={"email": TEST_USER["email"], "password": TEST_USER["password"]},
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Your account has been deactivated"


@pytest.mark.asyncio
async def test_session_of_deactivated_user_is_rejected(user_client: AsyncClient, regular_user):
    async with get_repository_context(UserRepository) as user_repo:
        await user_repo.update_user(user_id=regular_user.id, is_active=False)

    response = await user_client.get("/api/auth/session")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_clears_cookie(user_client: AsyncClient):
    response = await user_client.post("/api/auth/logout")
    assert response.status_code == 200
    assert settings.SESSION_COOKIE_NAME in response.headers.get("set-cookie", "")


@pytest.mark.asyncio
async def test_invalid_login_payload_is_400(client: AsyncClient):
    response = await client.post("/api/auth/login", json={"email": "not-an-email"})
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "password" in response.json()["error"]


@pytest.mark.asyncio
@pytest.mark.parametrize("method,path", [
    ("get", "/api/users"),
    ("get", "/api/user/profile"),
    ("get", "/api/teams"),
    ("get", "/api/admin/api-keys"),
    ("get", "/api/connections"),
    ("get", "/api/databases"),
    ("get", "/api/databases/accessible"),
    ("get", "/api/access"),
    ("get", "/api/chats"),
    ("post", "/api/query"),
    ("post", "/api/query-results"),
])
async def test_protected_routes_require_credentials(client: AsyncClient, method, path):
    response = await client.request(method, path)
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Unauthorized"}


@pytest.mark.asyncio
async def test_health_root(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
