import pytest
from httpx import AsyncClient

from flashquery.db.repositories.users import UserRepository

from conftest import TEST_USER, load


@pytest.mark.asyncio
async def test_admin_lists_users(admin_client: AsyncClient, regular_user):
    response = await admin_client.get("/api/users")
    assert response.status_code == 200
    emails = {user["email"] for user in response.json()["data"]["users"]}
    assert TEST_USER["email"] in emails


@pytest.mark.asyncio
async def test_non_admin_cannot_list_users(user_client: AsyncClient):
    response = await user_client.get("/api/users")
    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden: Admin access required"


@pytest.mark.asyncio
async def test_create_user(admin_client: AsyncClient):
    response = await admin_client.post("/api/users", json={
        "name": "  New Analyst ",
        "email": "Analyst@Example.com",
        "password": "secret1",
        "role": "user",
    })
    assert response.status_code == 201
    user = response.json()["data"]["user"]
    assert user["id"].startswith("user-")
    assert user["name"] == "New Analyst"
    assert user["email"] == "analyst@example.com"
    assert user["isActive"] is True


@pytest.mark.asyncio
async def test_create_user_with_taken_email(admin_client: AsyncClient, regular_user):
    response = await admin_client.post("/api/users", json={
        "name": "Copy",
        "email": TEST_USER["email"],
        "password": "secret1",
    })
    assert response.status_code == 400
    assert response.json()["error"] == "User with this email already exists"


@pytest.mark.asyncio
async def test_create_user_short_password(admin_client: AsyncClient):
    response = await admin_client.post("/api/users", json={
        "name": "Shorty",
        "email": "short@example.com",
        "password": "123",
    })
    assert response.status_code == 400
    assert response.json()["error"].startswith("password:")


@pytest.mark.asyncio
async def test_admin_cannot_deactivate_self(admin_client: AsyncClient, admin_user):
    response = await admin_client.put(f"/api/users/{admin_user.id}", json={"isActive": False})
    assert response.status_code == 400
    assert response.json()["error"] == "You cannot deactivate your own account"


@pytest.mark.asyncio
async def test_admin_cannot_demote_self(admin_client: AsyncClient, admin_user):
    response = await admin_client.put(f"/api/users/{admin_user.id}", json={"role": "user"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_user(admin_client: AsyncClient, regular_user):
    response = await admin_client.put(
        f"/api/users/{regular_user.id}",
        json={"role": "admin", "name": "Promoted"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["user"]["role"] == "admin"
    assert response.json()["data"]["user"]["name"] == "Promoted"


@pytest.mark.asyncio
async def test_update_missing_user(admin_client: AsyncClient):
    response = await admin_client.put("/api/users/user_missing", json={"name": "Ghost"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(admin_client: AsyncClient, admin_user):
    response = await admin_client.delete(f"/api/users/{admin_user.id}")
    assert response.status_code == 400
    assert response.json()["error"] == "You cannot delete your own account"


@pytest.mark.asyncio
async def test_delete_user_removes_memberships(admin_client: AsyncClient, regular_user, team):
    response = await admin_client.delete(f"/api/users/{regular_user.id}")
    assert response.status_code == 200
    assert await load(UserRepository, regular_user.id) is None

    team_response = await admin_client.get(f"/api/teams/{team.id}")
    assert team_response.json()["data"]["team"]["memberCount"] == 0


@pytest.mark.asyncio
async def test_profile_roundtrip(user_client: AsyncClient, regular_user):
    response = await user_client.get("/api/user/profile")
    assert response.status_code == 200
    assert response.json()["data"]["user"]["id"] == regular_user.id

    response = await user_client.put(
        "/api/user/profile",
        json={"name": "Renamed User", "email": "renamed@example.com"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["user"]["email"] == "renamed@example.com"


@pytest.mark.asyncio
async def test_profile_email_taken(user_client: AsyncClient, admin_user):
    response = await user_client.put(
        "/api/user/profile",
        json={"name": "Test User", "email": admin_user.email},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Email is already taken"


@pytest.mark.asyncio
async def test_change_password(user_client: AsyncClient, client: AsyncClient):
    response = await user_client.put("/api/user/password", json={
        "currentPassword": TEST_USER["password"],
        "newPassword": "Changed123",
    })
    assert response.status_code == 200

    login = await client.post("/api/auth/login", json={"email": TEST_USER["email"], "password": "Changed123"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_change_password_wrong_current(user_client: AsyncClient):
    response = await user_client.put("/api/user/password", json={
        "currentPassword": "nope-nope",
        "newPassword": "Changed123",
    })
    assert response.status_code == 400
    assert response.json()["error"] == "Current password is incorrect"


@pytest.mark.asyncio
async def test_change_password_must_differ(user_client: AsyncClient):
    response = await user_client.put("/api/user/password", json={
        "currentPassword": TEST_USER["password"],
        "newPassword": TEST_USER["password"],
    })
    assert response.status_code == 400
    assert response.json()["error"] == "New password must be different from current password"
