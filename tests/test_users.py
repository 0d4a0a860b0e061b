"""
User management API tests.
"""

import pytest
from httpx import AsyncClient

from projecthub.models.user import User
from tests.conftest import login

USERS = "/api/v1/users"


def new_user_payload(**overrides) -> dict:
    payload = {
        "email": "created@test.com",
        "username": "created",
        "name": "Created User",
        "password": "secret123",
        "roles": ["staff", "user"],
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_list_users_admin_only(client: AsyncClient, admin_headers: dict, madmin_headers: dict):
    listed = await client.get(USERS, headers=admin_headers)
    denied = await client.get(USERS, headers=madmin_headers)

    assert listed.status_code == 200
    assert listed.json()["pagination"]["total"] == 2
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_list_users_filters(
    client: AsyncClient,
    admin_headers: dict,
    regular_user: User,
    pending_user: User,
):
    by_role = (await client.get(f"{USERS}?role=user", headers=admin_headers)).json()
    pending = (await client.get(f"{USERS}?approved=false", headers=admin_headers)).json()

    assert [u["username"] for u in by_role["items"]] == ["regular"]
    assert [u["username"] for u in pending["items"]] == ["pending"]


@pytest.mark.asyncio
async def test_admin_creates_approved_user(client: AsyncClient, admin_headers: dict):
    response = await client.post(USERS, json=new_user_payload(), headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["approved"] is True
    assert data["roles"] == ["staff", "user"]
    assert await login(client, "created", "secret123")


@pytest.mark.asyncio
async def test_create_rejects_invalid_roles(client: AsyncClient, admin_headers: dict):
    response = await client.post(
        USERS, json=new_user_payload(roles=["staff", "superuser"]), headers=admin_headers
    )

    assert response.status_code == 400
    assert "superuser" in response.json()["detail"]


@pytest.mark.asyncio
async def test_create_requires_base_role(client: AsyncClient, admin_headers: dict):
    response = await client.post(USERS, json=new_user_payload(roles=["admin"]), headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0]["constraint"] == "base_role"


@pytest.mark.asyncio
async def test_create_rejects_duplicate_username(client: AsyncClient, admin_headers: dict, regular_user: User):
    response = await client.post(
        USERS, json=new_user_payload(username="regular"), headers=admin_headers
    )

    assert response.status_code == 409
    assert response.json()["errors"][0]["field"] == "username"


@pytest.mark.asyncio
async def test_own_profile_readable(client: AsyncClient, user_headers: dict, regular_user: User):
    response = await client.get(f"{USERS}/{regular_user.id}", headers=user_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["user"]["username"] == "regular"
    assert data["project_stats"]["total"] == 0


@pytest.mark.asyncio
async def test_staff_profile_has_no_project_stats(client: AsyncClient, staff_headers: dict, staff_user: User):
    response = await client.get(f"{USERS}/{staff_user.id}", headers=staff_headers)

    assert response.json()["project_stats"] is None


@pytest.mark.asyncio
async def test_other_profile_forbidden(client: AsyncClient, user_headers: dict, other_user: User):
    response = await client.get(f"{USERS}/{other_user.id}", headers=user_headers)

    assert response.status_code == 403
    assert response.json()["errors"][0]["reason"] == "not_owner"


@pytest.mark.asyncio
async def test_self_update_limited_fields(client: AsyncClient, user_headers: dict, regular_user: User):
    url = f"{USERS}/{regular_user.id}"

    renamed = await client.put(url, json={"name": "Renamed"}, headers=user_headers)
    escalation = await client.put(url, json={"roles": ["staff", "admin"]}, headers=user_headers)

    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Renamed"
    assert escalation.status_code == 403


@pytest.mark.asyncio
async def test_update_duplicate_email_conflicts(
    client: AsyncClient,
    user_headers: dict,
    regular_user: User,
    other_user: User,
):
    response = await client.put(
        f"{USERS}/{regular_user.id}", json={"email": other_user.email}, headers=user_headers
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_update_without_fields_rejected(client: AsyncClient, user_headers: dict, regular_user: User):
    response = await client.put(f"{USERS}/{regular_user.id}", json={}, headers=user_headers)

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["email", "username", "name"])
async def test_self_update_null_field_rejected(
    client: AsyncClient, user_headers: dict, regular_user: User, field: str
):
    response = await client.put(f"{USERS}/{regular_user.id}", json={field: None}, headers=user_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0] == {"field": field, "constraint": "required"}


@pytest.mark.asyncio
async def test_admin_update_null_approved_rejected(
    client: AsyncClient, admin_headers: dict, regular_user: User
):
    response = await client.put(
        f"{USERS}/{regular_user.id}", json={"approved": None}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "approved"


@pytest.mark.asyncio
async def test_admin_update_null_roles_rejected(
    client: AsyncClient, admin_headers: dict, regular_user: User
):
    response = await client.put(
        f"{USERS}/{regular_user.id}", json={"roles": None}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["constraint"] == "non_empty"


@pytest.mark.asyncio
async def test_admin_updates_roles(client: AsyncClient, admin_headers: dict, regular_user: User):
    response = await client.put(
        f"{USERS}/{regular_user.id}",
        json={"roles": ["madmin", "staff"]},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["roles"] == ["staff", "madmin"]


@pytest.mark.asyncio
async def test_approve_user(client: AsyncClient, admin_headers: dict, pending_user: User):
    url = f"{USERS}/{pending_user.id}/approve"

    first = await client.put(url, headers=admin_headers)
    second = await client.put(url, headers=admin_headers)

    assert first.status_code == 200
    assert first.json()["approved"] is True
    assert second.status_code == 409
    assert second.json()["errors"][0]["condition"] == "already_approved"
    assert await login(client, "pending")


@pytest.mark.asyncio
async def test_approve_requires_admin(client: AsyncClient, madmin_headers: dict, pending_user: User):
    response = await client.put(f"{USERS}/{pending_user.id}/approve", headers=madmin_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_password_reset(client: AsyncClient, admin_headers: dict, regular_user: User):
    url = f"{USERS}/{regular_user.id}/password"

    too_short = await client.put(url, json={"new_password": "123"}, headers=admin_headers)
    reset = await client.put(url, json={"new_password": "resetpass"}, headers=admin_headers)

    assert too_short.status_code == 400
    assert reset.status_code == 200
    assert await login(client, "regular", "resetpass")


@pytest.mark.asyncio
async def test_unknown_user_not_found(client: AsyncClient, admin_headers: dict):
    response = await client.get(f"{USERS}/9999", headers=admin_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_user_stats_overview(
    client: AsyncClient,
    admin_headers: dict,
    regular_user: User,
    staff_user: User,
    pending_user: User,
):
    stats = (await client.get(f"{USERS}/stats/overview", headers=admin_headers)).json()

    assert stats["total"] == 4
    assert stats["approved"] == 3
    assert stats["pending"] == 1
    assert stats["by_role"]["staff"] == 4
    assert stats["by_role"]["admin"] == 1
    assert stats["staff_only"] == 2
