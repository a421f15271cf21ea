"""
Tests for the admin roster endpoints backed by the identity directory.
"""
import pytest

from conftest import ADMIN2_ID, ADMIN_ID, OTHER_CITIZEN_ID


@pytest.mark.asyncio
async def test_list_admins(client, as_admin):
    resp = await client.get("/api/v1/admin/admins", headers=as_admin)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 2
    assert {a["id"] for a in data["admins"]} == {ADMIN_ID, ADMIN2_ID}
    assert {a["email"] for a in data["admins"]} == {"admin@example.com", "admin2@example.com"}


@pytest.mark.asyncio
async def test_create_admin_by_email(client, as_admin, directory):
    resp = await client.post(
        "/api/v1/admin/admins", json={"email": "U2@example.com"}, headers=as_admin
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Admin created successfully"
    assert body["admin"]["id"] == OTHER_CITIZEN_ID

    user = await directory.get_user(OTHER_CITIZEN_ID)
    assert user.is_admin

    resp = await client.get("/api/v1/admin/stats", headers={"X-Dev-User-ID": OTHER_CITIZEN_ID})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_create_admin_already_admin(client, as_admin):
    resp = await client.post(
        "/api/v1/admin/admins", json={"email": "admin2@example.com"}, headers=as_admin
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "User is already an admin"


@pytest.mark.asyncio
async def test_create_admin_unknown_email(client, as_admin):
    resp = await client.post(
        "/api/v1/admin/admins", json={"email": "nobody@example.com"}, headers=as_admin
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_create_admin_invalid_email(client, as_admin):
    resp = await client.post("/api/v1/admin/admins", json={"email": "not-an-email"}, headers=as_admin)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_cannot_remove_self(client, as_admin):
    resp = await client.delete(f"/api/v1/admin/admins/{ADMIN_ID}", headers=as_admin)
    assert resp.status_code == 400
    assert resp.json()["message"] == "You cannot remove your own admin privileges"


@pytest.mark.asyncio
async def test_remove_admin(client, as_admin, directory):
    resp = await client.delete(f"/api/v1/admin/admins/{ADMIN2_ID}", headers=as_admin)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Admin privileges removed successfully"

    user = await directory.get_user(ADMIN2_ID)
    assert not user.is_admin

    resp = await client.get("/api/v1/admin/admins", headers=as_admin)
    assert resp.json()["total"] == 1


@pytest.mark.asyncio
async def test_remove_non_admin(client, as_admin):
    resp = await client.delete(f"/api/v1/admin/admins/{OTHER_CITIZEN_ID}", headers=as_admin)
    assert resp.status_code == 400
    assert resp.json()["message"] == "User is not an admin"
