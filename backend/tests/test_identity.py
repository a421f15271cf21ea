"""
Tests for the Clerk-backed identity directory.

ClerkDirectory talks to an in-process fake of the Clerk Backend API through
httpx.MockTransport, so no request leaves the process.
"""
import json
from datetime import datetime, timezone

import httpx
import pytest

from citycare.core.config import get_settings
from citycare.core.errors import UpstreamError
from citycare.core.identity import ADMIN_ROLE, USER_ROLE, ClerkDirectory, _user_from_clerk

CREATED_MS = 1760868000000


def _clerk_user(user_id: str, public: dict | None = None, private: dict | None = None) -> dict:
    return {
        "id": user_id,
        "first_name": "Asha",
        "last_name": "Rao",
        "image_url": "https://img.clerk.com/asha.png",
        "created_at": CREATED_MS,
        "email_addresses": [{"email_address": f"{user_id}@example.com"}],
        "public_metadata": public or {},
        "private_metadata": private or {},
    }


class FakeClerk:
    """Minimal Clerk Backend API: users by id, and the metadata merge endpoint."""

    def __init__(self, *users: dict):
        self.users = {u["id"]: u for u in users}
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")  # ["v1", "users", id, ...]
        user = self.users.get(parts[2]) if len(parts) > 2 else None

        if request.method == "GET" and len(parts) == 3:
            return httpx.Response(200, json=user) if user else httpx.Response(404, json={})

        if request.method == "PATCH" and parts[3:] == ["metadata"]:
            if user is None:
                return httpx.Response(404, json={})
            body = json.loads(request.content)
            for key in ("public_metadata", "private_metadata"):
                merged = {**user[key], **body.get(key, {})}
                user[key] = {k: v for k, v in merged.items() if v is not None}
            return httpx.Response(200, json=user)

        return httpx.Response(405)

    def directory(self) -> ClerkDirectory:
        return ClerkDirectory(get_settings(), transport=httpx.MockTransport(self.handler))


def test_user_from_clerk_maps_profile():
    user = _user_from_clerk(_clerk_user("user_1"))
    assert user.id == "user_1"
    assert user.email == "user_1@example.com"
    assert user.name == "Asha Rao"
    assert user.image_url == "https://img.clerk.com/asha.png"
    assert user.created_at == datetime.fromtimestamp(CREATED_MS / 1000, tz=timezone.utc)
    assert user.role == USER_ROLE


@pytest.mark.parametrize(
    "public,private",
    [({"role": "admin"}, {}), ({}, {"role": "admin"})],
)
def test_user_from_clerk_admin_claim(public, private):
    assert _user_from_clerk(_clerk_user("user_1", public, private)).is_admin


def test_user_from_clerk_without_optional_fields():
    user = _user_from_clerk({"id": "user_2"})
    assert user.email is None
    assert user.name == ""
    assert user.created_at is None
    assert not user.is_admin


@pytest.mark.asyncio
async def test_get_user():
    clerk = FakeClerk(_clerk_user("user_1", public={"role": "admin"}))
    user = await clerk.directory().get_user("user_1")
    assert user.is_admin
    assert clerk.requests[0].headers["Authorization"].startswith("Bearer")


@pytest.mark.asyncio
async def test_get_unknown_user_is_none():
    assert await FakeClerk().directory().get_user("user_missing") is None


@pytest.mark.asyncio
async def test_upstream_error_status_raises_502():
    def handler(request):
        return httpx.Response(500, json={"errors": []})

    directory = ClerkDirectory(get_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(UpstreamError) as exc_info:
        await directory.get_user("user_1")
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_transport_failure_raises_502():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    directory = ClerkDirectory(get_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(UpstreamError):
        await directory.get_user("user_1")


@pytest.mark.asyncio
async def test_promote_sets_public_role():
    clerk = FakeClerk(_clerk_user("user_1"))
    directory = clerk.directory()

    await directory.set_role(await directory.get_user("user_1"), ADMIN_ROLE)

    user = await directory.get_user("user_1")
    assert user.is_admin
    assert clerk.users["user_1"]["public_metadata"] == {"role": "admin"}


@pytest.mark.asyncio
async def test_demote_clears_private_admin_claim():
    clerk = FakeClerk(_clerk_user("user_1", public={"plan": "pro"}, private={"role": "admin"}))
    directory = clerk.directory()

    user = await directory.get_user("user_1")
    assert user.is_admin

    await directory.set_role(user, USER_ROLE)

    user = await directory.get_user("user_1")
    assert not user.is_admin
    assert clerk.users["user_1"]["private_metadata"] == {}
    assert clerk.users["user_1"]["public_metadata"] == {"plan": "pro", "role": "user"}


@pytest.mark.asyncio
async def test_set_role_on_missing_user_raises():
    directory = FakeClerk().directory()
    with pytest.raises(UpstreamError):
        await directory.set_role(_user_from_clerk({"id": "user_gone"}), USER_ROLE)
