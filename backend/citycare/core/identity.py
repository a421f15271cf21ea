"""
Identity directory port.

The directory is the source of truth for who is an admin: a user holds the
admin role when "role" == "admin" in either their public or private metadata.

Implementations:
  ClerkDirectory:  Clerk Backend API over httpx (staging / production)
  StaticDirectory: in-memory users (development without Clerk, tests)
"""
import abc
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import Depends

from citycare.core.config import Settings, get_settings
from citycare.core.errors import UpstreamError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
USER_ROLE = "user"


@dataclass
class DirectoryUser:
    id: str
    email: str | None = None
    name: str = ""
    image_url: str | None = None
    created_at: datetime | None = None
    role: str = USER_ROLE
    public_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class IdentityDirectory(abc.ABC):
    @abc.abstractmethod
    async def get_user(self, user_id: str) -> DirectoryUser | None:
        """Return the user, or None when the id is unknown."""

    @abc.abstractmethod
    async def find_user_by_email(self, email: str) -> DirectoryUser | None:
        ...

    @abc.abstractmethod
    async def list_users(self, limit: int = 100) -> list[DirectoryUser]:
        ...

    @abc.abstractmethod
    async def set_role(self, user: DirectoryUser, role: str) -> None:
        ...

    async def list_admins(self, limit: int = 100) -> list[DirectoryUser]:
        return [u for u in await self.list_users(limit=limit) if u.is_admin]


# ---------------------------------------------------------------------------
# Clerk
# ---------------------------------------------------------------------------

def _user_from_clerk(data: dict[str, Any]) -> DirectoryUser:
    public = data.get("public_metadata") or {}
    private = data.get("private_metadata") or {}
    is_admin = public.get("role") == ADMIN_ROLE or private.get("role") == ADMIN_ROLE

    emails = data.get("email_addresses") or []
    created_ms = data.get("created_at")
    name = f"{data.get('first_name') or ''} {data.get('last_name') or ''}".strip()

    return DirectoryUser(
        id=data["id"],
        email=emails[0].get("email_address") if emails else None,
        name=name,
        image_url=data.get("image_url"),
        created_at=(
            datetime.fromtimestamp(created_ms / 1000, tz=timezone.utc) if created_ms else None
        ),
        role=ADMIN_ROLE if is_admin else USER_ROLE,
        public_metadata=dict(public),
    )


class ClerkDirectory(IdentityDirectory):
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self._base_url = settings.clerk_api_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {settings.clerk_secret_key}"}
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=10,
                transport=self._transport,
            ) as client:
                resp = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Clerk %s %s failed: %s", method, path, exc)
            raise UpstreamError("Identity service request failed") from exc

        if resp.status_code >= 400 and resp.status_code != 404:
            logger.error("Clerk %s %s returned %s: %s", method, path, resp.status_code, resp.text)
            raise UpstreamError("Identity service request failed")
        return resp

    async def get_user(self, user_id: str) -> DirectoryUser | None:
        resp = await self._request("GET", f"/users/{user_id}")
        if resp.status_code == 404:
            return None
        return _user_from_clerk(resp.json())

    async def find_user_by_email(self, email: str) -> DirectoryUser | None:
        resp = await self._request("GET", "/users", params={"email_address": [email]})
        users = resp.json() if resp.status_code != 404 else []
        return _user_from_clerk(users[0]) if users else None

    async def list_users(self, limit: int = 100) -> list[DirectoryUser]:
        resp = await self._request("GET", "/users", params={"limit": limit})
        if resp.status_code == 404:
            return []
        return [_user_from_clerk(u) for u in resp.json()]

    async def set_role(self, user: DirectoryUser, role: str) -> None:
        """
        Write the role through Clerk's metadata merge endpoint.  The admin
        claim is honoured in private metadata too, so demotion deletes the
        private key (a null value removes it) along with the public one.
        """
        body: dict[str, Any] = {"public_metadata": {"role": role}}
        if role != ADMIN_ROLE:
            body["private_metadata"] = {"role": None}

        resp = await self._request("PATCH", f"/users/{user.id}/metadata", json=body)
        if resp.status_code == 404:
            raise UpstreamError(f"Identity service has no user {user.id}")
        logger.info("Clerk role for %s set to %s", user.id, role)


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class StaticDirectory(IdentityDirectory):
    """
    Directory backed by a dict.  Unknown ids resolve to plain users so that
    any X-Dev-User-ID works in development.
    """

    def __init__(self, users: list[DirectoryUser] | None = None):
        self._users: dict[str, DirectoryUser] = {u.id: u for u in users or []}

    async def get_user(self, user_id: str) -> DirectoryUser | None:
        if user_id in self._users:
            return replace(self._users[user_id])
        return DirectoryUser(id=user_id)

    async def find_user_by_email(self, email: str) -> DirectoryUser | None:
        for user in self._users.values():
            if user.email and user.email.lower() == email.lower():
                return replace(user)
        return None

    async def list_users(self, limit: int = 100) -> list[DirectoryUser]:
        return [replace(u) for u in list(self._users.values())[:limit]]

    async def set_role(self, user: DirectoryUser, role: str) -> None:
        stored = self._users.setdefault(user.id, replace(user))
        stored.role = role
        stored.public_metadata = {**stored.public_metadata, "role": role}


_dev_directory: StaticDirectory | None = None


def get_identity_directory(settings: Settings = Depends(get_settings)) -> IdentityDirectory:
    """FastAPI dependency: Clerk when configured, otherwise the dev directory."""
    global _dev_directory

    if settings.clerk_configured:
        return ClerkDirectory(settings)

    if _dev_directory is None:
        logger.warning(
            "CLERK_SECRET_KEY not set: using in-memory identity directory (admins: %s)",
            settings.dev_admin_id_list,
        )
        _dev_directory = StaticDirectory(
            [DirectoryUser(id=uid, role=ADMIN_ROLE) for uid in settings.dev_admin_id_list]
        )
    return _dev_directory
