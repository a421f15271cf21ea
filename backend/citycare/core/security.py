"""
Clerk session-token verification + current-user dependency.

In development with DEV_SKIP_AUTH=true:
  - Pass X-Dev-User-ID: <identity id> header to authenticate as that user.
  - Without the header the request is anonymous (401 on protected routes).

In production / staging:
  - Bearer token must be a valid Clerk session token (RS256 JWT).
  - JWKS fetched once from Clerk and cached for JWKS_CACHE_TTL seconds.

In every mode the caller's role is looked up in the identity directory once
per request and carried on AuthContext.
"""
import logging
import time
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwk, jwt

from citycare.core.config import get_settings
from citycare.core.errors import ServiceUnavailable, Unauthorized
from citycare.core.identity import ADMIN_ROLE, IdentityDirectory, get_identity_directory

logger = logging.getLogger(__name__)
settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


# ---------------------------------------------------------------------------
# JWKS cache
# ---------------------------------------------------------------------------
_jwks_cache: dict[str, Any] = {}  # kid → JWK key
_jwks_fetched_at: float = 0.0


async def _get_jwks() -> dict[str, Any]:
    """Fetch and cache Clerk JWKS.  Returns {kid: jwk_key} mapping."""
    global _jwks_cache, _jwks_fetched_at

    now = time.monotonic()
    if _jwks_cache and (now - _jwks_fetched_at) < settings.jwks_cache_ttl:
        return _jwks_cache

    headers = {}
    if settings.clerk_secret_key and not settings.clerk_jwks_url:
        headers["Authorization"] = f"Bearer {settings.clerk_secret_key}"

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.get(settings.jwks_url, headers=headers)
            resp.raise_for_status()
            keys = resp.json().get("keys", [])
            _jwks_cache = {k["kid"]: k for k in keys}
            _jwks_fetched_at = now
            logger.info("Fetched %d keys from Clerk JWKS", len(_jwks_cache))
    except Exception as exc:
        logger.error("Failed to fetch Clerk JWKS: %s", exc)
        # Return stale cache if available
        if _jwks_cache:
            return _jwks_cache
        raise ServiceUnavailable("Authentication service unavailable") from exc

    return _jwks_cache


def _verify_clerk_jwt(token: str, jwks: dict[str, Any]) -> dict[str, Any]:
    """
    Decode and verify a Clerk session token.
    Raises Unauthorized on any failure.
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise Unauthorized("Invalid token header") from exc

    kid = unverified_header.get("kid")
    if kid not in jwks:
        raise Unauthorized("Token key not found")

    key = jwk.construct(jwks[kid])

    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            options={"verify_aud": False},  # Clerk session tokens carry azp, not aud
        )
    except ExpiredSignatureError as exc:
        raise Unauthorized("Token has expired") from exc
    except JWTError as exc:
        raise Unauthorized("Token verification failed") from exc

    if settings.clerk_issuer and payload.get("iss") != settings.clerk_issuer:
        raise Unauthorized("Invalid token issuer")

    if not payload.get("sub"):
        raise Unauthorized("Token has no subject")

    return payload


async def _resolve_identity(
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    """Return the caller's identity id, or None for an anonymous request."""
    if settings.auth_disabled:
        return _dev_user_id.get(None) or None

    if credentials is None:
        return None

    jwks = await _get_jwks()
    payload = _verify_clerk_jwt(credentials.credentials, jwks)
    return payload["sub"]


async def _build_context(user_id: str, directory: IdentityDirectory) -> AuthContext:
    user = await directory.get_user(user_id)
    if user is None:
        raise Unauthorized("User not found in identity directory")
    return AuthContext(user_id=user.id, role=user.role)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    directory: IdentityDirectory = Depends(get_identity_directory),
) -> AuthContext:
    """FastAPI dependency: the authenticated caller.  Raises Unauthorized."""
    user_id = await _resolve_identity(credentials)
    if not user_id:
        raise Unauthorized()
    return await _build_context(user_id, directory)


# ---------------------------------------------------------------------------
# Context variable for dev-mode user injection (set by middleware)
# ---------------------------------------------------------------------------
_dev_user_id: ContextVar[str | None] = ContextVar("_dev_user_id", default=None)


def set_dev_user_id(user_id: str | None) -> None:
    _dev_user_id.set(user_id)
