"""
Admin roster management.

Admin status lives in the identity directory (role metadata), not in our
database, so these endpoints only read and flip that claim.
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import EmailStr

from citycare.core.errors import InvalidOperation, NotFound
from citycare.core.identity import ADMIN_ROLE, USER_ROLE, DirectoryUser, IdentityDirectory, get_identity_directory
from citycare.core.rbac import require_role
from citycare.core.security import AuthContext
from citycare.schemas.common import CamelModel, MessageResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/admins", tags=["admin"])


class AdminSummary(CamelModel):
    id: str
    email: str | None = None
    name: str = ""
    image_url: str | None = None
    created_at: datetime | None = None


class AdminListResponse(CamelModel):
    admins: list[AdminSummary]
    total: int


class AdminCreate(CamelModel):
    email: EmailStr


class AdminCreateResponse(CamelModel):
    message: str
    admin: AdminSummary


def _summary(user: DirectoryUser) -> AdminSummary:
    return AdminSummary(
        id=user.id,
        email=user.email,
        name=user.name,
        image_url=user.image_url,
        created_at=user.created_at,
    )


@router.get("", response_model=AdminListResponse)
async def list_admins(
    directory: IdentityDirectory = Depends(get_identity_directory),
    _admin: AuthContext = Depends(require_role(ADMIN_ROLE)),
) -> AdminListResponse:
    admins = [_summary(u) for u in await directory.list_admins()]
    return AdminListResponse(admins=admins, total=len(admins))


@router.post("", response_model=AdminCreateResponse)
async def create_admin(
    payload: AdminCreate,
    directory: IdentityDirectory = Depends(get_identity_directory),
    admin: AuthContext = Depends(require_role(ADMIN_ROLE)),
) -> AdminCreateResponse:
    """Grant the admin role to an existing user, looked up by email."""
    user = await directory.find_user_by_email(payload.email)
    if user is None:
        raise NotFound(f"No user found with email: {payload.email}")
    if user.is_admin:
        raise InvalidOperation("User is already an admin")

    await directory.set_role(user, ADMIN_ROLE)
    logger.info("Admin role granted to %s by %s", user.id, admin.user_id)
    return AdminCreateResponse(message="Admin created successfully", admin=_summary(user))


@router.delete("/{user_id}", response_model=MessageResponse)
async def remove_admin(
    user_id: str,
    directory: IdentityDirectory = Depends(get_identity_directory),
    admin: AuthContext = Depends(require_role(ADMIN_ROLE)),
) -> MessageResponse:
    if user_id == admin.user_id:
        raise InvalidOperation("You cannot remove your own admin privileges")

    user = await directory.get_user(user_id)
    if user is None:
        raise NotFound(f"No user found with ID: {user_id}")
    if not user.is_admin:
        raise InvalidOperation("User is not an admin")

    await directory.set_role(user, USER_ROLE)
    logger.info("Admin role removed from %s by %s", user_id, admin.user_id)
    return MessageResponse(message="Admin privileges removed successfully")
