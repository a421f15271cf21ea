"""
Role-based access control (RBAC) dependency factory.

Usage:
    @router.get("/admin/stats")
    async def stats(auth: AuthContext = Depends(require_role("admin"))):
        ...

    @router.get("/complaints/my")
    async def mine(auth: AuthContext = Depends(require_role())):
        ...
"""
from fastapi import Depends

from citycare.core.errors import Forbidden
from citycare.core.security import AuthContext, get_current_user


def require_role(*roles: str):
    """
    Dependency factory that enforces the caller's role is in *roles.
    Accepts any authenticated user when called with no role arguments.
    """

    async def _check_role(current_user: AuthContext = Depends(get_current_user)) -> AuthContext:
        if roles and current_user.role not in roles:
            raise Forbidden("Admin access required")
        return current_user

    return _check_role
