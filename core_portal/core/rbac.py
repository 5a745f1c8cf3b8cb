# core_portal/core/rbac.py

from fastapi import Depends, HTTPException, status
from core_portal.api.deps import get_current_user
from core_portal.models.user import User, UserRole


def AllowRoles(*allowed_roles):
    """
    Route-level role gate.
    - Accepts UserRole values or raw strings
    - Case-insensitive
    - Super admin bypasses everything

    Per-record decisions (which registration, which lead) belong to
    core_portal.core.policy, not here.
    """

    def normalize(role) -> str:
        if isinstance(role, UserRole):
            return role.value.upper().strip()
        return str(role).upper().strip()

    normalized_allowed = {normalize(r) for r in allowed_roles}

    async def role_checker(current_user: User = Depends(get_current_user)):
        user_role = normalize(current_user.role)

        if user_role == UserRole.SUPER_ADMIN.value:
            return current_user

        if user_role not in normalized_allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied for role '{user_role}'"
            )

        return current_user

    return role_checker
