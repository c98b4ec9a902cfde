from typing import Dict

from fastapi import Depends, HTTPException, status

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.enums import AppRole
from schoolfees.core.exceptions import PermissionDeniedError

_READ_ONLY = {"read": True}
_MANAGE = {"create": True, "read": True, "update": True, "delete": True}

ROLE_PERMISSIONS: Dict[AppRole, Dict[str, Dict[str, bool]]] = {
    AppRole.DIRECTOR: {
        "grades": _READ_ONLY,
        "pupils": _READ_ONLY,
        "parents": _READ_ONLY,
        "fees": {"read": True, "activate": True},
        "payments": {"read": True, "approve_delete": True},
        "reports": _READ_ONLY,
    },
    AppRole.SCHOOL_ADMIN: {
        "grades": _MANAGE,
        "pupils": _MANAGE,
        "parents": _MANAGE,
        "fees": {"create": True, "read": True, "update": True},
        "payments": {"create": True, "read": True, "soft_delete": True},
        "reports": _READ_ONLY,
    },
}


def has_permission(role: AppRole, module: str, action: str) -> bool:
    if role == AppRole.SUPER_ADMIN:
        return True
    return ROLE_PERMISSIONS.get(role, {}).get(module, {}).get(action, False)


def ensure_permission(actor: CurrentUser, module: str, action: str) -> None:
    """Service-level guard for callers that bypass the HTTP layer."""
    if not has_permission(actor.role, module, action):
        raise PermissionDeniedError(f"Role {actor.role.value} may not {action} {module}")


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission("payments", "approve_delete"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if not has_permission(current_user.role, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return _checker
