"""Permission gate: decides whether an actor's capability set authorizes an action.

The gate knows nothing about workflow state; state machines call it before
looking at the entity they are about to change.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from hrops.exceptions import PermissionDenied
from hrops.models.enums import Permission, Role

if TYPE_CHECKING:
    from hrops.schemas.auth import AuthContext

_EMPLOYEE = frozenset({Permission.LEAVE_APPLY_SELF})

_MANAGER = _EMPLOYEE | {
    Permission.LEAVE_APPROVE_L1,
    Permission.TIMESHEET_APPROVE_L1,
}

_HR_ADMIN = _MANAGER | {
    Permission.LEAVE_APPLY_ANY,
    Permission.LEAVE_APPROVE_L2,
    Permission.LEAVE_REQUEST_CANCEL,
    Permission.LEAVE_REQUEST_VIEW_ANY,
    Permission.LEAVE_BALANCE_GRANT,
    Permission.LEAVE_TYPE_MANAGE,
    Permission.TIMESHEET_APPROVE_L2,
    Permission.TIMESHEET_VIEW_ANY,
    Permission.AUDIT_VIEW,
}

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.EMPLOYEE: _EMPLOYEE,
    Role.MANAGER: _MANAGER,
    Role.HR_ADMIN: _HR_ADMIN,
    Role.SUPER_ADMIN: frozenset({Permission.SYSTEM_FULL_ACCESS}),
}


def effective_permissions(role: Role, extra: Iterable[Permission] = ()) -> frozenset[Permission]:
    """Role defaults merged with explicitly granted permissions."""
    return ROLE_PERMISSIONS[role] | frozenset(extra)


def has_any(actor: AuthContext, permissions: Iterable[Permission]) -> bool:
    """True if the actor holds at least one of ``permissions``."""
    if Permission.SYSTEM_FULL_ACCESS in actor.permissions:
        return True
    return any(p in actor.permissions for p in permissions)


def has_all(actor: AuthContext, permissions: Iterable[Permission]) -> bool:
    """True if the actor holds every one of ``permissions``."""
    if Permission.SYSTEM_FULL_ACCESS in actor.permissions:
        return True
    return all(p in actor.permissions for p in permissions)


def require_any(actor: AuthContext, permissions: Iterable[Permission], action: str = "perform this action") -> None:
    """Raise PermissionDenied unless the actor holds one of ``permissions``."""
    required = list(permissions)
    if not has_any(actor, required):
        raise PermissionDenied(
            f"Not authorized to {action}",
            context={"required_any": [p.value for p in required]},
        )


def require_all(actor: AuthContext, permissions: Iterable[Permission], action: str = "perform this action") -> None:
    """Raise PermissionDenied unless the actor holds all of ``permissions``."""
    required = list(permissions)
    if not has_all(actor, required):
        missing = [p.value for p in required if p not in actor.permissions]
        raise PermissionDenied(
            f"Not authorized to {action}",
            context={"missing": missing},
        )


def approver_permission(kind: str, level: int) -> Permission:
    """Permission an approver needs at ``level`` for ``kind`` ("LEAVE" or "TIMESHEET")."""
    return Permission(f"{kind}_APPROVE_L{level}")
