# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header

from hrops.exceptions import ValidationFailed
from hrops.models.enums import Permission, Role
from hrops.schemas.auth import AuthContext
from hrops.services.permissions import effective_permissions


def _parse_permissions(raw: str | None) -> list[Permission]:
    if not raw:
        return []
    names = [part.strip().upper() for part in raw.split(",") if part.strip()]
    unknown = [name for name in names if name not in Permission.__members__]
    if unknown:
        raise ValidationFailed("Unknown permission", context={"unknown": unknown})
    return [Permission(name) for name in names]


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_role: str = Header(default=Role.EMPLOYEE.value),
    x_permissions: str | None = Header(default=None),
) -> AuthContext:
    """Extract dev auth context from request headers.

    The effective permission set is the role's defaults plus any names listed
    in the comma-separated ``X-Permissions`` header.
    """
    role_name = x_role.strip().upper()
    if role_name not in Role.__members__:
        raise ValidationFailed("Unknown role", context={"role": x_role})
    role = Role(role_name)
    return AuthContext(
        user_id=x_user_id,
        role=role,
        permissions=effective_permissions(role, _parse_permissions(x_permissions)),
    )


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]
