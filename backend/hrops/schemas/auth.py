# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from hrops.models.enums import Permission, Role


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers.

    ``permissions`` is the effective capability set: the role defaults plus
    any explicitly granted extras.
    """

    user_id: uuid.UUID
    role: Role = Role.EMPLOYEE
    permissions: frozenset[Permission] = Field(default_factory=frozenset)
