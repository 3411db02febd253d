# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class TransitionResponse(BaseModel):
    """One step of an entity's workflow history."""

    from_status: str | None
    to_status: str
    approval_level: int | None
    actor_id: uuid.UUID
    reason: str | None
    created_at: datetime
