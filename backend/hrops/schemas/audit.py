# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel


class AuditQuery(BaseModel):
    """Filters accepted by the audit query endpoint. Date bounds are inclusive."""

    entity_type: str | None = None
    entity_id: uuid.UUID | None = None
    actor_id: uuid.UUID | None = None
    action: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class AuditLogResponse(BaseModel):
    """A single audit entry."""

    id: uuid.UUID
    actor_id: uuid.UUID
    action: str
    entity_type: str
    entity_id: uuid.UUID
    reason: str | None
    is_override: bool
    before_json: dict[str, Any] | None
    after_json: dict[str, Any] | None
    metadata_json: dict[str, Any] | None
    created_at: datetime


class AuditListResponse(BaseModel):
    """Paginated audit entries."""

    items: list[AuditLogResponse]
    total: int
