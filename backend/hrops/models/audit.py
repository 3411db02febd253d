# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.orm import Session
from sqlmodel import Field

from hrops.models.base import UUIDBase, now_utc


class AuditLog(UUIDBase, table=True):
    """Immutable record of every mutation in the system."""

    __tablename__ = "audit_log"
    __table_args__ = (
        sa.Index("ix_audit_entity", "entity_type", "entity_id"),
        sa.Index("ix_audit_actor", "actor_id"),
    )

    actor_id: uuid.UUID
    entity_type: str = Field(max_length=50)
    entity_id: uuid.UUID
    action: str = Field(max_length=50, index=True)
    reason: str | None = Field(default=None, max_length=1000)
    is_override: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    before_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    after_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    metadata_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    created_at: datetime = Field(
        default_factory=now_utc,
        index=True,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class AuditLogImmutableError(RuntimeError):
    """Raised when code tries to modify or delete an audit entry."""


@event.listens_for(Session, "before_flush")
def _reject_audit_mutations(session: Session, flush_context: object, instances: object) -> None:
    for obj in session.dirty:
        if isinstance(obj, AuditLog) and session.is_modified(obj):
            msg = f"Audit log entry {obj.id} is append-only"
            raise AuditLogImmutableError(msg)
    for obj in session.deleted:
        if isinstance(obj, AuditLog):
            msg = f"Audit log entry {obj.id} cannot be deleted"
            raise AuditLogImmutableError(msg)
