# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from hrops.models.base import TimestampMixin, UUIDBase


class WorkflowTransition(UUIDBase, TimestampMixin, table=True):
    """One step in the lifecycle of a leave request or timesheet."""

    __tablename__ = "workflow_transition"
    __table_args__ = (sa.Index("ix_transition_entity", "entity_type", "entity_id", "created_at"),)

    entity_type: str = Field(max_length=50)
    entity_id: uuid.UUID
    from_status: str | None = Field(default=None, max_length=20)
    to_status: str = Field(max_length=20)
    approval_level: int | None = None
    actor_id: uuid.UUID
    reason: str | None = Field(default=None, max_length=1000)
