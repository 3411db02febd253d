"""Transition history for leave requests and timesheets.

Entities store only their current status; when and why each decision was
taken is read back from the ordered list of transitions.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from hrops.models.transition import WorkflowTransition
from hrops.schemas.history import TransitionResponse

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from hrops.models.enums import AuditEntityType


@dataclass
class Timeline:
    """Legacy timestamp view derived from the latest workflow cycle."""

    submitted_at: datetime | None = None
    approved_l1_at: datetime | None = None
    approved_l2_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    revision_requested_at: datetime | None = None
    revision_requested_reason: str | None = None


async def record_transition(
    session: AsyncSession,
    *,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    from_status: str | None,
    to_status: str,
    actor_id: uuid.UUID,
    approval_level: int | None = None,
    reason: str | None = None,
) -> WorkflowTransition:
    """Append a transition within the caller's transaction."""
    transition = WorkflowTransition(
        entity_type=entity_type.value,
        entity_id=entity_id,
        from_status=from_status,
        to_status=to_status,
        approval_level=approval_level,
        actor_id=actor_id,
        reason=reason,
    )
    session.add(transition)
    return transition


async def load_history(
    session: AsyncSession,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
) -> list[WorkflowTransition]:
    """All transitions of an entity, oldest first (pending ones included)."""
    await session.flush()
    result = await session.execute(
        select(WorkflowTransition)
        .where(
            col(WorkflowTransition.entity_type) == entity_type.value,
            col(WorkflowTransition.entity_id) == entity_id,
        )
        .order_by(col(WorkflowTransition.created_at), col(WorkflowTransition.id))
    )
    return list(result.scalars().all())


def derive_timeline(history: Sequence[WorkflowTransition]) -> Timeline:
    """Collapse the history into the timestamps of the current cycle.

    A cycle starts at the most recent transition into SUBMITTED from a
    non-SUBMITTED state; earlier decisions belong to superseded cycles.
    """
    start = 0
    for index, transition in enumerate(history):
        if transition.to_status == "SUBMITTED" and transition.from_status != "SUBMITTED":
            start = index

    timeline = Timeline()
    for transition in history[start:]:
        match transition.to_status:
            case "SUBMITTED" if transition.from_status == "SUBMITTED":
                # Intermediate L1 approval; status does not change.
                timeline.approved_l1_at = transition.created_at
            case "SUBMITTED":
                timeline.submitted_at = transition.created_at
            case "APPROVED":
                if transition.approval_level == 2:
                    timeline.approved_l2_at = transition.created_at
                else:
                    timeline.approved_l1_at = transition.created_at
            case "REJECTED":
                timeline.rejected_at = transition.created_at
                timeline.rejection_reason = transition.reason
            case "CANCELLED":
                timeline.cancelled_at = transition.created_at
                timeline.cancel_reason = transition.reason
            case "REVISION_REQUIRED":
                timeline.revision_requested_at = transition.created_at
                timeline.revision_requested_reason = transition.reason
    return timeline


def build_transition_responses(history: Sequence[WorkflowTransition]) -> list[TransitionResponse]:
    return [
        TransitionResponse(
            from_status=t.from_status,
            to_status=t.to_status,
            approval_level=t.approval_level,
            actor_id=t.actor_id,
            reason=t.reason,
            created_at=t.created_at,
        )
        for t in history
    ]
