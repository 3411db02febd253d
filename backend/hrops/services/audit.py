"""Audit recorder.

Every state-changing entry point runs inside :func:`audited_mutation`, which
appends exactly one audit entry and commits it together with the mutation, or
rolls both back.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlmodel import col

from hrops.exceptions import ValidationFailed
from hrops.models.audit import AuditLog
from hrops.models.enums import Permission
from hrops.schemas.audit import AuditListResponse, AuditLogResponse
from hrops.services.permissions import require_any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from pydantic import BaseModel
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrops.models.enums import AuditAction, AuditEntityType
    from hrops.schemas.audit import AuditQuery
    from hrops.schemas.auth import AuthContext

logger = logging.getLogger(__name__)

_REDACTED_KEY_FRAGMENTS = ("token", "secret", "password", "otp")


def _redact(data: Any) -> Any:
    if isinstance(data, dict):
        out: dict[str, Any] = {}
        for key, value in data.items():
            if any(fragment in str(key).lower() for fragment in _REDACTED_KEY_FRAGMENTS):
                out[key] = "[REDACTED]"
            else:
                out[key] = _redact(value)
        return out
    if isinstance(data, list):
        return [_redact(item) for item in data]
    return data


def model_to_audit_dict(model: BaseModel) -> dict[str, Any]:
    """Serialize a SQLModel or pydantic instance to a JSON-safe dict for audit logging."""
    return _redact(model.model_dump(mode="json"))


@dataclass
class AuditScope:
    """Mutable audit envelope filled in by the body of an audited mutation."""

    actor_id: uuid.UUID
    action: AuditAction
    entity_type: AuditEntityType
    entity_id: uuid.UUID | None = None
    reason: str | None = None
    is_override: bool = False
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    noop: bool = False
    before_commit: list[Callable[[], Awaitable[None]]] = field(default_factory=list)


async def write_audit_log(
    session: AsyncSession,
    *,
    actor_id: uuid.UUID,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    reason: str | None = None,
    is_override: bool = False,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Write an immutable audit log entry within the caller's transaction."""
    entry = AuditLog(
        actor_id=actor_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        reason=reason,
        is_override=is_override,
        before_json=before_json,
        after_json=after_json,
        metadata_json=metadata_json or None,
    )
    session.add(entry)
    return entry


@asynccontextmanager
async def audited_mutation(
    session: AsyncSession,
    auth: AuthContext,
    *,
    action: AuditAction,
    entity_type: AuditEntityType,
) -> AsyncIterator[AuditScope]:
    """Run a mutation and its audit entry as one transaction.

    The body must set ``entity_id`` and ``after`` on the yielded scope, or set
    ``noop`` when nothing changed (then no entry is written). Checks queued on
    ``before_commit`` run last and may still abort. Any exception rolls the
    whole transaction back.
    """
    scope = AuditScope(actor_id=auth.user_id, action=action, entity_type=entity_type)
    try:
        yield scope
        if not scope.noop:
            for check in scope.before_commit:
                await check()
            if scope.entity_id is None or scope.after is None:
                msg = f"{action} finished without an entity id or after snapshot"
                raise RuntimeError(msg)
            await session.flush()
            await write_audit_log(
                session,
                actor_id=scope.actor_id,
                entity_type=scope.entity_type,
                entity_id=scope.entity_id,
                action=scope.action,
                reason=scope.reason,
                is_override=scope.is_override,
                before_json=scope.before,
                after_json=scope.after,
                metadata_json=scope.metadata,
            )
            if scope.is_override:
                logger.warning(
                    "Month-close override: %s on %s %s by %s (%s)",
                    scope.action,
                    scope.entity_type,
                    scope.entity_id,
                    scope.actor_id,
                    scope.reason,
                )
        await session.commit()
    except BaseException:
        await session.rollback()
        raise


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


def _build_audit_response(entry: AuditLog) -> AuditLogResponse:
    return AuditLogResponse(
        id=entry.id,
        actor_id=entry.actor_id,
        action=entry.action,
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        reason=entry.reason,
        is_override=entry.is_override,
        before_json=entry.before_json,
        after_json=entry.after_json,
        metadata_json=entry.metadata_json,
        created_at=entry.created_at,
    )


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


async def list_audit_logs(
    session: AsyncSession,
    auth: AuthContext,
    query: AuditQuery,
    offset: int = 0,
    limit: int = 50,
) -> AuditListResponse:
    """Filtered, paginated audit entries, newest first."""
    require_any(auth, [Permission.AUDIT_VIEW], "view the audit log")
    if query.start_date and query.end_date and query.end_date < query.start_date:
        raise ValidationFailed(
            "end_date must not be before start_date",
            context={"start_date": query.start_date.isoformat(), "end_date": query.end_date.isoformat()},
        )

    filters = []
    if query.entity_type is not None:
        filters.append(col(AuditLog.entity_type) == query.entity_type)
    if query.entity_id is not None:
        filters.append(col(AuditLog.entity_id) == query.entity_id)
    if query.actor_id is not None:
        filters.append(col(AuditLog.actor_id) == query.actor_id)
    if query.action is not None:
        filters.append(col(AuditLog.action) == query.action)
    if query.start_date is not None:
        filters.append(col(AuditLog.created_at) >= _day_start(query.start_date))
    if query.end_date is not None:
        filters.append(col(AuditLog.created_at) < _day_start(query.end_date + timedelta(days=1)))

    count_result = await session.execute(select(func.count()).select_from(AuditLog).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(AuditLog)
        .where(*filters)
        .order_by(col(AuditLog.created_at).desc(), col(AuditLog.id))
        .offset(offset)
        .limit(limit)
    )
    entries = list(result.scalars().all())

    return AuditListResponse(items=[_build_audit_response(e) for e in entries], total=total)


async def get_entity_timeline(
    session: AsyncSession,
    auth: AuthContext,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
) -> AuditListResponse:
    """All audit entries of one entity in chronological order."""
    require_any(auth, [Permission.AUDIT_VIEW], "view the audit log")

    result = await session.execute(
        select(AuditLog)
        .where(
            col(AuditLog.entity_type) == entity_type.value,
            col(AuditLog.entity_id) == entity_id,
        )
        .order_by(col(AuditLog.created_at))
    )
    entries = list(result.scalars().all())
    return AuditListResponse(items=[_build_audit_response(e) for e in entries], total=len(entries))
