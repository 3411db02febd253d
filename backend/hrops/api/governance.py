# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Path, Query

from hrops.api.deps import AuthDep
from hrops.db import SessionDep
from hrops.models.enums import AuditEntityType
from hrops.schemas.audit import AuditListResponse, AuditQuery
from hrops.schemas.month_close import (
    MONTH_PATTERN,
    CloseMonthPayload,
    MonthCloseListResponse,
    MonthCloseResponse,
)
from hrops.services import audit as audit_service
from hrops.services import month_close as month_close_service

# ---------------------------------------------------------------------------
# Month close
# ---------------------------------------------------------------------------

month_close_router = APIRouter(prefix="/governance/month-close", tags=["governance"])


@month_close_router.post("/close", response_model=MonthCloseResponse)
async def close_month(
    payload: CloseMonthPayload,
    session: SessionDep,
    auth: AuthDep,
) -> MonthCloseResponse:
    """Close a month. Requires MONTH_CLOSE_MANAGE and the typed confirmation phrase."""
    return await month_close_service.close_month(session, auth, payload)


@month_close_router.get("", response_model=MonthCloseListResponse)
async def list_month_closes(
    session: SessionDep,
    auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> MonthCloseListResponse:
    """List closed months."""
    return await month_close_service.list_month_closes(session, offset, limit)


@month_close_router.get("/{month}", response_model=MonthCloseResponse)
async def get_month_status(
    session: SessionDep,
    auth: AuthDep,
    month: str = Path(pattern=MONTH_PATTERN, description="YYYY-MM"),
) -> MonthCloseResponse:
    """Status of a single month."""
    return await month_close_service.get_month_status(session, month)


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------

audit_router = APIRouter(prefix="/governance/audit", tags=["governance"])


@audit_router.get("", response_model=AuditListResponse)
async def list_audit_logs(
    session: SessionDep,
    auth: AuthDep,
    entity_type: str | None = Query(default=None, alias="entityType"),
    entity_id: uuid.UUID | None = Query(default=None, alias="entityId"),
    actor_id: uuid.UUID | None = Query(default=None, alias="actorId"),
    action: str | None = Query(default=None),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
) -> AuditListResponse:
    """Query the audit log (requires AUDIT_VIEW)."""
    query = AuditQuery(
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        action=action,
        start_date=start_date,
        end_date=end_date,
    )
    return await audit_service.list_audit_logs(session, auth, query, offset, limit)


@audit_router.get("/timeline/{entity_type}/{entity_id}", response_model=AuditListResponse)
async def get_entity_timeline(
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> AuditListResponse:
    """All audit entries of one entity, oldest first."""
    return await audit_service.get_entity_timeline(session, auth, entity_type, entity_id)
