"""Weekly timesheet state machine.

DRAFT -> SUBMITTED -> APPROVED | REJECTED | REVISION_REQUIRED, and
REVISION_REQUIRED -> SUBMITTED on resubmission. Worklogs are editable only
while the timesheet is DRAFT or REVISION_REQUIRED. REJECTED is terminal.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from hrops.config import get_settings
from hrops.exceptions import InvalidTransition, NotFound, PermissionDenied, ValidationFailed
from hrops.models.enums import (
    EDITABLE_TIMESHEET_STATUSES,
    AuditAction,
    AuditEntityType,
    Permission,
    TimesheetStatus,
)
from hrops.models.timesheet import Timesheet, Worklog
from hrops.schemas.timesheet import (
    TimesheetListResponse,
    TimesheetResponse,
    TimesheetSummaryResponse,
    WorklogResponse,
)
from hrops.services.audit import audited_mutation, model_to_audit_dict
from hrops.services.history import build_transition_responses, derive_timeline, load_history, record_transition
from hrops.services.month_close import ensure_months_open
from hrops.services.permissions import approver_permission, has_any, require_any

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrops.schemas.auth import AuthContext
    from hrops.schemas.timesheet import TimesheetDecisionRequest, TimesheetReasonRequest, UpsertWorklogRequest
    from hrops.services.audit import AuditScope

logger = logging.getLogger(__name__)

_VIEW_ANY_PERMISSIONS = [
    Permission.TIMESHEET_VIEW_ANY,
    Permission.TIMESHEET_APPROVE_L1,
    Permission.TIMESHEET_APPROVE_L2,
]


def calculate_week(day: date) -> tuple[date, date]:
    """Monday and Sunday of the week containing ``day``."""
    start = day - timedelta(days=day.weekday())
    return start, start + timedelta(days=6)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_worklog_response(worklog: Worklog) -> WorklogResponse:
    return WorklogResponse(
        id=worklog.id,
        work_date=worklog.work_date,
        task=worklog.task,
        hours=worklog.hours,
        description=worklog.description,
        updated_at=worklog.updated_at,
    )


def _build_summary_response(timesheet: Timesheet) -> TimesheetSummaryResponse:
    return TimesheetSummaryResponse(
        id=timesheet.id,
        employee_id=timesheet.employee_id,
        period_start=timesheet.period_start,
        period_end=timesheet.period_end,
        status=TimesheetStatus(timesheet.status),
        pending_approval_level=timesheet.pending_approval_level,
        version=timesheet.version,
        updated_at=timesheet.updated_at,
    )


async def _load_worklogs(session: AsyncSession, timesheet_id: uuid.UUID) -> list[Worklog]:
    result = await session.execute(
        select(Worklog)
        .where(col(Worklog.timesheet_id) == timesheet_id)
        .order_by(col(Worklog.work_date), col(Worklog.task))
    )
    return list(result.scalars().all())


async def _build_timesheet_response(session: AsyncSession, timesheet: Timesheet) -> TimesheetResponse:
    worklogs = await _load_worklogs(session, timesheet.id)
    history = await load_history(session, AuditEntityType.TIMESHEET, timesheet.id)
    timeline = derive_timeline(history)
    return TimesheetResponse(
        id=timesheet.id,
        employee_id=timesheet.employee_id,
        period_start=timesheet.period_start,
        period_end=timesheet.period_end,
        status=TimesheetStatus(timesheet.status),
        pending_approval_level=timesheet.pending_approval_level,
        version=timesheet.version,
        total_hours=sum((w.hours for w in worklogs), Decimal("0")),
        created_at=timesheet.created_at,
        updated_at=timesheet.updated_at,
        submitted_at=timeline.submitted_at,
        approved_l1_at=timeline.approved_l1_at,
        approved_l2_at=timeline.approved_l2_at,
        rejected_at=timeline.rejected_at,
        rejection_reason=timeline.rejection_reason,
        revision_requested_at=timeline.revision_requested_at,
        revision_requested_reason=timeline.revision_requested_reason,
        worklogs=[_build_worklog_response(w) for w in worklogs],
        history=build_transition_responses(history),
    )


async def _get_timesheet_for_update(session: AsyncSession, timesheet_id: uuid.UUID) -> Timesheet:
    result = await session.execute(select(Timesheet).where(col(Timesheet.id) == timesheet_id).with_for_update())
    timesheet = result.scalar_one_or_none()
    if timesheet is None:
        raise NotFound("Timesheet not found", context={"timesheet_id": str(timesheet_id)})
    return timesheet


def _require_owner(auth: AuthContext, timesheet: Timesheet, operation: str) -> None:
    if timesheet.employee_id != auth.user_id:
        raise PermissionDenied(f"Only the owner can {operation} this timesheet")


def _require_editable(timesheet: Timesheet, operation: str) -> None:
    if timesheet.status not in EDITABLE_TIMESHEET_STATUSES:
        raise InvalidTransition(
            f"Cannot {operation} a timesheet in status {timesheet.status}",
            context={"status": timesheet.status},
        )


def _require_pending(timesheet: Timesheet, operation: str) -> None:
    if timesheet.status != TimesheetStatus.SUBMITTED:
        raise InvalidTransition(
            f"Cannot {operation} a timesheet in status {timesheet.status}",
            context={"status": timesheet.status},
        )


def _require_approver(auth: AuthContext, timesheet: Timesheet, operation: str) -> int:
    level = timesheet.pending_approval_level or 1
    if get_settings().timesheet_approval_levels == 1:
        require_any(
            auth,
            [Permission.TIMESHEET_APPROVE_L1, Permission.TIMESHEET_APPROVE_L2],
            f"{operation} timesheets",
        )
    else:
        require_any(auth, [approver_permission("TIMESHEET", level)], f"{operation} timesheets at level {level}")
    return level


async def _guard_period(
    session: AsyncSession,
    auth: AuthContext,
    timesheet: Timesheet,
    reason: str | None,
    audit: AuditScope,
) -> None:
    await ensure_months_open(
        session,
        auth,
        timesheet.period_end,
        timesheet.period_end,
        override_permission=Permission.TIMESHEET_MONTH_CLOSE_OVERRIDE,
        reason=reason,
        scope=audit,
    )


async def _find_header(session: AsyncSession, employee_id: uuid.UUID, period_start: date) -> Timesheet | None:
    result = await session.execute(
        select(Timesheet)
        .where(
            col(Timesheet.employee_id) == employee_id,
            col(Timesheet.period_start) == period_start,
        )
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def _resolve_header(
    session: AsyncSession,
    auth: AuthContext,
    payload: UpsertWorklogRequest,
) -> Timesheet:
    if payload.timesheet_id is not None:
        timesheet = await _get_timesheet_for_update(session, payload.timesheet_id)
        _require_owner(auth, timesheet, "edit")
        if not timesheet.period_start <= payload.work_date <= timesheet.period_end:
            raise ValidationFailed(
                "Work date is outside the timesheet period",
                context={
                    "period_start": timesheet.period_start.isoformat(),
                    "period_end": timesheet.period_end.isoformat(),
                },
            )
        return timesheet

    period_start, period_end = calculate_week(payload.work_date)
    timesheet = await _find_header(session, auth.user_id, period_start)
    if timesheet is None:
        timesheet = Timesheet(
            employee_id=auth.user_id,
            period_start=period_start,
            period_end=period_end,
            status=TimesheetStatus.DRAFT.value,
        )
        session.add(timesheet)
        await session.flush()
        logger.info("Created timesheet %s for %s (%s)", timesheet.id, auth.user_id, period_start)
    return timesheet


async def _transition(
    session: AsyncSession,
    auth: AuthContext,
    timesheet: Timesheet,
    *,
    to_status: TimesheetStatus,
    pending_level: int | None,
    approval_level: int | None = None,
    reason: str | None = None,
) -> None:
    from_status = timesheet.status
    timesheet.status = to_status.value
    timesheet.pending_approval_level = pending_level
    timesheet.version += 1
    await record_transition(
        session,
        entity_type=AuditEntityType.TIMESHEET,
        entity_id=timesheet.id,
        from_status=from_status,
        to_status=to_status.value,
        actor_id=auth.user_id,
        approval_level=approval_level,
        reason=reason,
    )
    await session.flush()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def upsert_worklog(
    session: AsyncSession,
    auth: AuthContext,
    payload: UpsertWorklogRequest,
) -> TimesheetResponse:
    """Insert or update the caller's worklog for (work_date, task).

    The day's total across tasks may not exceed ``timesheet_max_hours_per_day``.
    """
    settings = get_settings()
    if payload.work_date > date.today() and not settings.timesheet_allow_future_dates:
        raise ValidationFailed(
            "Future work dates are not allowed", context={"work_date": payload.work_date.isoformat()}
        )
    task = payload.task.strip()
    if not task:
        raise ValidationFailed("Task is required")

    try:
        return await _apply_worklog(session, auth, payload, task)
    except IntegrityError:
        logger.info(
            "Worklog upsert for %s on %s collided with a concurrent insert; retrying",
            auth.user_id,
            payload.work_date,
        )
        return await _apply_worklog(session, auth, payload, task)


async def _apply_worklog(
    session: AsyncSession,
    auth: AuthContext,
    payload: UpsertWorklogRequest,
    task: str,
) -> TimesheetResponse:
    max_hours = Decimal(str(get_settings().timesheet_max_hours_per_day))

    async with audited_mutation(
        session, auth, action=AuditAction.TIMESHEET_WORKLOG_UPSERT, entity_type=AuditEntityType.TIMESHEET
    ) as audit:
        timesheet = await _resolve_header(session, auth, payload)
        _require_editable(timesheet, "edit worklogs of")
        await ensure_months_open(
            session,
            auth,
            payload.work_date,
            payload.work_date,
            override_permission=Permission.TIMESHEET_MONTH_CLOSE_OVERRIDE,
            reason=payload.override_reason,
            scope=audit,
        )

        result = await session.execute(
            select(Worklog)
            .where(
                col(Worklog.timesheet_id) == timesheet.id,
                col(Worklog.work_date) == payload.work_date,
                col(Worklog.task) == task,
            )
            .with_for_update()
        )
        worklog = result.scalar_one_or_none()

        others_result = await session.execute(
            select(func.coalesce(func.sum(Worklog.hours), 0)).where(
                col(Worklog.timesheet_id) == timesheet.id,
                col(Worklog.work_date) == payload.work_date,
                col(Worklog.task) != task,
            )
        )
        day_total = Decimal(str(others_result.scalar_one())) + payload.hours
        if day_total > max_hours:
            raise ValidationFailed(
                f"Total hours for {payload.work_date.isoformat()} would exceed {max_hours}",
                context={"day_total": str(day_total), "max_hours_per_day": str(max_hours)},
            )

        if worklog is None:
            worklog = Worklog(
                timesheet_id=timesheet.id,
                work_date=payload.work_date,
                task=task,
                hours=payload.hours,
                description=payload.description,
            )
            session.add(worklog)
            audit.metadata["worklog_before"] = None
        else:
            audit.metadata["worklog_before"] = model_to_audit_dict(worklog)
            worklog.hours = payload.hours
            worklog.description = payload.description
        timesheet.version += 1
        await session.flush()

        audit.entity_id = timesheet.id
        audit.reason = payload.override_reason
        audit.after = model_to_audit_dict(timesheet)
        audit.metadata["worklog"] = model_to_audit_dict(worklog)

    return await _build_timesheet_response(session, timesheet)


async def submit_timesheet(
    session: AsyncSession,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    payload: TimesheetDecisionRequest | None = None,
) -> TimesheetResponse:
    """Submit the caller's own timesheet for level-1 approval."""
    reason = payload.reason.strip() if payload and payload.reason else None

    async with audited_mutation(
        session, auth, action=AuditAction.TIMESHEET_SUBMIT, entity_type=AuditEntityType.TIMESHEET
    ) as audit:
        timesheet = await _get_timesheet_for_update(session, timesheet_id)
        _require_owner(auth, timesheet, "submit")
        _require_editable(timesheet, "submit")

        count_result = await session.execute(
            select(func.count()).select_from(Worklog).where(col(Worklog.timesheet_id) == timesheet.id)
        )
        if count_result.scalar_one() == 0:
            raise ValidationFailed("Cannot submit a timesheet without worklogs")

        await _guard_period(session, auth, timesheet, reason, audit)

        audit.before = model_to_audit_dict(timesheet)
        await _transition(session, auth, timesheet, to_status=TimesheetStatus.SUBMITTED, pending_level=1, reason=reason)
        audit.entity_id = timesheet.id
        audit.reason = reason
        audit.after = model_to_audit_dict(timesheet)

    logger.info("Timesheet %s submitted by %s", timesheet.id, auth.user_id)
    return await _build_timesheet_response(session, timesheet)


async def approve_timesheet(
    session: AsyncSession,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    payload: TimesheetDecisionRequest | None = None,
) -> TimesheetResponse:
    """Record an approval at the pending level."""
    reason = payload.reason.strip() if payload and payload.reason else None
    levels = get_settings().timesheet_approval_levels

    async with audited_mutation(
        session, auth, action=AuditAction.TIMESHEET_APPROVE, entity_type=AuditEntityType.TIMESHEET
    ) as audit:
        timesheet = await _get_timesheet_for_update(session, timesheet_id)
        _require_pending(timesheet, "approve")
        level = _require_approver(auth, timesheet, "approve")
        await _guard_period(session, auth, timesheet, reason, audit)

        audit.before = model_to_audit_dict(timesheet)
        audit.metadata["approval_level"] = level
        if levels == 2 and level == 1:
            audit.action = AuditAction.TIMESHEET_APPROVE_L1
            await _transition(
                session,
                auth,
                timesheet,
                to_status=TimesheetStatus.SUBMITTED,
                pending_level=2,
                approval_level=1,
                reason=reason,
            )
        else:
            await _transition(
                session,
                auth,
                timesheet,
                to_status=TimesheetStatus.APPROVED,
                pending_level=None,
                approval_level=level,
                reason=reason,
            )
        audit.entity_id = timesheet.id
        audit.reason = reason
        audit.after = model_to_audit_dict(timesheet)

    logger.info("Timesheet %s approved at level %d by %s", timesheet.id, level, auth.user_id)
    return await _build_timesheet_response(session, timesheet)


async def reject_timesheet(
    session: AsyncSession,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    payload: TimesheetReasonRequest,
) -> TimesheetResponse:
    """Reject a submitted timesheet. Rejection is final."""
    return await _decide(
        session,
        auth,
        timesheet_id,
        payload,
        to_status=TimesheetStatus.REJECTED,
        action=AuditAction.TIMESHEET_REJECT,
        operation="reject",
    )


async def request_revision(
    session: AsyncSession,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    payload: TimesheetReasonRequest,
) -> TimesheetResponse:
    """Send a submitted timesheet back to its owner for changes."""
    return await _decide(
        session,
        auth,
        timesheet_id,
        payload,
        to_status=TimesheetStatus.REVISION_REQUIRED,
        action=AuditAction.TIMESHEET_REQUEST_REVISION,
        operation="request revision of",
    )


async def _decide(
    session: AsyncSession,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    payload: TimesheetReasonRequest,
    *,
    to_status: TimesheetStatus,
    action: AuditAction,
    operation: str,
) -> TimesheetResponse:
    reason = payload.reason.strip()
    if not reason:
        raise ValidationFailed("Reason is required")

    async with audited_mutation(session, auth, action=action, entity_type=AuditEntityType.TIMESHEET) as audit:
        timesheet = await _get_timesheet_for_update(session, timesheet_id)
        _require_pending(timesheet, operation)
        level = _require_approver(auth, timesheet, operation)
        await _guard_period(session, auth, timesheet, reason, audit)

        audit.before = model_to_audit_dict(timesheet)
        await _transition(
            session,
            auth,
            timesheet,
            to_status=to_status,
            pending_level=None,
            approval_level=level,
            reason=reason,
        )
        audit.entity_id = timesheet.id
        audit.reason = reason
        audit.after = model_to_audit_dict(timesheet)

    logger.info("Timesheet %s moved to %s by %s", timesheet.id, to_status, auth.user_id)
    return await _build_timesheet_response(session, timesheet)


async def get_timesheet(
    session: AsyncSession,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
) -> TimesheetResponse:
    """Header, worklogs and history. Timesheets the actor may not see are reported as not found."""
    result = await session.execute(select(Timesheet).where(col(Timesheet.id) == timesheet_id))
    timesheet = result.scalar_one_or_none()
    if timesheet is None or (timesheet.employee_id != auth.user_id and not has_any(auth, _VIEW_ANY_PERMISSIONS)):
        raise NotFound("Timesheet not found", context={"timesheet_id": str(timesheet_id)})
    return await _build_timesheet_response(session, timesheet)


async def list_timesheets(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID | None = None,
    status_filter: TimesheetStatus | None = None,
    offset: int = 0,
    limit: int = 50,
) -> TimesheetListResponse:
    """List timesheets, most recent period first."""
    filters = []
    if not has_any(auth, _VIEW_ANY_PERMISSIONS):
        filters.append(col(Timesheet.employee_id) == auth.user_id)
    if employee_id is not None:
        filters.append(col(Timesheet.employee_id) == employee_id)
    if status_filter is not None:
        filters.append(col(Timesheet.status) == status_filter.value)

    count_result = await session.execute(select(func.count()).select_from(Timesheet).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(Timesheet)
        .where(*filters)
        .order_by(col(Timesheet.period_start).desc(), col(Timesheet.employee_id))
        .offset(offset)
        .limit(limit)
    )
    timesheets = list(result.scalars().all())
    return TimesheetListResponse(items=[_build_summary_response(t) for t in timesheets], total=total)
