"""Leave request state machine.

SUBMITTED -> APPROVED | REJECTED | CANCELLED, and APPROVED -> CANCELLED.
With two approval levels the first approval keeps the request SUBMITTED and
moves ``pending_approval_level`` to 2. Balances are consumed only on final
approval and given back when an approved request is cancelled.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from hrops.config import get_settings
from hrops.exceptions import InsufficientBalance, InvalidTransition, NotFound, PermissionDenied, ValidationFailed
from hrops.models.enums import (
    TERMINAL_LEAVE_STATUSES,
    AuditAction,
    AuditEntityType,
    HalfDayPart,
    LeaveStatus,
    LeaveUnit,
    Permission,
)
from hrops.models.leave_request import LeaveRequest
from hrops.schemas.leave_request import LeaveRequestListResponse, LeaveRequestResponse
from hrops.services import leave_balance
from hrops.services.audit import audited_mutation, model_to_audit_dict
from hrops.services.history import build_transition_responses, derive_timeline, load_history, record_transition
from hrops.services.leave_type import get_leave_type_model
from hrops.services.month_close import ensure_months_open
from hrops.services.permissions import approver_permission, has_any, require_any

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrops.models.leave_type import LeaveType
    from hrops.schemas.auth import AuthContext
    from hrops.schemas.leave_request import LeaveDecisionRequest, LeaveReasonRequest, SubmitLeaveRequest
    from hrops.services.audit import AuditScope

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = [LeaveStatus.SUBMITTED.value, LeaveStatus.APPROVED.value]

_VIEW_ANY_PERMISSIONS = [
    Permission.LEAVE_REQUEST_VIEW_ANY,
    Permission.LEAVE_APPROVE_L1,
    Permission.LEAVE_APPROVE_L2,
    Permission.LEAVE_REQUEST_CANCEL,
]


# ---------------------------------------------------------------------------
# Pure domain helpers
# ---------------------------------------------------------------------------


def compute_units(
    start_date: date,
    end_date: date,
    unit: LeaveUnit,
    half_day_part: HalfDayPart | None = None,
) -> Decimal:
    """Number of leave days a request consumes.

    FULL_DAY counts every calendar day in [start, end]; weekends and holidays
    are not excluded. HALF_DAY is always a single day worth 0.5.
    """
    if end_date < start_date:
        raise ValidationFailed("End date must be on or after start date")

    if unit == LeaveUnit.HALF_DAY:
        if start_date != end_date:
            raise ValidationFailed("Half-day leave must start and end on the same date")
        if half_day_part is None:
            raise ValidationFailed("Half-day leave requires half_day_part (AM or PM)")
        return Decimal("0.5")

    if half_day_part is not None:
        raise ValidationFailed("half_day_part is only allowed for HALF_DAY leave")
    return Decimal((end_date - start_date).days + 1)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _build_leave_request_response(
    session: AsyncSession,
    request: LeaveRequest,
) -> LeaveRequestResponse:
    history = await load_history(session, AuditEntityType.LEAVE_REQUEST, request.id)
    timeline = derive_timeline(history)
    return LeaveRequestResponse(
        id=request.id,
        employee_id=request.employee_id,
        leave_type_id=request.leave_type_id,
        start_date=request.start_date,
        end_date=request.end_date,
        unit=LeaveUnit(request.unit),
        half_day_part=HalfDayPart(request.half_day_part) if request.half_day_part else None,
        units=request.units,
        deducted_units=request.deducted_units,
        reason=request.reason,
        status=LeaveStatus(request.status),
        pending_approval_level=request.pending_approval_level,
        version=request.version,
        created_at=request.created_at,
        updated_at=request.updated_at,
        submitted_at=timeline.submitted_at,
        approved_l1_at=timeline.approved_l1_at,
        approved_l2_at=timeline.approved_l2_at,
        rejected_at=timeline.rejected_at,
        rejection_reason=timeline.rejection_reason,
        cancelled_at=timeline.cancelled_at,
        cancel_reason=timeline.cancel_reason,
        history=build_transition_responses(history),
    )


async def _get_request_for_update(session: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
    result = await session.execute(
        select(LeaveRequest).where(col(LeaveRequest.id) == request_id).with_for_update()
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFound("Leave request not found", context={"request_id": str(request_id)})
    return request


def _can_view_any(auth: AuthContext) -> bool:
    return has_any(auth, _VIEW_ANY_PERMISSIONS)


def _require_pending(request: LeaveRequest, operation: str) -> None:
    if request.status != LeaveStatus.SUBMITTED:
        raise InvalidTransition(
            f"Cannot {operation} a leave request in status {request.status}",
            context={"status": request.status},
        )


def _require_approver(auth: AuthContext, request: LeaveRequest, operation: str) -> int:
    """Check the approver permission for the pending level and return that level."""
    level = request.pending_approval_level or 1
    if get_settings().leave_approval_levels == 1:
        require_any(
            auth,
            [Permission.LEAVE_APPROVE_L1, Permission.LEAVE_APPROVE_L2],
            f"{operation} leave requests",
        )
    else:
        require_any(auth, [approver_permission("LEAVE", level)], f"{operation} leave requests at level {level}")
    return level


def _check_backdating(start_date: date) -> None:
    settings = get_settings()
    today = date.today()
    if start_date >= today:
        return
    if not settings.leave_allow_backdated:
        raise ValidationFailed("Backdated leave requests are not allowed")
    limit = settings.leave_backdate_limit_days
    if limit > 0 and (today - start_date).days > limit:
        raise ValidationFailed(
            f"Leave cannot start more than {limit} days in the past",
            context={"backdate_limit_days": limit},
        )


async def _check_overlap(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> None:
    result = await session.execute(
        select(LeaveRequest.id).where(
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.status).in_(_ACTIVE_STATUSES),
            col(LeaveRequest.start_date) <= end_date,
            col(LeaveRequest.end_date) >= start_date,
        )
    )
    overlapping = result.first()
    if overlapping is not None:
        raise ValidationFailed(
            "Leave request overlaps an existing submitted or approved request",
            context={"overlapping_request_id": str(overlapping[0])},
        )


async def _check_available(
    session: AsyncSession,
    leave_type: LeaveType,
    employee_id: uuid.UUID,
    year: int,
    units: Decimal,
) -> None:
    balance = await leave_balance.get_balance_for_update(session, employee_id, leave_type.id, year)
    if balance is None:
        raise InsufficientBalance(
            "No leave balance for this leave type and year",
            context={"available": "0", "required": str(units), "year": year},
        )
    if balance.available_balance < units:
        raise InsufficientBalance(
            "Insufficient leave balance",
            context={"available": str(balance.available_balance), "required": str(units), "year": year},
        )


async def _guard_months(
    session: AsyncSession,
    auth: AuthContext,
    request: LeaveRequest,
    reason: str | None,
    audit: AuditScope,
) -> None:
    await ensure_months_open(
        session,
        auth,
        request.start_date,
        request.end_date,
        override_permission=Permission.LEAVE_MONTH_CLOSE_OVERRIDE,
        reason=reason,
        scope=audit,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitLeaveRequest,
) -> LeaveRequestResponse:
    """Create a SUBMITTED leave request awaiting level-1 approval.

    The balance is checked but not consumed.
    """
    settings = get_settings()
    employee_id = payload.employee_id or auth.user_id
    reason = payload.reason.strip()
    if not reason:
        raise ValidationFailed("Reason is required")
    if payload.start_date.year != payload.end_date.year:
        raise ValidationFailed("Leave request cannot span two calendar years")
    _check_backdating(payload.start_date)
    if payload.unit == LeaveUnit.HALF_DAY and not settings.leave_allow_half_day:
        raise ValidationFailed("Half-day leave is disabled")
    units = compute_units(payload.start_date, payload.end_date, payload.unit, payload.half_day_part)

    if employee_id == auth.user_id:
        require_any(auth, [Permission.LEAVE_APPLY_SELF, Permission.LEAVE_APPLY_ANY], "apply for leave")
    else:
        require_any(auth, [Permission.LEAVE_APPLY_ANY], "apply for leave on behalf of another employee")

    async with audited_mutation(
        session, auth, action=AuditAction.LEAVE_REQUEST_SUBMIT, entity_type=AuditEntityType.LEAVE_REQUEST
    ) as audit:
        await ensure_months_open(
            session,
            auth,
            payload.start_date,
            payload.end_date,
            override_permission=Permission.LEAVE_MONTH_CLOSE_OVERRIDE,
            reason=reason,
            scope=audit,
        )

        leave_type = await get_leave_type_model(session, payload.leave_type_id)
        if not leave_type.is_active:
            raise ValidationFailed("Leave type is inactive", context={"leave_type_id": str(leave_type.id)})
        if payload.unit == LeaveUnit.HALF_DAY and not leave_type.supports_half_day:
            raise ValidationFailed(f"Leave type {leave_type.code} does not support half-day leave")

        await _check_overlap(session, employee_id, payload.start_date, payload.end_date)
        if leave_type.is_paid:
            await _check_available(session, leave_type, employee_id, payload.start_date.year, units)

        request = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            unit=payload.unit.value,
            half_day_part=payload.half_day_part.value if payload.half_day_part else None,
            units=units,
            reason=reason,
            status=LeaveStatus.SUBMITTED.value,
            pending_approval_level=1,
        )
        session.add(request)
        await session.flush()
        await record_transition(
            session,
            entity_type=AuditEntityType.LEAVE_REQUEST,
            entity_id=request.id,
            from_status=None,
            to_status=LeaveStatus.SUBMITTED.value,
            actor_id=auth.user_id,
            reason=reason,
        )

        audit.entity_id = request.id
        audit.reason = reason
        audit.after = model_to_audit_dict(request)

    logger.info("Leave request %s submitted for %s by %s", request.id, employee_id, auth.user_id)
    return await _build_leave_request_response(session, request)


async def approve_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: LeaveDecisionRequest | None = None,
) -> LeaveRequestResponse:
    """Record an approval at the pending level.

    The final approval consumes the balance of a paid leave type. If the
    balance no longer covers the request the whole approval is rolled back
    and the request stays SUBMITTED.
    """
    reason = payload.reason.strip() if payload and payload.reason else None
    levels = get_settings().leave_approval_levels

    async with audited_mutation(
        session, auth, action=AuditAction.LEAVE_REQUEST_APPROVE, entity_type=AuditEntityType.LEAVE_REQUEST
    ) as audit:
        request = await _get_request_for_update(session, request_id)
        _require_pending(request, "approve")
        level = _require_approver(auth, request, "approve")
        await _guard_months(session, auth, request, reason, audit)

        audit.before = model_to_audit_dict(request)
        audit.entity_id = request.id
        audit.reason = reason
        audit.metadata["approval_level"] = level

        if levels == 2 and level == 1:
            request.pending_approval_level = 2
            request.version += 1
            audit.action = AuditAction.LEAVE_REQUEST_APPROVE_L1
            to_status = LeaveStatus.SUBMITTED
        else:
            leave_type = await get_leave_type_model(session, request.leave_type_id)
            if leave_type.is_paid:
                balance = await leave_balance.get_balance_for_update(
                    session, request.employee_id, request.leave_type_id, request.start_date.year
                )
                if balance is None:
                    raise InsufficientBalance(
                        "No leave balance for this leave type and year",
                        context={"available": "0", "required": str(request.units)},
                    )
                leave_balance.deduct(balance, request.units)
                request.deducted_units = request.units
                audit.metadata["balance_id"] = str(balance.id)
                audit.metadata["balance_after"] = model_to_audit_dict(balance)
            request.status = LeaveStatus.APPROVED.value
            request.pending_approval_level = None
            request.version += 1
            to_status = LeaveStatus.APPROVED

        await record_transition(
            session,
            entity_type=AuditEntityType.LEAVE_REQUEST,
            entity_id=request.id,
            from_status=LeaveStatus.SUBMITTED.value,
            to_status=to_status.value,
            actor_id=auth.user_id,
            approval_level=level,
            reason=reason,
        )
        await session.flush()
        audit.after = model_to_audit_dict(request)

    logger.info("Leave request %s approved at level %d by %s", request.id, level, auth.user_id)
    return await _build_leave_request_response(session, request)


async def reject_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: LeaveReasonRequest,
) -> LeaveRequestResponse:
    """Reject a pending request. The balance is never touched."""
    reason = payload.reason.strip()
    if not reason:
        raise ValidationFailed("Rejection reason is required")

    async with audited_mutation(
        session, auth, action=AuditAction.LEAVE_REQUEST_REJECT, entity_type=AuditEntityType.LEAVE_REQUEST
    ) as audit:
        request = await _get_request_for_update(session, request_id)
        _require_pending(request, "reject")
        level = _require_approver(auth, request, "reject")
        await _guard_months(session, auth, request, reason, audit)

        audit.before = model_to_audit_dict(request)
        request.status = LeaveStatus.REJECTED.value
        request.pending_approval_level = None
        request.version += 1
        await record_transition(
            session,
            entity_type=AuditEntityType.LEAVE_REQUEST,
            entity_id=request.id,
            from_status=LeaveStatus.SUBMITTED.value,
            to_status=LeaveStatus.REJECTED.value,
            actor_id=auth.user_id,
            approval_level=level,
            reason=reason,
        )
        await session.flush()

        audit.entity_id = request.id
        audit.reason = reason
        audit.after = model_to_audit_dict(request)

    logger.info("Leave request %s rejected by %s", request.id, auth.user_id)
    return await _build_leave_request_response(session, request)


async def cancel_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: LeaveReasonRequest,
) -> LeaveRequestResponse:
    """Cancel a pending or approved request.

    Cancelling an approved request gives back exactly the units its approval
    deducted.
    """
    reason = payload.reason.strip()
    if not reason:
        raise ValidationFailed("Cancellation reason is required")

    async with audited_mutation(
        session, auth, action=AuditAction.LEAVE_REQUEST_CANCEL, entity_type=AuditEntityType.LEAVE_REQUEST
    ) as audit:
        request = await _get_request_for_update(session, request_id)

        can_cancel_any = has_any(auth, [Permission.LEAVE_REQUEST_CANCEL])
        if request.employee_id != auth.user_id and not can_cancel_any:
            raise PermissionDenied(
                "Not authorized to cancel this leave request",
                context={"required_any": [Permission.LEAVE_REQUEST_CANCEL.value]},
            )
        if request.status in TERMINAL_LEAVE_STATUSES:
            raise InvalidTransition(
                f"Cannot cancel a leave request in status {request.status}",
                context={"status": request.status},
            )
        was_approved = request.status == LeaveStatus.APPROVED
        if (
            was_approved
            and not get_settings().leave_allow_cancel_after_start
            and request.start_date <= date.today()
            and not can_cancel_any
        ):
            raise PermissionDenied(
                "Leave that has already started can only be cancelled by HR",
                context={"required_any": [Permission.LEAVE_REQUEST_CANCEL.value]},
            )
        await _guard_months(session, auth, request, reason, audit)

        audit.before = model_to_audit_dict(request)
        from_status = request.status
        if was_approved and request.deducted_units:
            balance = await leave_balance.get_balance_for_update(
                session, request.employee_id, request.leave_type_id, request.start_date.year
            )
            if balance is not None:
                leave_balance.restore(balance, request.deducted_units)
                audit.metadata["balance_id"] = str(balance.id)
                audit.metadata["restored_units"] = str(request.deducted_units)
                audit.metadata["balance_after"] = model_to_audit_dict(balance)
            else:
                logger.warning("Approved leave request %s has no balance row to restore", request.id)

        request.status = LeaveStatus.CANCELLED.value
        request.pending_approval_level = None
        request.version += 1
        await record_transition(
            session,
            entity_type=AuditEntityType.LEAVE_REQUEST,
            entity_id=request.id,
            from_status=from_status,
            to_status=LeaveStatus.CANCELLED.value,
            actor_id=auth.user_id,
            reason=reason,
        )
        await session.flush()

        audit.entity_id = request.id
        audit.reason = reason
        audit.after = model_to_audit_dict(request)

    logger.info("Leave request %s cancelled by %s", request.id, auth.user_id)
    return await _build_leave_request_response(session, request)


async def get_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    """A single request. Requests the actor may not see are reported as not found."""
    result = await session.execute(select(LeaveRequest).where(col(LeaveRequest.id) == request_id))
    request = result.scalar_one_or_none()
    if request is None or (request.employee_id != auth.user_id and not _can_view_any(auth)):
        raise NotFound("Leave request not found", context={"request_id": str(request_id)})
    return await _build_leave_request_response(session, request)


async def list_leave_requests(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: LeaveStatus | None = None,
    employee_id: uuid.UUID | None = None,
    leave_type_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LeaveRequestListResponse:
    """List requests newest first. Without view-any rights only own requests are returned."""
    filters = []
    if not _can_view_any(auth):
        filters.append(col(LeaveRequest.employee_id) == auth.user_id)
    if employee_id is not None:
        filters.append(col(LeaveRequest.employee_id) == employee_id)
    if status_filter is not None:
        filters.append(col(LeaveRequest.status) == status_filter.value)
    if leave_type_id is not None:
        filters.append(col(LeaveRequest.leave_type_id) == leave_type_id)

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*filters)
        .order_by(col(LeaveRequest.created_at).desc(), col(LeaveRequest.id))
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())

    items = [await _build_leave_request_response(session, r) for r in requests]
    return LeaveRequestListResponse(items=items, total=total)
