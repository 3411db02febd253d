# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from hrops.exceptions import NotFound, ValidationFailed, VersionConflict
from hrops.models.enums import AuditAction, AuditEntityType, Permission
from hrops.models.leave_type import LeaveType
from hrops.schemas.leave_type import LeaveTypeListResponse, LeaveTypeResponse
from hrops.services.audit import audited_mutation, model_to_audit_dict
from hrops.services.permissions import require_any

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrops.schemas.auth import AuthContext
    from hrops.schemas.leave_type import CreateLeaveTypeRequest, UpdateLeaveTypeRequest

logger = logging.getLogger(__name__)


def _build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse(
        id=leave_type.id,
        code=leave_type.code,
        name=leave_type.name,
        is_paid=leave_type.is_paid,
        supports_half_day=leave_type.supports_half_day,
        affects_payroll=leave_type.affects_payroll,
        deduction_rule=leave_type.deduction_rule,
        is_active=leave_type.is_active,
        version=leave_type.version,
        created_at=leave_type.created_at,
        updated_at=leave_type.updated_at,
    )


async def get_leave_type_model(session: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
    """Load a leave type or raise NotFound."""
    result = await session.execute(select(LeaveType).where(col(LeaveType.id) == leave_type_id))
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise NotFound("Leave type not found", context={"leave_type_id": str(leave_type_id)})
    return leave_type


async def _ensure_code_free(session: AsyncSession, code: str, exclude_id: uuid.UUID | None = None) -> None:
    query = select(LeaveType.id).where(col(LeaveType.code) == code)
    if exclude_id is not None:
        query = query.where(col(LeaveType.id) != exclude_id)
    result = await session.execute(query)
    if result.first() is not None:
        raise ValidationFailed(f"Leave type code {code!r} already exists", context={"code": code})


async def create_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Create a leave type. Codes are unique and stored upper-case."""
    require_any(auth, [Permission.LEAVE_TYPE_MANAGE], "manage leave types")

    async with audited_mutation(
        session, auth, action=AuditAction.LEAVE_TYPE_CREATE, entity_type=AuditEntityType.LEAVE_TYPE
    ) as audit:
        await _ensure_code_free(session, payload.code)

        leave_type = LeaveType(**payload.model_dump())
        session.add(leave_type)
        await session.flush()

        audit.entity_id = leave_type.id
        audit.after = model_to_audit_dict(leave_type)

    logger.info("Leave type %s created by %s", leave_type.code, auth.user_id)
    return _build_leave_type_response(leave_type)


async def update_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Apply a partial update if ``payload.version`` matches the stored version."""
    require_any(auth, [Permission.LEAVE_TYPE_MANAGE], "manage leave types")

    async with audited_mutation(
        session, auth, action=AuditAction.LEAVE_TYPE_UPDATE, entity_type=AuditEntityType.LEAVE_TYPE
    ) as audit:
        result = await session.execute(
            select(LeaveType).where(col(LeaveType.id) == leave_type_id).with_for_update()
        )
        leave_type = result.scalar_one_or_none()
        if leave_type is None:
            raise NotFound("Leave type not found", context={"leave_type_id": str(leave_type_id)})
        if leave_type.version != payload.version:
            raise VersionConflict(
                "Leave type was modified by someone else",
                context={"current_version": leave_type.version},
            )

        # deduction_rule is the only nullable column; explicit nulls elsewhere mean "unchanged".
        changes = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True, exclude={"version"}).items()
            if value is not None or key == "deduction_rule"
        }
        if "code" in changes and changes["code"] != leave_type.code:
            await _ensure_code_free(session, changes["code"], exclude_id=leave_type.id)

        audit.before = model_to_audit_dict(leave_type)
        for field_name, value in changes.items():
            setattr(leave_type, field_name, value)
        leave_type.version += 1
        await session.flush()

        audit.entity_id = leave_type.id
        audit.after = model_to_audit_dict(leave_type)
        audit.metadata["changed_fields"] = sorted(changes)

    return _build_leave_type_response(leave_type)


async def get_leave_type(session: AsyncSession, leave_type_id: uuid.UUID) -> LeaveTypeResponse:
    return _build_leave_type_response(await get_leave_type_model(session, leave_type_id))


async def list_leave_types(
    session: AsyncSession,
    include_inactive: bool = False,
) -> LeaveTypeListResponse:
    """List leave types ordered by code."""
    filters = [] if include_inactive else [col(LeaveType.is_active).is_(True)]

    count_result = await session.execute(select(func.count()).select_from(LeaveType).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(select(LeaveType).where(*filters).order_by(col(LeaveType.code)))
    leave_types = list(result.scalars().all())
    return LeaveTypeListResponse(items=[_build_leave_type_response(t) for t in leave_types], total=total)
