"""Leave balance ledger.

Balances keep opening, granted and consumed amounts per employee, leave type
and year. ``available = opening + granted - consumed`` is derived on read.
Deductions and restorations happen only through the leave request workflow.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from hrops.exceptions import InsufficientBalance, PermissionDenied, ValidationFailed
from hrops.models.enums import AuditAction, AuditEntityType, Permission
from hrops.models.leave_balance import LeaveBalance
from hrops.schemas.leave_balance import LeaveBalanceListResponse, LeaveBalanceResponse
from hrops.services.audit import audited_mutation, model_to_audit_dict
from hrops.services.leave_type import get_leave_type_model
from hrops.services.permissions import has_any, require_any

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrops.schemas.auth import AuthContext
    from hrops.schemas.leave_balance import GrantBalancePayload

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_balance_response(balance: LeaveBalance) -> LeaveBalanceResponse:
    return LeaveBalanceResponse(
        id=balance.id,
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        year=balance.year,
        opening_balance=balance.opening_balance,
        granted_balance=balance.granted_balance,
        consumed_balance=balance.consumed_balance,
        available_balance=balance.available_balance,
        version=balance.version,
        updated_at=balance.updated_at,
    )


async def get_balance_for_update(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> LeaveBalance | None:
    """Load the balance row with a FOR UPDATE lock, or None if it does not exist."""
    result = await session.execute(
        select(LeaveBalance)
        .where(
            col(LeaveBalance.employee_id) == employee_id,
            col(LeaveBalance.leave_type_id) == leave_type_id,
            col(LeaveBalance.year) == year,
        )
        .with_for_update()
    )
    return result.scalar_one_or_none()


def deduct(balance: LeaveBalance, units: Decimal) -> None:
    """Consume ``units`` from the balance or raise InsufficientBalance."""
    available = balance.available_balance
    if available < units:
        raise InsufficientBalance(
            "Insufficient leave balance",
            context={"available": str(available), "required": str(units)},
        )
    balance.consumed_balance += units
    balance.version += 1


def restore(balance: LeaveBalance, units: Decimal) -> None:
    """Give ``units`` back; consumed never drops below zero."""
    balance.consumed_balance = max(_ZERO, balance.consumed_balance - units)
    balance.version += 1


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def grant_balance(
    session: AsyncSession,
    auth: AuthContext,
    payload: GrantBalancePayload,
) -> LeaveBalanceResponse:
    """Create or top up an employee's balance for a year.

    ``grant_amount`` is added to the granted component. ``opening_balance``,
    when given, replaces the opening component.
    """
    require_any(auth, [Permission.LEAVE_BALANCE_GRANT], "grant leave balance")
    reason = payload.reason.strip()
    if not reason:
        raise ValidationFailed("Reason is required")

    leave_type = await get_leave_type_model(session, payload.leave_type_id)
    if not leave_type.is_active:
        raise ValidationFailed("Leave type is inactive", context={"leave_type_id": str(leave_type.id)})

    async with audited_mutation(
        session, auth, action=AuditAction.LEAVE_BALANCE_GRANT, entity_type=AuditEntityType.LEAVE_BALANCE
    ) as audit:
        balance = await get_balance_for_update(session, payload.employee_id, payload.leave_type_id, payload.year)

        if balance is None:
            balance = LeaveBalance(
                employee_id=payload.employee_id,
                leave_type_id=payload.leave_type_id,
                year=payload.year,
                opening_balance=payload.opening_balance if payload.opening_balance is not None else _ZERO,
                granted_balance=payload.grant_amount,
                consumed_balance=_ZERO,
            )
            session.add(balance)
        else:
            audit.before = model_to_audit_dict(balance)
            if payload.opening_balance is not None:
                balance.opening_balance = payload.opening_balance
            balance.granted_balance += payload.grant_amount
            balance.version += 1

        if leave_type.is_paid and balance.available_balance < _ZERO:
            raise InsufficientBalance(
                "Opening balance would leave less than what is already consumed",
                context={
                    "available": str(balance.available_balance),
                    "consumed": str(balance.consumed_balance),
                },
            )

        await session.flush()
        audit.entity_id = balance.id
        audit.reason = reason
        audit.after = model_to_audit_dict(balance)
        audit.metadata.update(
            {
                "grant_amount": str(payload.grant_amount),
                "opening_balance": str(payload.opening_balance) if payload.opening_balance is not None else None,
            }
        )

    logger.info(
        "Granted %s of %s to %s for %d by %s",
        payload.grant_amount,
        leave_type.code,
        payload.employee_id,
        payload.year,
        auth.user_id,
    )
    return _build_balance_response(balance)


async def list_balances(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    year: int | None = None,
) -> LeaveBalanceListResponse:
    """Balances of one employee, optionally for a single year."""
    if employee_id != auth.user_id and not has_any(
        auth, [Permission.LEAVE_REQUEST_VIEW_ANY, Permission.LEAVE_BALANCE_GRANT]
    ):
        raise PermissionDenied(
            "Not authorized to view another employee's balances",
            context={"required_any": [Permission.LEAVE_REQUEST_VIEW_ANY.value, Permission.LEAVE_BALANCE_GRANT.value]},
        )

    filters = [col(LeaveBalance.employee_id) == employee_id]
    if year is not None:
        filters.append(col(LeaveBalance.year) == year)

    count_result = await session.execute(select(func.count()).select_from(LeaveBalance).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveBalance)
        .where(*filters)
        .order_by(col(LeaveBalance.year).desc(), col(LeaveBalance.leave_type_id))
    )
    balances = list(result.scalars().all())
    return LeaveBalanceListResponse(items=[_build_balance_response(b) for b in balances], total=total)
