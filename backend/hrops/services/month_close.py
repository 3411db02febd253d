"""Month-close registry.

A closed month freezes every leave and timesheet mutation whose effective
date falls inside it. Closing is monotonic: there is no reopen operation.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from hrops.config import get_settings
from hrops.exceptions import MonthLocked, ValidationFailed
from hrops.models.enums import AuditAction, AuditEntityType, MonthCloseStatus, Permission
from hrops.models.month_close import MonthCloseRecord
from hrops.schemas.month_close import MonthCloseListResponse, MonthCloseResponse
from hrops.services.audit import audited_mutation, model_to_audit_dict
from hrops.services.permissions import has_any, require_any

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrops.schemas.auth import AuthContext
    from hrops.schemas.month_close import CloseMonthPayload
    from hrops.services.audit import AuditScope

logger = logging.getLogger(__name__)

_MONTH_NAMES = (
    "JANUARY",
    "FEBRUARY",
    "MARCH",
    "APRIL",
    "MAY",
    "JUNE",
    "JULY",
    "AUGUST",
    "SEPTEMBER",
    "OCTOBER",
    "NOVEMBER",
    "DECEMBER",
)


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------


def month_end_of(day: date) -> date:
    """Last calendar day of the month containing ``day``."""
    return date(day.year, day.month, calendar.monthrange(day.year, day.month)[1])


def parse_month(value: str) -> date:
    """Parse ``YYYY-MM`` into the month's last day."""
    try:
        year_str, month_str = value.strip().split("-")
        return month_end_of(date(int(year_str), int(month_str), 1))
    except ValueError:
        raise ValidationFailed(f"Invalid month {value!r}, expected YYYY-MM") from None


def format_month(month_end: date) -> str:
    return f"{month_end.year:04d}-{month_end.month:02d}"


def confirmation_phrase(month_end: date) -> str:
    """Phrase a caller must type to close ``month_end``, e.g. ``CLOSE FEBRUARY 2026``."""
    return f"CLOSE {_MONTH_NAMES[month_end.month - 1]} {month_end.year}"


def months_between(start: date, end: date) -> list[date]:
    """Month ends of every month touched by the inclusive range [start, end]."""
    months: list[date] = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append(month_end_of(date(year, month, 1)))
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return months


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_month_close_response(month_end: date, record: MonthCloseRecord | None) -> MonthCloseResponse:
    if record is None:
        return MonthCloseResponse(
            month=format_month(month_end),
            month_end=month_end,
            status=MonthCloseStatus.OPEN,
            closed_at=None,
            closed_by=None,
            reason=None,
        )
    return MonthCloseResponse(
        month=format_month(record.month_end),
        month_end=record.month_end,
        status=MonthCloseStatus(record.status),
        closed_at=record.closed_at,
        closed_by=record.closed_by,
        reason=record.reason,
    )


async def _get_record(
    session: AsyncSession,
    month_end: date,
    *,
    lock: bool = False,
    exclusive: bool = False,
) -> MonthCloseRecord | None:
    query = select(MonthCloseRecord).where(col(MonthCloseRecord.month_end) == month_end)
    if lock:
        query = query.with_for_update(read=not exclusive)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def is_closed(session: AsyncSession, day: date, *, lock: bool = False) -> bool:
    """True if the month containing ``day`` is CLOSED.

    With ``lock`` the record is read under a shared row lock so a concurrent
    close cannot slip in before the caller's transaction commits.
    """
    record = await _get_record(session, month_end_of(day), lock=lock)
    return record is not None and record.status == MonthCloseStatus.CLOSED


@dataclass
class OverrideDecision:
    """Outcome of the month-lock guard."""

    overridden: bool = False
    months: list[str] = field(default_factory=list)


async def _evaluate_months(
    session: AsyncSession,
    auth: AuthContext,
    start: date,
    end: date,
    override_permission: Permission,
    reason: str | None,
) -> OverrideDecision:
    decision = OverrideDecision()
    if not get_settings().month_close_enabled:
        return decision

    can_override = has_any(auth, [override_permission])
    has_reason = bool(reason and reason.strip())

    for month_end in months_between(start, end):
        if not await is_closed(session, month_end, lock=True):
            continue
        month = format_month(month_end)
        if not can_override:
            raise MonthLocked(
                f"Month {month} is closed",
                context={"month": month, "can_override": False},
            )
        if not has_reason:
            raise MonthLocked(
                f"Month {month} is closed; a reason is required to override",
                context={"month": month, "can_override": True},
            )
        decision.overridden = True
        decision.months.append(month)
    return decision


async def ensure_months_open(
    session: AsyncSession,
    auth: AuthContext,
    start: date,
    end: date,
    *,
    override_permission: Permission,
    reason: str | None,
    scope: AuditScope,
) -> OverrideDecision:
    """Guard a mutation whose effective dates span [start, end].

    Raises MonthLocked for a closed month unless the actor holds
    ``override_permission`` and gave a non-empty reason. An override tags the
    audit scope, and the check is repeated just before commit.
    """
    decision = await _evaluate_months(session, auth, start, end, override_permission, reason)

    async def _recheck() -> None:
        latest = await _evaluate_months(session, auth, start, end, override_permission, reason)
        if latest.overridden:
            _tag_override(scope, latest)

    scope.before_commit.append(_recheck)
    if decision.overridden:
        _tag_override(scope, decision)
    return decision


def _tag_override(scope: AuditScope, decision: OverrideDecision) -> None:
    scope.is_override = True
    scope.metadata["override"] = True
    scope.metadata["override_months"] = sorted(set(decision.months))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def close_month(
    session: AsyncSession,
    auth: AuthContext,
    payload: CloseMonthPayload,
) -> MonthCloseResponse:
    """Close a calendar month irreversibly. Closing a closed month is a no-op."""
    require_any(auth, [Permission.MONTH_CLOSE_MANAGE], "close a month")

    month_end = parse_month(payload.month)
    reason = payload.reason.strip()
    if not reason:
        raise ValidationFailed("Reason is required")

    expected = confirmation_phrase(month_end)
    if " ".join(payload.confirmation.split()).upper() != expected:
        raise ValidationFailed(
            "Confirmation phrase does not match",
            context={"expected": expected},
        )

    try:
        async with audited_mutation(
            session, auth, action=AuditAction.MONTH_CLOSE, entity_type=AuditEntityType.MONTH_CLOSE
        ) as audit:
            record = await _get_record(session, month_end, lock=True, exclusive=True)

            if record is not None and record.status == MonthCloseStatus.CLOSED:
                audit.noop = True
                logger.info("Month %s already closed; nothing to do", format_month(month_end))
            else:
                audit.before = model_to_audit_dict(record) if record is not None else None
                if record is None:
                    record = MonthCloseRecord(month_end=month_end)
                    session.add(record)
                record.status = MonthCloseStatus.CLOSED.value
                record.closed_at = datetime.now(UTC)
                record.closed_by = auth.user_id
                record.reason = reason

                audit.entity_id = record.id
                audit.reason = reason
                audit.after = model_to_audit_dict(record)
                logger.warning("Month %s closed by %s: %s", format_month(month_end), auth.user_id, reason)
    except IntegrityError:
        # A concurrent first close inserted the record before us.
        existing = await _get_record(session, month_end)
        if existing is None or existing.status != MonthCloseStatus.CLOSED:
            raise
        logger.info("Month %s was closed concurrently; nothing to do", format_month(month_end))
        record = existing

    return _build_month_close_response(month_end, record)


async def get_month_status(session: AsyncSession, month: str) -> MonthCloseResponse:
    """Status of one month; months without a record are OPEN."""
    month_end = parse_month(month)
    record = await _get_record(session, month_end)
    return _build_month_close_response(month_end, record)


async def list_month_closes(
    session: AsyncSession,
    offset: int = 0,
    limit: int = 50,
) -> MonthCloseListResponse:
    """List month-close records, most recent month first."""
    count_result = await session.execute(select(func.count()).select_from(MonthCloseRecord))
    total = count_result.scalar_one()

    result = await session.execute(
        select(MonthCloseRecord).order_by(col(MonthCloseRecord.month_end).desc()).offset(offset).limit(limit)
    )
    records = list(result.scalars().all())
    return MonthCloseListResponse(
        items=[_build_month_close_response(r.month_end, r) for r in records],
        total=total,
    )
