"""Tests for month close: closing, idempotency, and the lock it puts on leave and timesheets."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import select
from sqlmodel import col

from hrops.config import get_settings
from hrops.exceptions import ValidationFailed
from hrops.models.audit import AuditLog
from hrops.models.month_close import MonthCloseRecord
from hrops.services import month_close as month_close_service
from hrops.services.month_close import confirmation_phrase, month_end_of, months_between, parse_month

if TYPE_CHECKING:
    from httpx import AsyncClient, Response
    from sqlalchemy.ext.asyncio import AsyncSession

ADMIN_ID = uuid.uuid4()
HR_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()

ADMIN_HEADERS = {"X-User-Id": str(ADMIN_ID), "X-Role": "SUPER_ADMIN"}
HR_HEADERS = {"X-User-Id": str(HR_ID), "X-Role": "HR_ADMIN"}
EMPLOYEE_HEADERS = {"X-User-Id": str(EMPLOYEE_ID), "X-Role": "EMPLOYEE"}
MANAGER_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "MANAGER"}
SECOND_ADMIN_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "SUPER_ADMIN"}

CLOSE_URL = "/governance/month-close/close"


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


async def _close(
    client: AsyncClient,
    month: str,
    confirmation: str,
    headers: dict[str, str] = ADMIN_HEADERS,
) -> Response:
    return await client.post(
        CLOSE_URL,
        json={"month": month, "reason": "Payroll finalised", "confirmation": confirmation},
        headers=headers,
    )


async def _create_unpaid_type(client: AsyncClient) -> str:
    resp = await client.post(
        "/leave/types",
        json={"code": "UNPAID", "name": "Unpaid Leave", "is_paid": False},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 201
    return resp.json()["id"]


async def _audit_entries(session: AsyncSession, action: str) -> list[AuditLog]:
    result = await session.execute(select(AuditLog).where(col(AuditLog.action) == action))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------


def test_confirmation_phrase() -> None:
    assert confirmation_phrase(date(2026, 2, 28)) == "CLOSE FEBRUARY 2026"
    assert confirmation_phrase(date(2025, 12, 31)) == "CLOSE DECEMBER 2025"


def test_month_end_handles_leap_years() -> None:
    assert month_end_of(date(2024, 2, 3)) == date(2024, 2, 29)
    assert month_end_of(date(2026, 2, 3)) == date(2026, 2, 28)


def test_months_between_crosses_year_boundary() -> None:
    assert months_between(date(2025, 11, 20), date(2026, 1, 2)) == [
        date(2025, 11, 30),
        date(2025, 12, 31),
        date(2026, 1, 31),
    ]
    assert months_between(date(2026, 3, 10), date(2026, 3, 12)) == [date(2026, 3, 31)]


def test_parse_month() -> None:
    assert parse_month("2026-02") == date(2026, 2, 28)
    with pytest.raises(ValidationFailed):
        parse_month("2026-13")
    with pytest.raises(ValidationFailed):
        parse_month("February")


# ---------------------------------------------------------------------------
# Closing
# ---------------------------------------------------------------------------


async def test_close_month(async_client: AsyncClient, db_session: AsyncSession) -> None:
    resp = await _close(async_client, "2026-02", "close  february 2026")
    assert resp.status_code == 200
    data = resp.json()
    assert data["month"] == "2026-02"
    assert data["month_end"] == "2026-02-28"
    assert data["status"] == "CLOSED"
    assert data["closed_by"] == str(ADMIN_ID)
    assert data["reason"] == "Payroll finalised"

    entries = await _audit_entries(db_session, "MONTH_CLOSE")
    assert len(entries) == 1
    assert entries[0].before_json is None
    assert entries[0].after_json["status"] == "CLOSED"

    status_resp = await async_client.get("/governance/month-close/2026-02", headers=EMPLOYEE_HEADERS)
    assert status_resp.json()["status"] == "CLOSED"


async def test_unknown_month_is_open(async_client: AsyncClient) -> None:
    resp = await async_client.get("/governance/month-close/2026-03", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["status"] == "OPEN"
    assert resp.json()["closed_at"] is None


async def test_close_is_idempotent(async_client: AsyncClient, db_session: AsyncSession) -> None:
    """Closing an already closed month changes nothing and writes no second audit entry."""
    await _close(async_client, "2026-02", "CLOSE FEBRUARY 2026")
    second = await _close(async_client, "2026-02", "CLOSE FEBRUARY 2026")
    assert second.status_code == 200
    assert second.json()["status"] == "CLOSED"
    assert second.json()["closed_by"] == str(ADMIN_ID)

    assert len(await _audit_entries(db_session, "MONTH_CLOSE")) == 1


async def test_confirmation_mismatch(async_client: AsyncClient, db_session: AsyncSession) -> None:
    resp = await _close(async_client, "2026-02", "CLOSE MARCH 2026")
    assert resp.status_code == 400
    assert resp.json()["error"] == "ValidationFailed"
    assert resp.json()["context"] == {"expected": "CLOSE FEBRUARY 2026"}
    assert await _audit_entries(db_session, "MONTH_CLOSE") == []


async def test_invalid_month_format(async_client: AsyncClient) -> None:
    resp = await _close(async_client, "2026-13", "CLOSE ??? 2026")
    assert resp.status_code == 400


async def test_close_requires_permission(async_client: AsyncClient) -> None:
    resp = await _close(async_client, "2026-02", "CLOSE FEBRUARY 2026", headers=HR_HEADERS)
    assert resp.status_code == 403
    assert resp.json()["error"] == "PermissionDenied"

    granted = {**HR_HEADERS, "X-Permissions": "MONTH_CLOSE_MANAGE"}
    resp = await _close(async_client, "2026-02", "CLOSE FEBRUARY 2026", headers=granted)
    assert resp.status_code == 200


async def test_list_month_closes(async_client: AsyncClient) -> None:
    await _close(async_client, "2026-01", "CLOSE JANUARY 2026")
    await _close(async_client, "2026-02", "CLOSE FEBRUARY 2026")

    resp = await async_client.get("/governance/month-close", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 2
    assert [item["month"] for item in data["items"]] == ["2026-02", "2026-01"]


# ---------------------------------------------------------------------------
# Lock enforcement
# ---------------------------------------------------------------------------


async def test_leave_in_closed_month_is_locked(async_client: AsyncClient) -> None:
    type_id = await _create_unpaid_type(async_client)
    await _close(async_client, "2026-02", "CLOSE FEBRUARY 2026")

    resp = await async_client.post(
        "/leave/requests",
        json={"leave_type_id": type_id, "start_date": "2026-02-27", "end_date": "2026-03-02", "reason": "Trip"},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 423
    data = resp.json()
    assert data["error"] == "MonthLocked"
    assert data["context"] == {"month": "2026-02", "can_override": False}


async def test_leave_override_is_tagged(async_client: AsyncClient, db_session: AsyncSession) -> None:
    """HR with the override permission can file leave in a closed month; the audit entry says so."""
    type_id = await _create_unpaid_type(async_client)
    await _close(async_client, "2026-02", "CLOSE FEBRUARY 2026")

    headers = {**HR_HEADERS, "X-Permissions": "LEAVE_MONTH_CLOSE_OVERRIDE"}
    resp = await async_client.post(
        "/leave/requests",
        json={
            "employee_id": str(EMPLOYEE_ID),
            "leave_type_id": type_id,
            "start_date": "2026-02-27",
            "end_date": "2026-03-02",
            "reason": "Late correction from payroll",
        },
        headers=headers,
    )
    assert resp.status_code == 201

    entries = await _audit_entries(db_session, "LEAVE_REQUEST_SUBMIT")
    assert len(entries) == 1
    assert entries[0].is_override is True
    assert entries[0].metadata_json["override"] is True
    assert entries[0].metadata_json["override_months"] == ["2026-02"]


async def test_approval_blocked_after_close(async_client: AsyncClient) -> None:
    """A pending request whose dates get closed cannot be approved without override."""
    type_id = await _create_unpaid_type(async_client)
    submitted = await async_client.post(
        "/leave/requests",
        json={"leave_type_id": type_id, "start_date": "2026-02-10", "end_date": "2026-02-10", "reason": "Errand"},
        headers=EMPLOYEE_HEADERS,
    )
    request_id = submitted.json()["id"]
    await _close(async_client, "2026-02", "CLOSE FEBRUARY 2026")

    resp = await async_client.post(f"/leave/requests/{request_id}/approve", json={}, headers=HR_HEADERS)
    assert resp.status_code == 423

    current = await async_client.get(f"/leave/requests/{request_id}", headers=EMPLOYEE_HEADERS)
    assert current.json()["status"] == "SUBMITTED"


async def test_worklog_in_closed_month(async_client: AsyncClient, db_session: AsyncSession) -> None:
    await _close(async_client, "2025-03", "CLOSE MARCH 2025")
    worklog = {"work_date": "2025-03-04", "task": "Support", "hours": "6"}

    resp = await async_client.post("/timesheets/worklog", json=worklog, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 423
    assert resp.json()["context"]["can_override"] is False

    override_headers = {**EMPLOYEE_HEADERS, "X-Permissions": "TIMESHEET_MONTH_CLOSE_OVERRIDE"}
    resp = await async_client.post("/timesheets/worklog", json=worklog, headers=override_headers)
    assert resp.status_code == 423
    assert resp.json()["context"] == {"month": "2025-03", "can_override": True}

    resp = await async_client.post(
        "/timesheets/worklog",
        json={**worklog, "override_reason": "   "},
        headers=override_headers,
    )
    assert resp.status_code == 423

    resp = await async_client.post(
        "/timesheets/worklog",
        json={**worklog, "override_reason": "Missed entry found in audit"},
        headers=override_headers,
    )
    assert resp.status_code == 200

    entries = await _audit_entries(db_session, "TIMESHEET_WORKLOG_UPSERT")
    assert len(entries) == 1
    assert entries[0].is_override is True
    assert entries[0].reason == "Missed entry found in audit"
    assert entries[0].metadata_json["override_months"] == ["2025-03"]


async def test_disabled_month_close_skips_guard(async_client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
    await _close(async_client, "2025-03", "CLOSE MARCH 2025")
    monkeypatch.setattr(get_settings(), "month_close_enabled", False)

    resp = await async_client.post(
        "/timesheets/worklog",
        json={"work_date": "2025-03-04", "task": "Support", "hours": "6"},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 200


async def test_concurrent_first_close_is_a_noop(
    async_client: AsyncClient,
    db_session: AsyncSession,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A close that loses the insert race returns the winner's record instead of failing."""
    first = await _close(async_client, "2026-01", "CLOSE JANUARY 2026")
    assert first.status_code == 200

    real_get = month_close_service._get_record
    calls = {"n": 0}

    async def _stale_get(*args: Any, **kwargs: Any) -> MonthCloseRecord | None:
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await real_get(*args, **kwargs)

    monkeypatch.setattr(month_close_service, "_get_record", _stale_get)

    resp = await _close(async_client, "2026-01", "CLOSE JANUARY 2026", headers=SECOND_ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["status"] == "CLOSED"
    assert resp.json()["closed_by"] == str(ADMIN_ID)
    assert len(await _audit_entries(db_session, "MONTH_CLOSE")) == 1


# ---------------------------------------------------------------------------
# Lock enforcement on decisions
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("action", "approve_first", "final_status", "audit_action"),
    [
        ("approve", False, "APPROVED", "LEAVE_REQUEST_APPROVE"),
        ("reject", False, "REJECTED", "LEAVE_REQUEST_REJECT"),
        ("cancel", True, "CANCELLED", "LEAVE_REQUEST_CANCEL"),
    ],
)
async def test_leave_decisions_in_closed_month(
    async_client: AsyncClient,
    db_session: AsyncSession,
    action: str,
    approve_first: bool,
    final_status: str,
    audit_action: str,
) -> None:
    type_id = await _create_unpaid_type(async_client)
    submitted = await async_client.post(
        "/leave/requests",
        json={"leave_type_id": type_id, "start_date": "2026-02-10", "end_date": "2026-02-11", "reason": "Errand"},
        headers=EMPLOYEE_HEADERS,
    )
    assert submitted.status_code == 201
    request_id = submitted.json()["id"]
    if approve_first:
        resp = await async_client.post(f"/leave/requests/{request_id}/approve", json={}, headers=HR_HEADERS)
        assert resp.status_code == 200
    status_before = "APPROVED" if approve_first else "SUBMITTED"
    await _close(async_client, "2026-02", "CLOSE FEBRUARY 2026")

    body = {"reason": "Payroll correction"}
    resp = await async_client.post(f"/leave/requests/{request_id}/{action}", json=body, headers=HR_HEADERS)
    assert resp.status_code == 423
    assert resp.json()["context"] == {"month": "2026-02", "can_override": False}
    current = await async_client.get(f"/leave/requests/{request_id}", headers=EMPLOYEE_HEADERS)
    assert current.json()["status"] == status_before

    override_headers = {**HR_HEADERS, "X-Permissions": "LEAVE_MONTH_CLOSE_OVERRIDE"}
    resp = await async_client.post(f"/leave/requests/{request_id}/{action}", json=body, headers=override_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == final_status

    entries = await _audit_entries(db_session, audit_action)
    assert len(entries) == 1
    assert entries[0].is_override is True
    assert entries[0].metadata_json["override_months"] == ["2026-02"]


async def test_timesheet_submit_guarded_by_period_end(async_client: AsyncClient, db_session: AsyncSession) -> None:
    """A week running from March into April belongs to April for submission."""
    logged = await async_client.post(
        "/timesheets/worklog",
        json={"work_date": "2025-03-31", "task": "Support", "hours": "6"},
        headers=EMPLOYEE_HEADERS,
    )
    assert logged.status_code == 200
    assert logged.json()["period_end"] == "2025-04-06"
    timesheet_id = logged.json()["id"]
    await _close(async_client, "2025-04", "CLOSE APRIL 2025")

    resp = await async_client.post(f"/timesheets/{timesheet_id}/submit", json={}, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 423
    assert resp.json()["context"] == {"month": "2025-04", "can_override": False}

    override_headers = {**EMPLOYEE_HEADERS, "X-Permissions": "TIMESHEET_MONTH_CLOSE_OVERRIDE"}
    resp = await async_client.post(f"/timesheets/{timesheet_id}/submit", json={}, headers=override_headers)
    assert resp.status_code == 423
    assert resp.json()["context"] == {"month": "2025-04", "can_override": True}

    resp = await async_client.post(
        f"/timesheets/{timesheet_id}/submit",
        json={"reason": "Submitted late with payroll sign-off"},
        headers=override_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "SUBMITTED"

    entries = await _audit_entries(db_session, "TIMESHEET_SUBMIT")
    assert len(entries) == 1
    assert entries[0].is_override is True
    assert entries[0].metadata_json["override_months"] == ["2025-04"]


@pytest.mark.parametrize(
    ("action", "final_status", "audit_action"),
    [
        ("approve", "APPROVED", "TIMESHEET_APPROVE"),
        ("reject", "REJECTED", "TIMESHEET_REJECT"),
        ("request-revision", "REVISION_REQUIRED", "TIMESHEET_REQUEST_REVISION"),
    ],
)
async def test_timesheet_decisions_in_closed_month(
    async_client: AsyncClient,
    db_session: AsyncSession,
    action: str,
    final_status: str,
    audit_action: str,
) -> None:
    logged = await async_client.post(
        "/timesheets/worklog",
        json={"work_date": "2025-03-25", "task": "Support", "hours": "6"},
        headers=EMPLOYEE_HEADERS,
    )
    timesheet_id = logged.json()["id"]
    submitted = await async_client.post(f"/timesheets/{timesheet_id}/submit", json={}, headers=EMPLOYEE_HEADERS)
    assert submitted.status_code == 200
    await _close(async_client, "2025-03", "CLOSE MARCH 2025")

    body = {"reason": "Hours reviewed"}
    resp = await async_client.post(f"/timesheets/{timesheet_id}/{action}", json=body, headers=MANAGER_HEADERS)
    assert resp.status_code == 423
    assert resp.json()["context"] == {"month": "2025-03", "can_override": False}
    current = await async_client.get(f"/timesheets/{timesheet_id}", headers=EMPLOYEE_HEADERS)
    assert current.json()["status"] == "SUBMITTED"

    override_headers = {**MANAGER_HEADERS, "X-Permissions": "TIMESHEET_MONTH_CLOSE_OVERRIDE"}
    resp = await async_client.post(f"/timesheets/{timesheet_id}/{action}", json=body, headers=override_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == final_status

    entries = await _audit_entries(db_session, audit_action)
    assert len(entries) == 1
    assert entries[0].is_override is True
    assert entries[0].metadata_json["override_months"] == ["2025-03"]
