# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from hrops.api.deps import AuthDep
from hrops.db import SessionDep
from hrops.models.enums import TimesheetStatus
from hrops.schemas.timesheet import (
    TimesheetDecisionRequest,
    TimesheetListResponse,
    TimesheetReasonRequest,
    TimesheetResponse,
    UpsertWorklogRequest,
)
from hrops.services import timesheet as timesheet_service

timesheets_router = APIRouter(prefix="/timesheets", tags=["timesheets"])


@timesheets_router.post("/worklog", response_model=TimesheetResponse)
async def upsert_worklog(
    payload: UpsertWorklogRequest,
    session: SessionDep,
    auth: AuthDep,
) -> TimesheetResponse:
    """Create or update a worklog on the caller's weekly timesheet."""
    return await timesheet_service.upsert_worklog(session, auth, payload)


@timesheets_router.get("", response_model=TimesheetListResponse)
async def list_timesheets(
    session: SessionDep,
    auth: AuthDep,
    employee_id: uuid.UUID | None = Query(default=None),
    status_filter: TimesheetStatus | None = Query(default=None, alias="status"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> TimesheetListResponse:
    """List timesheets visible to the caller."""
    return await timesheet_service.list_timesheets(session, auth, employee_id, status_filter, offset, limit)


@timesheets_router.get("/{timesheet_id}", response_model=TimesheetResponse)
async def get_timesheet(
    timesheet_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> TimesheetResponse:
    """Get a timesheet with its worklogs and decision history."""
    return await timesheet_service.get_timesheet(session, auth, timesheet_id)


@timesheets_router.post("/{timesheet_id}/submit", response_model=TimesheetResponse)
async def submit_timesheet(
    timesheet_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: TimesheetDecisionRequest | None = None,
) -> TimesheetResponse:
    """Submit the caller's timesheet for approval."""
    return await timesheet_service.submit_timesheet(session, auth, timesheet_id, payload)


@timesheets_router.post("/{timesheet_id}/approve", response_model=TimesheetResponse)
async def approve_timesheet(
    timesheet_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: TimesheetDecisionRequest | None = None,
) -> TimesheetResponse:
    """Approve at the pending level."""
    return await timesheet_service.approve_timesheet(session, auth, timesheet_id, payload)


@timesheets_router.post("/{timesheet_id}/reject", response_model=TimesheetResponse)
async def reject_timesheet(
    timesheet_id: uuid.UUID,
    payload: TimesheetReasonRequest,
    session: SessionDep,
    auth: AuthDep,
) -> TimesheetResponse:
    """Reject a submitted timesheet."""
    return await timesheet_service.reject_timesheet(session, auth, timesheet_id, payload)


@timesheets_router.post("/{timesheet_id}/request-revision", response_model=TimesheetResponse)
async def request_revision(
    timesheet_id: uuid.UUID,
    payload: TimesheetReasonRequest,
    session: SessionDep,
    auth: AuthDep,
) -> TimesheetResponse:
    """Send a submitted timesheet back for changes."""
    return await timesheet_service.request_revision(session, auth, timesheet_id, payload)
