# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from hrops.api.deps import AuthDep
from hrops.db import SessionDep
from hrops.models.enums import LeaveStatus
from hrops.schemas.leave_balance import GrantBalancePayload, LeaveBalanceListResponse, LeaveBalanceResponse
from hrops.schemas.leave_request import (
    LeaveDecisionRequest,
    LeaveReasonRequest,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    SubmitLeaveRequest,
)
from hrops.schemas.leave_type import (
    CreateLeaveTypeRequest,
    LeaveTypeListResponse,
    LeaveTypeResponse,
    UpdateLeaveTypeRequest,
)
from hrops.services import leave_balance as balance_service
from hrops.services import leave_request as request_service
from hrops.services import leave_type as leave_type_service

# ---------------------------------------------------------------------------
# Leave types
# ---------------------------------------------------------------------------

leave_types_router = APIRouter(prefix="/leave/types", tags=["leave-types"])


@leave_types_router.post("", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    payload: CreateLeaveTypeRequest,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveTypeResponse:
    """Create a leave type (requires LEAVE_TYPE_MANAGE)."""
    return await leave_type_service.create_leave_type(session, auth, payload)


@leave_types_router.get("", response_model=LeaveTypeListResponse)
async def list_leave_types(
    session: SessionDep,
    auth: AuthDep,
    include_inactive: bool = Query(default=False),
) -> LeaveTypeListResponse:
    """List leave types."""
    return await leave_type_service.list_leave_types(session, include_inactive)


@leave_types_router.get("/{leave_type_id}", response_model=LeaveTypeResponse)
async def get_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveTypeResponse:
    """Get a single leave type."""
    return await leave_type_service.get_leave_type(session, leave_type_id)


@leave_types_router.patch("/{leave_type_id}", response_model=LeaveTypeResponse)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveTypeResponse:
    """Update a leave type; ``version`` must match the stored version."""
    return await leave_type_service.update_leave_type(session, auth, leave_type_id, payload)


# ---------------------------------------------------------------------------
# Leave requests
# ---------------------------------------------------------------------------

leave_requests_router = APIRouter(prefix="/leave/requests", tags=["leave-requests"])


@leave_requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_leave_request(
    payload: SubmitLeaveRequest,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Submit a leave request for the caller or, with LEAVE_APPLY_ANY, for another employee."""
    return await request_service.submit_leave_request(session, auth, payload)


@leave_requests_router.get("", response_model=LeaveRequestListResponse)
async def list_leave_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    employee_id: uuid.UUID | None = Query(default=None),
    leave_type_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List leave requests visible to the caller."""
    return await request_service.list_leave_requests(
        session, auth, status_filter, employee_id, leave_type_id, offset, limit
    )


@leave_requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_leave_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Get a single leave request with its decision history."""
    return await request_service.get_leave_request(session, auth, request_id)


@leave_requests_router.post("/{request_id}/approve", response_model=LeaveRequestResponse)
async def approve_leave_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: LeaveDecisionRequest | None = None,
) -> LeaveRequestResponse:
    """Approve at the pending level."""
    return await request_service.approve_leave_request(session, auth, request_id, payload)


@leave_requests_router.post("/{request_id}/reject", response_model=LeaveRequestResponse)
async def reject_leave_request(
    request_id: uuid.UUID,
    payload: LeaveReasonRequest,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Reject a pending leave request."""
    return await request_service.reject_leave_request(session, auth, request_id, payload)


@leave_requests_router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_leave_request(
    request_id: uuid.UUID,
    payload: LeaveReasonRequest,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Cancel a pending or approved leave request."""
    return await request_service.cancel_leave_request(session, auth, request_id, payload)


# ---------------------------------------------------------------------------
# Leave balances
# ---------------------------------------------------------------------------

leave_balances_router = APIRouter(prefix="/leave/balances", tags=["leave-balances"])


@leave_balances_router.post("/grant", response_model=LeaveBalanceResponse)
async def grant_balance(
    payload: GrantBalancePayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveBalanceResponse:
    """Grant leave days or set the opening balance (requires LEAVE_BALANCE_GRANT)."""
    return await balance_service.grant_balance(session, auth, payload)


@leave_balances_router.get("", response_model=LeaveBalanceListResponse)
async def list_balances(
    session: SessionDep,
    auth: AuthDep,
    employee_id: uuid.UUID | None = Query(default=None),
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> LeaveBalanceListResponse:
    """Balances of the caller, or of ``employee_id`` for HR."""
    return await balance_service.list_balances(session, auth, employee_id or auth.user_id, year)
