# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from hrops.models.enums import TimesheetStatus
from hrops.schemas.history import TransitionResponse

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class UpsertWorklogRequest(BaseModel):
    """Create or update the caller's worklog for (work_date, task).

    Without ``timesheet_id`` the weekly timesheet containing ``work_date`` is
    used, and created as DRAFT if it does not exist yet.
    """

    timesheet_id: uuid.UUID | None = None
    work_date: date
    task: str = Field(min_length=1, max_length=255)
    hours: Decimal = Field(gt=0, le=24, decimal_places=2)
    description: str | None = Field(default=None, max_length=2000)
    override_reason: str | None = Field(default=None, max_length=1000)


class TimesheetDecisionRequest(BaseModel):
    """Optional comment for submit and approve."""

    reason: str | None = Field(default=None, max_length=1000)


class TimesheetReasonRequest(BaseModel):
    """Mandatory reason for reject and request-revision."""

    reason: str = Field(min_length=1, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WorklogResponse(BaseModel):
    """A single worklog line."""

    id: uuid.UUID
    work_date: date
    task: str
    hours: Decimal
    description: str | None
    updated_at: datetime


class TimesheetResponse(BaseModel):
    """Timesheet header, its worklogs and the derived decision timeline."""

    id: uuid.UUID
    employee_id: uuid.UUID
    period_start: date
    period_end: date
    status: TimesheetStatus
    pending_approval_level: int | None
    version: int
    total_hours: Decimal
    created_at: datetime
    updated_at: datetime

    submitted_at: datetime | None = None
    approved_l1_at: datetime | None = None
    approved_l2_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    revision_requested_at: datetime | None = None
    revision_requested_reason: str | None = None

    worklogs: list[WorklogResponse] = Field(default_factory=list)
    history: list[TransitionResponse] = Field(default_factory=list)


class TimesheetSummaryResponse(BaseModel):
    """Timesheet header without worklogs, used in listings."""

    id: uuid.UUID
    employee_id: uuid.UUID
    period_start: date
    period_end: date
    status: TimesheetStatus
    pending_approval_level: int | None
    version: int
    updated_at: datetime


class TimesheetListResponse(BaseModel):
    """Paginated timesheets."""

    items: list[TimesheetSummaryResponse]
    total: int
