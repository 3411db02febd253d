# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, Field, model_validator

from hrops.models.enums import HalfDayPart, LeaveStatus, LeaveUnit
from hrops.schemas.history import TransitionResponse

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SubmitLeaveRequest(BaseModel):
    """Request body for submitting a leave request.

    ``employee_id`` defaults to the caller; applying for someone else needs
    LEAVE_APPLY_ANY.
    """

    employee_id: uuid.UUID | None = None
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    unit: LeaveUnit = LeaveUnit.FULL_DAY
    half_day_part: HalfDayPart | None = None
    reason: str = Field(min_length=1, max_length=1000)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must be on or after start_date"
            raise ValueError(msg)
        return self


class LeaveDecisionRequest(BaseModel):
    """Optional comment attached to an approval."""

    reason: str | None = Field(default=None, max_length=1000)


class LeaveReasonRequest(BaseModel):
    """Mandatory reason for reject and cancel."""

    reason: str = Field(min_length=1, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveRequestResponse(BaseModel):
    """A leave request with its derived decision timeline."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    unit: LeaveUnit
    half_day_part: HalfDayPart | None
    units: Decimal
    deducted_units: Decimal | None = None
    reason: str
    status: LeaveStatus
    pending_approval_level: int | None
    version: int
    created_at: datetime
    updated_at: datetime

    submitted_at: datetime | None = None
    approved_l1_at: datetime | None = None
    approved_l2_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None

    history: list[TransitionResponse] = Field(default_factory=list)


class LeaveRequestListResponse(BaseModel):
    """Paginated leave requests."""

    items: list[LeaveRequestResponse]
    total: int
