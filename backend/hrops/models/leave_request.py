# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from hrops.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from hrops.models.enums import LeaveStatus


class LeaveRequest(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """An employee's leave request and its current approval state.

    Decision timestamps and reasons live in the workflow_transition history,
    not on this row.
    """

    __tablename__ = "leave_request"
    __table_args__ = (sa.Index("ix_leave_request_employee_dates", "employee_id", "start_date", "end_date"),)

    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    start_date: date
    end_date: date
    unit: str = Field(max_length=20)
    half_day_part: str | None = Field(default=None, max_length=2)
    units: Decimal = Field(sa_type=sa.Numeric(6, 2))  # ty: ignore[invalid-argument-type]
    deducted_units: Decimal | None = Field(default=None, sa_type=sa.Numeric(6, 2))  # ty: ignore[invalid-argument-type]
    reason: str = Field(max_length=1000)
    status: str = Field(
        default=LeaveStatus.SUBMITTED, max_length=20, index=True, sa_column_kwargs={"server_default": "SUBMITTED"}
    )
    pending_approval_level: int | None = Field(default=1)
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
