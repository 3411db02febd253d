# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from hrops.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from hrops.models.enums import TimesheetStatus


class Timesheet(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """Weekly timesheet header (Monday to Sunday)."""

    __tablename__ = "timesheet"
    __table_args__ = (sa.UniqueConstraint("employee_id", "period_start", name="uq_timesheet_employee_period"),)

    employee_id: uuid.UUID = Field(index=True)
    period_start: date
    period_end: date
    status: str = Field(
        default=TimesheetStatus.DRAFT, max_length=20, index=True, sa_column_kwargs={"server_default": "DRAFT"}
    )
    pending_approval_level: int | None = Field(default=None)
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})


class Worklog(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """A single dated, hours-tagged work entry on a timesheet."""

    __tablename__ = "timesheet_worklog"
    __table_args__ = (
        sa.UniqueConstraint("timesheet_id", "work_date", "task", name="uq_worklog_timesheet_date_task"),
        sa.CheckConstraint("hours > 0", name="ck_worklog_hours_positive"),
    )

    timesheet_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("timesheet.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    work_date: date
    task: str = Field(max_length=255)
    hours: Decimal = Field(sa_type=sa.Numeric(5, 2))  # ty: ignore[invalid-argument-type]
    description: str | None = None
