from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field

from hrops.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase


class LeaveType(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """Master data for a kind of leave (e.g. ANNUAL, SICK)."""

    __tablename__ = "leave_type"
    __table_args__ = (sa.UniqueConstraint("code", name="uq_leave_type_code"),)

    code: str = Field(max_length=50)
    name: str = Field(max_length=255)
    is_paid: bool = Field(default=False)
    supports_half_day: bool = Field(default=True)
    affects_payroll: bool = Field(default=False)
    deduction_rule: str | None = Field(default=None, max_length=255)
    is_active: bool = Field(default=True)
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
