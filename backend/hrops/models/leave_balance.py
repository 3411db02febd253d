# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from hrops.models.base import UpdatedAtMixin, UUIDBase


class LeaveBalance(UUIDBase, UpdatedAtMixin, table=True):
    """Per-employee, per-leave-type, per-year balance.

    Only the components are stored; ``available_balance`` is always derived.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_leave_balance_employee_type_year"),
    )

    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    year: int
    opening_balance: Decimal = Field(default=Decimal("0"), sa_type=sa.Numeric(8, 2))  # ty: ignore[invalid-argument-type]
    granted_balance: Decimal = Field(default=Decimal("0"), sa_type=sa.Numeric(8, 2))  # ty: ignore[invalid-argument-type]
    consumed_balance: Decimal = Field(default=Decimal("0"), sa_type=sa.Numeric(8, 2))  # ty: ignore[invalid-argument-type]
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})

    @property
    def available_balance(self) -> Decimal:
        return self.opening_balance + self.granted_balance - self.consumed_balance
