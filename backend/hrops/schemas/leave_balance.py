# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class GrantBalancePayload(BaseModel):
    """Request body for granting leave to an employee for a year."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int = Field(ge=2000, le=2100)
    opening_balance: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    grant_amount: Decimal = Field(ge=0, decimal_places=2)
    reason: str = Field(min_length=1, max_length=1000)


class LeaveBalanceResponse(BaseModel):
    """Balance components plus the derived available amount."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    opening_balance: Decimal
    granted_balance: Decimal
    consumed_balance: Decimal
    available_balance: Decimal
    version: int
    updated_at: datetime


class LeaveBalanceListResponse(BaseModel):
    """Balances of an employee."""

    items: list[LeaveBalanceResponse]
    total: int
