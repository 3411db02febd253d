# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Self

from pydantic import BaseModel, Field, field_validator, model_validator

_CODE_PATTERN = r"^[A-Za-z][A-Za-z0-9_]*$"


class CreateLeaveTypeRequest(BaseModel):
    """Request body for creating a leave type."""

    code: str = Field(min_length=1, max_length=50, pattern=_CODE_PATTERN)
    name: str = Field(min_length=1, max_length=255)
    is_paid: bool = False
    supports_half_day: bool = True
    affects_payroll: bool = False
    deduction_rule: str | None = Field(default=None, max_length=255)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.upper()


class UpdateLeaveTypeRequest(BaseModel):
    """Partial update guarded by the version the caller last read."""

    version: int = Field(ge=1)
    code: str | None = Field(default=None, min_length=1, max_length=50, pattern=_CODE_PATTERN)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    is_paid: bool | None = None
    supports_half_day: bool | None = None
    affects_payroll: bool | None = None
    deduction_rule: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str | None) -> str | None:
        return value.upper() if value is not None else None

    @model_validator(mode="after")
    def _require_change(self) -> Self:
        if not self.model_fields_set - {"version"}:
            msg = "At least one field besides version must be provided"
            raise ValueError(msg)
        return self


class LeaveTypeResponse(BaseModel):
    """A leave type as returned by the API."""

    id: uuid.UUID
    code: str
    name: str
    is_paid: bool
    supports_half_day: bool
    affects_payroll: bool
    deduction_rule: str | None
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime


class LeaveTypeListResponse(BaseModel):
    """All leave types."""

    items: list[LeaveTypeResponse]
    total: int
