# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from hrops.models.enums import MonthCloseStatus

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class CloseMonthPayload(BaseModel):
    """Request body for closing a calendar month.

    ``confirmation`` must repeat the phrase ``CLOSE <MONTH NAME> <YEAR>``.
    """

    month: str = Field(pattern=MONTH_PATTERN, description="YYYY-MM")
    reason: str = Field(min_length=1, max_length=1000)
    confirmation: str = Field(min_length=1, max_length=64)


class MonthCloseResponse(BaseModel):
    """Lock state of a calendar month."""

    month: str
    month_end: date
    status: MonthCloseStatus
    closed_at: datetime | None
    closed_by: uuid.UUID | None
    reason: str | None


class MonthCloseListResponse(BaseModel):
    """Paginated month-close records."""

    items: list[MonthCloseResponse]
    total: int
