# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from hrops.models.base import TimestampMixin, UUIDBase
from hrops.models.enums import MonthCloseStatus


class MonthCloseRecord(UUIDBase, TimestampMixin, table=True):
    """Lock state of one calendar month, keyed by its last day."""

    __tablename__ = "month_close"
    __table_args__ = (sa.UniqueConstraint("month_end", name="uq_month_close_month_end"),)

    month_end: date
    status: str = Field(default=MonthCloseStatus.OPEN, max_length=10, sa_column_kwargs={"server_default": "OPEN"})
    closed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    closed_by: uuid.UUID | None = None
    reason: str | None = Field(default=None, max_length=1000)
