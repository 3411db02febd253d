from sqlmodel import SQLModel

from hrops.models.audit import AuditLog
from hrops.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from hrops.models.enums import (
    AuditAction,
    AuditEntityType,
    HalfDayPart,
    LeaveStatus,
    LeaveUnit,
    MonthCloseStatus,
    Permission,
    Role,
    TimesheetStatus,
)
from hrops.models.leave_balance import LeaveBalance
from hrops.models.leave_request import LeaveRequest
from hrops.models.leave_type import LeaveType
from hrops.models.month_close import MonthCloseRecord
from hrops.models.timesheet import Timesheet, Worklog
from hrops.models.transition import WorkflowTransition

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "HalfDayPart",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveType",
    "LeaveUnit",
    "MonthCloseRecord",
    "MonthCloseStatus",
    "Permission",
    "Role",
    "SQLModel",
    "TimestampMixin",
    "Timesheet",
    "TimesheetStatus",
    "UUIDBase",
    "UpdatedAtMixin",
    "WorkflowTransition",
    "Worklog",
]
