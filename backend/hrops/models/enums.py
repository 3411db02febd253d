from __future__ import annotations

import enum


class LeaveStatus(enum.StrEnum):
    """State machine for leave requests."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


TERMINAL_LEAVE_STATUSES = frozenset({LeaveStatus.REJECTED, LeaveStatus.CANCELLED})


class LeaveUnit(enum.StrEnum):
    """Granularity of a leave request."""

    FULL_DAY = "FULL_DAY"
    HALF_DAY = "HALF_DAY"


class HalfDayPart(enum.StrEnum):
    """Which half of the day a HALF_DAY request covers."""

    AM = "AM"
    PM = "PM"


class TimesheetStatus(enum.StrEnum):
    """State machine for weekly timesheets."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVISION_REQUIRED = "REVISION_REQUIRED"


EDITABLE_TIMESHEET_STATUSES = frozenset({TimesheetStatus.DRAFT, TimesheetStatus.REVISION_REQUIRED})


class MonthCloseStatus(enum.StrEnum):
    """Lock state of a calendar month."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEAVE_TYPE = "LEAVE_TYPE"
    LEAVE_REQUEST = "LEAVE_REQUEST"
    LEAVE_BALANCE = "LEAVE_BALANCE"
    TIMESHEET = "TIMESHEET"
    MONTH_CLOSE = "MONTH_CLOSE"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    LEAVE_TYPE_CREATE = "LEAVE_TYPE_CREATE"
    LEAVE_TYPE_UPDATE = "LEAVE_TYPE_UPDATE"
    LEAVE_REQUEST_SUBMIT = "LEAVE_REQUEST_SUBMIT"
    LEAVE_REQUEST_APPROVE_L1 = "LEAVE_REQUEST_APPROVE_L1"
    LEAVE_REQUEST_APPROVE = "LEAVE_REQUEST_APPROVE"
    LEAVE_REQUEST_REJECT = "LEAVE_REQUEST_REJECT"
    LEAVE_REQUEST_CANCEL = "LEAVE_REQUEST_CANCEL"
    LEAVE_BALANCE_GRANT = "LEAVE_BALANCE_GRANT"
    TIMESHEET_WORKLOG_UPSERT = "TIMESHEET_WORKLOG_UPSERT"
    TIMESHEET_SUBMIT = "TIMESHEET_SUBMIT"
    TIMESHEET_APPROVE_L1 = "TIMESHEET_APPROVE_L1"
    TIMESHEET_APPROVE = "TIMESHEET_APPROVE"
    TIMESHEET_REJECT = "TIMESHEET_REJECT"
    TIMESHEET_REQUEST_REVISION = "TIMESHEET_REQUEST_REVISION"
    MONTH_CLOSE = "MONTH_CLOSE"


class Permission(enum.StrEnum):
    """Closed set of capabilities an actor may hold."""

    LEAVE_APPLY_SELF = "LEAVE_APPLY_SELF"
    LEAVE_APPLY_ANY = "LEAVE_APPLY_ANY"
    LEAVE_APPROVE_L1 = "LEAVE_APPROVE_L1"
    LEAVE_APPROVE_L2 = "LEAVE_APPROVE_L2"
    LEAVE_REQUEST_CANCEL = "LEAVE_REQUEST_CANCEL"
    LEAVE_REQUEST_VIEW_ANY = "LEAVE_REQUEST_VIEW_ANY"
    LEAVE_BALANCE_GRANT = "LEAVE_BALANCE_GRANT"
    LEAVE_TYPE_MANAGE = "LEAVE_TYPE_MANAGE"
    LEAVE_MONTH_CLOSE_OVERRIDE = "LEAVE_MONTH_CLOSE_OVERRIDE"
    TIMESHEET_APPROVE_L1 = "TIMESHEET_APPROVE_L1"
    TIMESHEET_APPROVE_L2 = "TIMESHEET_APPROVE_L2"
    TIMESHEET_VIEW_ANY = "TIMESHEET_VIEW_ANY"
    TIMESHEET_MONTH_CLOSE_OVERRIDE = "TIMESHEET_MONTH_CLOSE_OVERRIDE"
    MONTH_CLOSE_MANAGE = "MONTH_CLOSE_MANAGE"
    AUDIT_VIEW = "AUDIT_VIEW"
    SYSTEM_FULL_ACCESS = "SYSTEM_FULL_ACCESS"


class Role(enum.StrEnum):
    """Built-in roles, each granting a default permission set."""

    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    HR_ADMIN = "HR_ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"
