"""Enums and constants for HR Scope — matching the database ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    team_leader = "team_leader"
    hr_manager = "hr_manager"
    admin = "admin"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    late = "late"
    half_day = "half_day"
    on_leave = "on_leave"


# Statuses that count toward effective presence in rate math
EFFECTIVE_PRESENCE: frozenset[AttendanceStatus] = frozenset({
    AttendanceStatus.present,
    AttendanceStatus.late,
    AttendanceStatus.half_day,
})


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class LeaveType(str, enum.Enum):
    casual = "casual"
    sick = "sick"
    earned = "earned"
    unpaid = "unpaid"
    other = "other"


# ── Assets ──────────────────────────────────────────────────────────

class AssetStatus(str, enum.Enum):
    available = "available"
    assigned = "assigned"
    under_maintenance = "under_maintenance"
    retired = "retired"


class AssetRequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    fulfilled = "fulfilled"


# ── Payroll ─────────────────────────────────────────────────────────

class PayrollStatus(str, enum.Enum):
    pending = "pending"
    processed = "processed"
    paid = "paid"


# ── Notices ─────────────────────────────────────────────────────────

class NoticeAudience(str, enum.Enum):
    all = "all"
    team = "team"
    individual = "individual"


# ── Analytics ───────────────────────────────────────────────────────

class View(str, enum.Enum):
    attendance = "attendance"
    leave = "leave"
    payroll = "payroll"
    assets = "assets"
    department = "department"
    growth = "growth"


class Granularity(str, enum.Enum):
    day = "day"
    month = "month"


PERIOD_TOKENS: tuple[str, ...] = ("today", "week", "month", "quarter", "year")

MONTH_LABELS: tuple[str, ...] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

SALARY_BUCKET_BOUNDARIES: tuple[int, ...] = (0, 30000, 50000, 75000, 100000, 150000, 999999)

# Leave days budgeted per employee per month for utilization math
LEAVE_DAYS_PER_EMPLOYEE_MONTH = 2
ANNUAL_LEAVE_ALLOWANCE = 12
STANDARD_WORK_HOURS = 8

# ── Role-based permissions ──────────────────────────────────────────

PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.employee: [
        "dashboard:self",
        "notice:read_visible",
    ],
    UserRole.team_leader: [
        "dashboard:self",
        "analytics:read",
        "reports:read",
        "asset_requests:read",
        "notice:read_visible",
    ],
    UserRole.hr_manager: [
        "dashboard:self",
        "analytics:read",
        "reports:read",
        "asset_requests:read",
        "summary:read",
        "notice:read_visible",
    ],
    UserRole.admin: [
        "dashboard:self",
        "analytics:read",
        "reports:read",
        "asset_requests:read",
        "summary:read",
        "notice:read_visible",
    ],
}
