"""Statistic bundles: one Pydantic v2 model per aggregation view.

Every field defaults to zero/empty, so ``Bundle()`` is the empty-scope
result.
"""

from __future__ import annotations

import uuid
import datetime as dt
from typing import Optional, Union

from pydantic import BaseModel, Field


# ═════════════════════════════════════════════════════════════════════
# Attendance
# ═════════════════════════════════════════════════════════════════════


class AttendanceTrendPoint(BaseModel):
    """One day (``date``) or one month (``period``) of the attendance trend."""

    date: Optional[dt.date] = None
    period: Optional[str] = None
    present: int = 0
    absent: int = 0
    late: int = 0
    total: int = 0


class MemberAttendance(BaseModel):
    employee_id: uuid.UUID
    employee_name: str
    present: int = 0
    late: int = 0
    half_day: int = 0
    absent: int = 0
    total_hours: float = 0.0
    overtime_hours: float = 0.0
    attendance_rate: float = 0.0


class AttendanceBundle(BaseModel):
    total_employees: int = 0
    expected: int = 0
    present: int = 0
    late: int = 0
    half_day: int = 0
    on_leave: int = 0
    absent: int = Field(0, description="Expected person-days without effective presence")
    attendance_rate: float = 0.0
    records: int = 0
    total_hours: float = 0.0
    overtime_hours: float = 0.0
    avg_hours_worked: float = 0.0
    employees_with_overtime: int = 0
    trend: list[AttendanceTrendPoint] = Field(default_factory=list)
    by_employee: list[MemberAttendance] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Leave
# ═════════════════════════════════════════════════════════════════════


class LeaveTrendPoint(BaseModel):
    year: int
    month: int
    label: str
    total: int = 0
    approved: int = 0
    rejected: int = 0
    pending: int = 0
    approval_rate: float = 0.0


class LeaveBundle(BaseModel):
    pending: int = Field(0, description="Pending backlog across the scope, not windowed")
    approved: int = 0
    rejected: int = 0
    cancelled: int = 0
    total: int = 0
    approval_rate: float = 0.0
    approval_rate_change: float = Field(0.0, description="Points versus the previous window")
    total_days: int = 0
    utilization_rate: float = 0.0
    by_type: dict[str, int] = Field(default_factory=dict)
    trend: list[LeaveTrendPoint] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Growth
# ═════════════════════════════════════════════════════════════════════


class JoiningTrendPoint(BaseModel):
    period: str
    label: str
    count: int = 0


class GrowthBundle(BaseModel):
    total_employees: int = 0
    active_employees: int = 0
    joined_this_month: int = 0
    joined_last_month: int = 0
    monthly_change: float = 0.0
    joined_this_year: int = 0
    joined_last_year: int = 0
    growth_percentage: float = 0.0
    joined_in_window: int = 0
    trend: list[JoiningTrendPoint] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Payroll
# ═════════════════════════════════════════════════════════════════════


class PayrollStatusTotal(BaseModel):
    count: int = 0
    total: float = 0.0


class SalaryStats(BaseModel):
    employees: int = 0
    total: float = 0.0
    average: float = 0.0
    minimum: float = 0.0
    maximum: float = 0.0


class SalaryBucket(BaseModel):
    range: str
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    count: int = 0


class PayrollBundle(BaseModel):
    records: int = 0
    total_net: float = 0.0
    total_gross: float = 0.0
    average_net: float = 0.0
    by_status: dict[str, PayrollStatusTotal] = Field(default_factory=dict)
    salary: SalaryStats = Field(default_factory=SalaryStats)
    distribution: list[SalaryBucket] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Assets
# ═════════════════════════════════════════════════════════════════════


class AssigneeCount(BaseModel):
    employee_id: uuid.UUID
    employee_name: str
    count: int = 0


class AssetBundle(BaseModel):
    assigned: int = 0
    pool: int = Field(0, description="Available assets not assigned to anyone")
    utilization_rate: float = 0.0
    pending_requests: int = 0
    total_value: float = 0.0
    average_price: float = 0.0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    top_assignees: list[AssigneeCount] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentStat(BaseModel):
    name: str
    count: int = 0
    avg_salary: float = 0.0
    total_salary: float = 0.0
    attendance_rate: float = 0.0


class RosterEntry(BaseModel):
    employee_id: uuid.UUID
    employee_code: str
    name: str
    department: Optional[str] = None
    designation: Optional[str] = None
    role: str
    manager_name: Optional[str] = None
    date_of_joining: dt.date


class DepartmentBundle(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    departments: list[DepartmentStat] = Field(default_factory=list)
    by_designation: dict[str, int] = Field(default_factory=dict)
    by_role: dict[str, int] = Field(default_factory=dict)
    roster: list[RosterEntry] = Field(default_factory=list)


StatisticBundle = Union[
    AttendanceBundle,
    LeaveBundle,
    GrowthBundle,
    PayrollBundle,
    AssetBundle,
    DepartmentBundle,
]
