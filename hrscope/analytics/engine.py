"""Aggregation engine: (view, scope, window) -> statistic bundle.

Every query is filtered by the ScopeSet's ids; nothing outside the scope is
ever read into a bundle except the unassigned asset pool count, which
carries no employee identifiers. Counting happens at DB level
(COUNT/SUM/GROUP BY); filling empty trend buckets and rate math happen
here.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Mapping, Optional

from sqlalchemy import and_, case, distinct, exists, extract, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from hrscope.analytics.bundles import (
    AssetBundle,
    AssigneeCount,
    AttendanceBundle,
    AttendanceTrendPoint,
    DepartmentBundle,
    DepartmentStat,
    GrowthBundle,
    JoiningTrendPoint,
    LeaveBundle,
    LeaveTrendPoint,
    MemberAttendance,
    PayrollBundle,
    PayrollStatusTotal,
    RosterEntry,
    SalaryBucket,
    SalaryStats,
    StatisticBundle,
)
from hrscope.analytics.windows import TimeWindow, month_bounds, shift_months
from hrscope.assets.models import Asset, AssetAssignment, AssetRequest
from hrscope.attendance.models import AttendanceRecord
from hrscope.common.constants import (
    EFFECTIVE_PRESENCE,
    LEAVE_DAYS_PER_EMPLOYEE_MONTH,
    MONTH_LABELS,
    SALARY_BUCKET_BOUNDARIES,
    AssetRequestStatus,
    AssetStatus,
    AttendanceStatus,
    Granularity,
    LeaveStatus,
    View,
)
from hrscope.common.exceptions import UpstreamQueryError
from hrscope.common.observability import DashboardObserver, default_observer
from hrscope.config import settings
from hrscope.core_hr.models import Department, Designation, Employee
from hrscope.leave.models import LeaveRequest
from hrscope.payroll.models import Payroll
from hrscope.scope.resolver import ScopeSet

logger = logging.getLogger(__name__)

TOP_ASSIGNEES_LIMIT = 10


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


def growth_pct(prior: int, current: int) -> float:
    """Percentage change from ``prior`` to ``current``, 1 dp.

    A zero baseline reports 100 when anything happened and 0 otherwise.
    """
    if prior == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - prior) / prior * 100, 1)


def _rate(part: float, whole: float, digits: int = 1) -> float:
    return round(part / whole * 100, digits) if whole else 0.0


def _num(value: Any) -> float:
    return float(value or 0)


def _month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _month_label(year: int, month: int) -> str:
    return f"{MONTH_LABELS[month - 1]} {year}"


def _status_count(status: AttendanceStatus):
    return func.count(case((AttendanceRecord.status == status, 1)))


def _salary_bucket_label(low: int, high: int) -> str:
    return f"{low}-{high}"


# ═════════════════════════════════════════════════════════════════════
# Attendance
# ═════════════════════════════════════════════════════════════════════


async def attendance_view(
    db: AsyncSession,
    scope: ScopeSet,
    window: TimeWindow,
    *,
    per_member: bool = False,
) -> AttendanceBundle:
    ids = list(scope.employee_ids)
    headcount = len(ids)
    in_window = (
        AttendanceRecord.employee_id.in_(ids),
        AttendanceRecord.date >= window.start_date,
        AttendanceRecord.date <= window.end_date,
    )

    totals_stmt = select(
        _status_count(AttendanceStatus.present).label("present"),
        _status_count(AttendanceStatus.late).label("late"),
        _status_count(AttendanceStatus.half_day).label("half_day"),
        _status_count(AttendanceStatus.on_leave).label("on_leave"),
        func.count(AttendanceRecord.id).label("records"),
        func.coalesce(func.sum(AttendanceRecord.total_work_hours), 0).label("hours"),
        func.coalesce(func.sum(AttendanceRecord.overtime_hours), 0).label("overtime"),
        func.avg(AttendanceRecord.total_work_hours).label("avg_hours"),
        func.count(
            distinct(case((AttendanceRecord.overtime_hours > 0, AttendanceRecord.employee_id))),
        ).label("overtime_employees"),
    ).where(*in_window)
    totals = (await db.execute(totals_stmt)).one()

    present, late, half_day = totals.present or 0, totals.late or 0, totals.half_day or 0
    effective = present + late + half_day
    expected = headcount * window.days()

    # Daily rows feed both granularities; monthly buckets are summed here.
    daily_stmt = (
        select(
            AttendanceRecord.date,
            _status_count(AttendanceStatus.present).label("present"),
            _status_count(AttendanceStatus.late).label("late"),
            _status_count(AttendanceStatus.half_day).label("half_day"),
        )
        .where(*in_window)
        .group_by(AttendanceRecord.date)
    )
    daily = {row.date: row for row in (await db.execute(daily_stmt)).all()}
    trend = _attendance_trend(window, headcount, daily)

    by_employee: list[MemberAttendance] = []
    if per_member:
        by_employee = await _member_attendance(db, ids, window)

    return AttendanceBundle(
        total_employees=headcount,
        expected=expected,
        present=present,
        late=late,
        half_day=half_day,
        on_leave=totals.on_leave or 0,
        absent=max(expected - effective, 0),
        attendance_rate=_rate(effective, expected),
        records=totals.records or 0,
        total_hours=round(_num(totals.hours), 1),
        overtime_hours=round(_num(totals.overtime), 1),
        avg_hours_worked=round(_num(totals.avg_hours), 1),
        employees_with_overtime=totals.overtime_employees or 0,
        trend=trend,
        by_employee=by_employee,
    )


def _attendance_trend(
    window: TimeWindow,
    headcount: int,
    daily: Mapping[date, Any],
) -> list[AttendanceTrendPoint]:
    if window.granularity == Granularity.day:
        points = []
        for day in window.dates():
            row = daily.get(day)
            present, late, half_day = (row.present, row.late, row.half_day) if row else (0, 0, 0)
            points.append(AttendanceTrendPoint(
                date=day,
                present=present,
                late=late,
                absent=max(headcount - (present + late + half_day), 0),
                total=headcount,
            ))
        return points

    buckets: dict[tuple[int, int], list[int]] = {ym: [0, 0, 0, 0] for ym in window.months()}
    for day in window.dates():
        bucket = buckets[(day.year, day.month)]
        row = daily.get(day)
        if row:
            bucket[0] += row.present
            bucket[1] += row.late
            bucket[2] += row.half_day
        bucket[3] += headcount

    return [
        AttendanceTrendPoint(
            period=_month_key(year, month),
            present=present,
            late=late,
            absent=max(total - (present + late + half_day), 0),
            total=total,
        )
        for (year, month), (present, late, half_day, total) in buckets.items()
    ]


async def _member_attendance(
    db: AsyncSession,
    ids: list[uuid.UUID],
    window: TimeWindow,
) -> list[MemberAttendance]:
    stmt = (
        select(
            Employee.id,
            Employee.first_name,
            Employee.last_name,
            _status_count(AttendanceStatus.present).label("present"),
            _status_count(AttendanceStatus.late).label("late"),
            _status_count(AttendanceStatus.half_day).label("half_day"),
            func.coalesce(func.sum(AttendanceRecord.total_work_hours), 0).label("hours"),
            func.coalesce(func.sum(AttendanceRecord.overtime_hours), 0).label("overtime"),
        )
        .outerjoin(AttendanceRecord, and_(
            AttendanceRecord.employee_id == Employee.id,
            AttendanceRecord.date >= window.start_date,
            AttendanceRecord.date <= window.end_date,
        ))
        .where(Employee.id.in_(ids))
        .group_by(Employee.id, Employee.first_name, Employee.last_name)
        .order_by(Employee.first_name, Employee.last_name)
    )
    days = window.days()
    members = []
    for row in (await db.execute(stmt)).all():
        effective = row.present + row.late + row.half_day
        members.append(MemberAttendance(
            employee_id=row.id,
            employee_name=f"{row.first_name} {row.last_name}".strip(),
            present=row.present,
            late=row.late,
            half_day=row.half_day,
            absent=max(days - effective, 0),
            total_hours=round(_num(row.hours), 1),
            overtime_hours=round(_num(row.overtime), 1),
            attendance_rate=_rate(effective, days),
        ))
    return members


# ═════════════════════════════════════════════════════════════════════
# Leave
# ═════════════════════════════════════════════════════════════════════


async def _leave_status_counts(
    db: AsyncSession,
    ids: list[uuid.UUID],
    window: TimeWindow,
) -> dict[LeaveStatus, int]:
    stmt = (
        select(LeaveRequest.status, func.count(LeaveRequest.id).label("count"))
        .where(
            LeaveRequest.employee_id.in_(ids),
            LeaveRequest.created_at >= window.start,
            LeaveRequest.created_at <= window.end,
        )
        .group_by(LeaveRequest.status)
    )
    return {row.status: row.count for row in (await db.execute(stmt)).all()}


def _approval_rate(counts: Mapping[LeaveStatus, int]) -> float:
    return _rate(counts.get(LeaveStatus.approved, 0), sum(counts.values()))


async def leave_view(
    db: AsyncSession,
    scope: ScopeSet,
    window: TimeWindow,
) -> LeaveBundle:
    ids = list(scope.employee_ids)

    pending = (await db.execute(
        select(func.count(LeaveRequest.id)).where(
            LeaveRequest.employee_id.in_(ids),
            LeaveRequest.status == LeaveStatus.pending,
        ),
    )).scalar() or 0

    counts = await _leave_status_counts(db, ids, window)
    previous = await _leave_status_counts(db, ids, window.previous())
    total = sum(counts.values())
    approval_rate = _approval_rate(counts)

    # Day spans are summed here so the arithmetic is the same on every backend.
    spans = (await db.execute(
        select(LeaveRequest.leave_type, LeaveRequest.start_date, LeaveRequest.end_date).where(
            LeaveRequest.employee_id.in_(ids),
            LeaveRequest.created_at >= window.start,
            LeaveRequest.created_at <= window.end,
        ),
    )).all()
    total_days = sum((row.end_date - row.start_date).days + 1 for row in spans)
    by_type = Counter(row.leave_type.value for row in spans)

    year_col = extract("year", LeaveRequest.created_at)
    month_col = extract("month", LeaveRequest.created_at)
    trend_stmt = (
        select(
            year_col.label("year"),
            month_col.label("month"),
            LeaveRequest.status,
            func.count(LeaveRequest.id).label("count"),
        )
        .where(
            LeaveRequest.employee_id.in_(ids),
            LeaveRequest.created_at >= window.start,
            LeaveRequest.created_at <= window.end,
        )
        .group_by(year_col, month_col, LeaveRequest.status)
    )
    monthly: dict[tuple[int, int], dict[LeaveStatus, int]] = defaultdict(dict)
    for row in (await db.execute(trend_stmt)).all():
        monthly[(int(row.year), int(row.month))][row.status] = row.count

    trend = []
    for year, month in window.months():
        bucket = monthly.get((year, month), {})
        trend.append(LeaveTrendPoint(
            year=year,
            month=month,
            label=MONTH_LABELS[month - 1],
            total=sum(bucket.values()),
            approved=bucket.get(LeaveStatus.approved, 0),
            rejected=bucket.get(LeaveStatus.rejected, 0),
            pending=bucket.get(LeaveStatus.pending, 0),
            approval_rate=_approval_rate(bucket),
        ))

    budget = len(ids) * LEAVE_DAYS_PER_EMPLOYEE_MONTH * window.month_count()

    return LeaveBundle(
        pending=pending,
        approved=counts.get(LeaveStatus.approved, 0),
        rejected=counts.get(LeaveStatus.rejected, 0),
        cancelled=counts.get(LeaveStatus.cancelled, 0),
        total=total,
        approval_rate=approval_rate,
        approval_rate_change=round(approval_rate - _approval_rate(previous), 1),
        total_days=total_days,
        utilization_rate=_rate(total_days, budget),
        by_type=dict(by_type),
        trend=trend,
    )


# ═════════════════════════════════════════════════════════════════════
# Growth
# ═════════════════════════════════════════════════════════════════════


async def _joinings(db: AsyncSession, ids: list[uuid.UUID], start: date, end: date) -> int:
    stmt = select(func.count(Employee.id)).where(
        Employee.id.in_(ids),
        Employee.date_of_joining >= start,
        Employee.date_of_joining <= end,
    )
    return (await db.execute(stmt)).scalar() or 0


async def growth_view(
    db: AsyncSession,
    scope: ScopeSet,
    window: TimeWindow,
) -> GrowthBundle:
    ids = list(scope.all_ids)
    today = window.end_date
    month_start = today.replace(day=1)
    prior = shift_months(window.end, -1)
    prior_start, prior_end = month_bounds(prior.year, prior.month)
    year_start = date(today.year, 1, 1)

    joined_this_month = await _joinings(db, ids, month_start, today)
    joined_last_month = await _joinings(db, ids, prior_start, prior_end)
    joined_this_year = await _joinings(db, ids, year_start, today)
    joined_last_year = await _joinings(
        db, ids, date(today.year - 1, 1, 1), date(today.year - 1, 12, 31),
    )

    joined = (await db.execute(
        select(Employee.date_of_joining).where(
            Employee.id.in_(ids),
            Employee.date_of_joining >= window.start_date,
            Employee.date_of_joining <= window.end_date,
        ),
    )).scalars().all()

    if window.granularity == Granularity.day:
        per_day = Counter(joined)
        trend = [
            JoiningTrendPoint(period=day.isoformat(), label=day.strftime("%d %b"), count=per_day.get(day, 0))
            for day in window.dates()
        ]
    else:
        per_month = Counter((day.year, day.month) for day in joined)
        trend = [
            JoiningTrendPoint(
                period=_month_key(year, month),
                label=_month_label(year, month),
                count=per_month.get((year, month), 0),
            )
            for year, month in window.months()
        ]

    return GrowthBundle(
        total_employees=len(ids),
        active_employees=len(scope.employee_ids),
        joined_this_month=joined_this_month,
        joined_last_month=joined_last_month,
        monthly_change=growth_pct(joined_last_month, joined_this_month),
        joined_this_year=joined_this_year,
        joined_last_year=joined_last_year,
        growth_percentage=growth_pct(joined_last_year, joined_this_year),
        joined_in_window=len(joined),
        trend=trend,
    )


# ═════════════════════════════════════════════════════════════════════
# Payroll
# ═════════════════════════════════════════════════════════════════════


def _salary_distribution(salaries: list[float]) -> list[SalaryBucket]:
    bounds = list(zip(SALARY_BUCKET_BOUNDARIES, SALARY_BUCKET_BOUNDARIES[1:]))
    counts = [0] * len(bounds)
    other = 0
    for salary in salaries:
        for index, (low, high) in enumerate(bounds):
            if low <= salary < high:
                counts[index] += 1
                break
        else:
            other += 1

    buckets = [
        SalaryBucket(range=_salary_bucket_label(low, high), minimum=low, maximum=high, count=count)
        for (low, high), count in zip(bounds, counts)
    ]
    buckets.append(SalaryBucket(range="other", count=other))
    return buckets


async def payroll_view(
    db: AsyncSession,
    scope: ScopeSet,
    window: TimeWindow,
) -> PayrollBundle:
    ids = list(scope.employee_ids)
    period = Payroll.year * 100 + Payroll.month
    in_window = (
        Payroll.employee_id.in_(ids),
        period >= window.start.year * 100 + window.start.month,
        period <= window.end.year * 100 + window.end.month,
    )

    by_status_rows = (await db.execute(
        select(
            Payroll.status,
            func.count(Payroll.id).label("count"),
            func.coalesce(func.sum(Payroll.net_salary), 0).label("net"),
            func.coalesce(func.sum(Payroll.gross_salary), 0).label("gross"),
        )
        .where(*in_window)
        .group_by(Payroll.status),
    )).all()

    records = sum(row.count for row in by_status_rows)
    total_net = sum(_num(row.net) for row in by_status_rows)
    total_gross = sum(_num(row.gross) for row in by_status_rows)
    by_status = {
        row.status.value: PayrollStatusTotal(count=row.count, total=round(_num(row.net), 2))
        for row in by_status_rows
    }

    salaries = [
        _num(value)
        for value in (await db.execute(
            select(Employee.salary).where(
                Employee.id.in_(ids),
                Employee.is_active.is_(True),
            ),
        )).scalars().all()
    ]

    salary = SalaryStats()
    if salaries:
        salary = SalaryStats(
            employees=len(salaries),
            total=round(sum(salaries), 2),
            average=round(sum(salaries) / len(salaries), 2),
            minimum=min(salaries),
            maximum=max(salaries),
        )

    return PayrollBundle(
        records=records,
        total_net=round(total_net, 2),
        total_gross=round(total_gross, 2),
        average_net=round(total_net / records, 2) if records else 0.0,
        by_status=by_status,
        salary=salary,
        distribution=_salary_distribution(salaries),
    )


# ═════════════════════════════════════════════════════════════════════
# Assets
# ═════════════════════════════════════════════════════════════════════


async def assets_view(
    db: AsyncSession,
    scope: ScopeSet,
    window: TimeWindow,
) -> AssetBundle:
    ids = list(scope.employee_ids)
    # Each held asset counts once, even with duplicate active assignment rows.
    held = Asset.id.in_(
        select(AssetAssignment.asset_id).where(
            AssetAssignment.is_active.is_(True),
            AssetAssignment.employee_id.in_(ids),
        ),
    )

    totals = (await db.execute(
        select(
            func.count(Asset.id).label("assigned"),
            func.coalesce(func.sum(Asset.purchase_price), 0).label("value"),
            func.avg(Asset.purchase_price).label("avg_price"),
        ).where(held),
    )).one()

    by_category = {
        row.category: row.count
        for row in (await db.execute(
            select(Asset.category, func.count(distinct(Asset.id)).label("count"))
            .where(held)
            .group_by(Asset.category),
        )).all()
    }
    by_status = {
        row.status.value: row.count
        for row in (await db.execute(
            select(Asset.status, func.count(distinct(Asset.id)).label("count"))
            .where(held)
            .group_by(Asset.status),
        )).all()
    }

    top_stmt = (
        select(
            Employee.id,
            Employee.first_name,
            Employee.last_name,
            func.count(AssetAssignment.id).label("count"),
        )
        .join(AssetAssignment, AssetAssignment.employee_id == Employee.id)
        .where(AssetAssignment.is_active.is_(True), Employee.id.in_(ids))
        .group_by(Employee.id, Employee.first_name, Employee.last_name)
        .order_by(func.count(AssetAssignment.id).desc(), Employee.first_name)
        .limit(TOP_ASSIGNEES_LIMIT)
    )
    top_assignees = [
        AssigneeCount(
            employee_id=row.id,
            employee_name=f"{row.first_name} {row.last_name}".strip(),
            count=row.count,
        )
        for row in (await db.execute(top_stmt)).all()
    ]

    # Pool count is organisation-wide and carries no employee identifiers.
    any_active = exists().where(
        AssetAssignment.asset_id == Asset.id,
        AssetAssignment.is_active.is_(True),
    )
    pool = (await db.execute(
        select(func.count(Asset.id)).where(
            Asset.status == AssetStatus.available,
            ~any_active,
        ),
    )).scalar() or 0

    pending_requests = (await db.execute(
        select(func.count(AssetRequest.id)).where(
            AssetRequest.requested_by_id.in_(ids),
            AssetRequest.status == AssetRequestStatus.pending,
        ),
    )).scalar() or 0

    assigned = totals.assigned or 0
    return AssetBundle(
        assigned=assigned,
        pool=pool,
        utilization_rate=_rate(assigned, assigned + pool),
        pending_requests=pending_requests,
        total_value=round(_num(totals.value), 2),
        average_price=round(_num(totals.avg_price), 2),
        by_category=by_category,
        by_status=by_status,
        top_assignees=top_assignees,
    )


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════

UNASSIGNED_DEPARTMENT = "Unassigned"


async def department_view(
    db: AsyncSession,
    scope: ScopeSet,
    window: TimeWindow,
    *,
    include_roster: bool = False,
) -> DepartmentBundle:
    ids = list(scope.employee_ids)
    Manager = aliased(Employee, flat=True)

    stmt = (
        select(
            Employee.id,
            Employee.employee_code,
            Employee.first_name,
            Employee.last_name,
            Employee.role,
            Employee.salary,
            Employee.date_of_joining,
            Department.name.label("department"),
            Designation.title.label("designation"),
            Manager.first_name.label("manager_first_name"),
            Manager.last_name.label("manager_last_name"),
        )
        .outerjoin(Department, Employee.department_id == Department.id)
        .outerjoin(Designation, Employee.designation_id == Designation.id)
        .outerjoin(Manager, Employee.manager_id == Manager.id)
        .where(Employee.id.in_(ids), Employee.is_active.is_(True))
        .order_by(Employee.first_name, Employee.last_name)
    )
    members = (await db.execute(stmt)).all()

    presence_stmt = (
        select(AttendanceRecord.employee_id, func.count(AttendanceRecord.id).label("days"))
        .where(
            AttendanceRecord.employee_id.in_(ids),
            AttendanceRecord.date >= window.start_date,
            AttendanceRecord.date <= window.end_date,
            AttendanceRecord.status.in_(list(EFFECTIVE_PRESENCE)),
        )
        .group_by(AttendanceRecord.employee_id)
    )
    presence = {row.employee_id: row.days for row in (await db.execute(presence_stmt)).all()}

    grouped: dict[str, list[Any]] = defaultdict(list)
    for member in members:
        grouped[member.department or UNASSIGNED_DEPARTMENT].append(member)

    days = window.days()
    departments = []
    for name in sorted(grouped):
        rows = grouped[name]
        salaries = [_num(row.salary) for row in rows]
        present_days = sum(presence.get(row.id, 0) for row in rows)
        departments.append(DepartmentStat(
            name=name,
            count=len(rows),
            avg_salary=round(sum(salaries) / len(rows), 2),
            total_salary=round(sum(salaries), 2),
            attendance_rate=_rate(present_days, len(rows) * days),
        ))

    roster: list[RosterEntry] = []
    if include_roster:
        for row in members:
            manager_name = (
                f"{row.manager_first_name} {row.manager_last_name}".strip()
                if row.manager_first_name
                else None
            )
            roster.append(RosterEntry(
                employee_id=row.id,
                employee_code=row.employee_code,
                name=f"{row.first_name} {row.last_name}".strip(),
                department=row.department,
                designation=row.designation,
                role=row.role.value,
                manager_name=manager_name,
                date_of_joining=row.date_of_joining,
            ))

    return DepartmentBundle(
        total=len(scope.all_ids),
        active=len(members),
        inactive=len(scope.inactive_ids),
        departments=departments,
        by_designation=dict(Counter(row.designation or UNASSIGNED_DEPARTMENT for row in members)),
        by_role=dict(Counter(row.role.value for row in members)),
        roster=roster,
    )


# ═════════════════════════════════════════════════════════════════════
# Engine
# ═════════════════════════════════════════════════════════════════════

ViewFunction = Callable[..., Awaitable[StatisticBundle]]

DEFAULT_VIEWS: dict[View, ViewFunction] = {
    View.attendance: attendance_view,
    View.leave: leave_view,
    View.growth: growth_view,
    View.payroll: payroll_view,
    View.assets: assets_view,
    View.department: department_view,
}

EMPTY_BUNDLES: dict[View, type] = {
    View.attendance: AttendanceBundle,
    View.leave: LeaveBundle,
    View.growth: GrowthBundle,
    View.payroll: PayrollBundle,
    View.assets: AssetBundle,
    View.department: DepartmentBundle,
}


@dataclass(frozen=True)
class BundleRequest:
    """One unit of fan-out work, joined back by ``key``."""

    key: str
    view: View
    scope: ScopeSet
    window: TimeWindow
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class GatherResult:
    bundles: dict[str, Any] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)

    def get(self, key: str, default: Any = None) -> Any:
        return self.bundles.get(key, default)


class AggregationEngine:
    """Compute statistic bundles, alone or as a bounded concurrent fan-out."""

    def __init__(
        self,
        views: Optional[Mapping[View, ViewFunction]] = None,
        observer: DashboardObserver = default_observer,
        max_concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.views = dict(DEFAULT_VIEWS if views is None else views)
        self.observer = observer
        self.max_concurrency = max_concurrency or settings.AGGREGATION_MAX_CONCURRENCY
        self.timeout = timeout if timeout is not None else settings.AGGREGATION_TIMEOUT_SECONDS

    async def aggregate(
        self,
        db: AsyncSession,
        view: View,
        scope: ScopeSet,
        window: TimeWindow,
        **options: Any,
    ) -> StatisticBundle:
        """Return the bundle for ``view``; an empty scope never touches the store."""
        if scope.is_empty:
            return EMPTY_BUNDLES[view]()
        return await self.views[view](db, scope, window, **options)

    async def gather(
        self,
        db_factory: async_sessionmaker,
        requests: list[BundleRequest],
        extras: Optional[Mapping[str, Callable[[AsyncSession], Awaitable[Any]]]] = None,
    ) -> GatherResult:
        """Run every request (and extra loader) on its own session.

        A view that fails with a database error is reported in ``missing``;
        if every view fails, or the deadline passes, UpstreamQueryError is
        raised. Any other exception propagates after the remaining views
        are cancelled.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _run(key: str, label: str, load: Callable[[AsyncSession], Awaitable[Any]]):
            async with semaphore:
                started = time.perf_counter()
                try:
                    async with db_factory() as session:
                        result = await load(session)
                except SQLAlchemyError as exc:
                    self.observer.bundle_failed(key, label, exc)
                    return key, None, False
                self.observer.bundle_computed(key, label, (time.perf_counter() - started) * 1000)
                return key, result, True

        def _loader(request: BundleRequest):
            return lambda session: self.aggregate(
                session, request.view, request.scope, request.window, **request.options,
            )

        jobs = [_run(req.key, req.view.value, _loader(req)) for req in requests]
        for key, load in (extras or {}).items():
            jobs.append(_run(key, key, load))
        tasks = [asyncio.ensure_future(job) for job in jobs]

        try:
            outcomes = await asyncio.wait_for(asyncio.gather(*tasks), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Aggregation exceeded %.1fs deadline", self.timeout)
            raise UpstreamQueryError("Dashboard aggregation timed out.")
        finally:
            # Any failure abandons the siblings; wait for them so their sessions close.
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        result = GatherResult()
        for key, value, ok in outcomes:
            if ok:
                result.bundles[key] = value
            else:
                result.missing.append(key)

        request_keys = {req.key for req in requests}
        if request_keys and request_keys.issubset(result.missing):
            raise UpstreamQueryError()
        return result

