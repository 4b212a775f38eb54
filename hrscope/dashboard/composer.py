"""Shape statistic bundles into role dashboards.

Everything here is pure: bundles in, response out, no queries. A bundle
that failed to load is simply absent from ``bundles``; its section is left
empty and the key is reported in ``missing_views``.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from hrscope.analytics.bundles import (
    AttendanceBundle,
    DepartmentBundle,
    GrowthBundle,
    LeaveBundle,
    MemberAttendance,
    PayrollBundle,
)
from hrscope.analytics.windows import TimeWindow
from hrscope.common.constants import ANNUAL_LEAVE_ALLOWANCE, STANDARD_WORK_HOURS, UserRole, View
from hrscope.dashboard.alerts import generate_alerts
from hrscope.dashboard.schemas import DashboardResponse, RecentActivity
from hrscope.dashboard.strategies import strategy_for

_TREND_EXCLUDE = {"trend", "by_employee"}


def productivity_score(attendance_ratio: float, avg_hours: float, overtime_hours: float) -> int:
    """Attendance is worth 40, hours 30, overtime 20 (30 when none), plus a flat 10."""
    attendance_points = attendance_ratio * 40
    hours_points = avg_hours / STANDARD_WORK_HOURS * 30
    overtime_points = 20 if overtime_hours > 0 else 30
    return round(attendance_points + hours_points + overtime_points + 10)


def _summary(bundle: Optional[AttendanceBundle]) -> Optional[dict[str, Any]]:
    return bundle.model_dump(exclude=_TREND_EXCLUDE) if bundle is not None else None


def _dump(bundle: Any, **kwargs: Any) -> Optional[dict[str, Any]]:
    return bundle.model_dump(**kwargs) if bundle is not None else None


def _window_fields(window: TimeWindow) -> dict[str, Any]:
    return {
        "period": window.period,
        "start": window.start.isoformat(),
        "end": window.end.isoformat(),
        "granularity": window.granularity.value,
    }


def _today_status(bundle: Optional[AttendanceBundle]) -> str:
    if bundle is None:
        return "unknown"
    for status in ("present", "late", "half_day", "on_leave"):
        if getattr(bundle, status):
            return status
    return "absent"


def _member_performance(members: list[MemberAttendance]) -> list[dict[str, Any]]:
    rows = []
    for member in members:
        worked_days = member.present + member.late + member.half_day
        avg_hours = member.total_hours / worked_days if worked_days else 0.0
        row = member.model_dump()
        row["productivity_score"] = productivity_score(
            member.attendance_rate / 100, avg_hours, member.overtime_hours,
        )
        rows.append(row)
    return rows


# ═════════════════════════════════════════════════════════════════════
# GET /stats
# ═════════════════════════════════════════════════════════════════════


def compose(
    role: UserRole,
    bundles: Mapping[str, Any],
    recent_activity: Optional[RecentActivity] = None,
    missing_views: Optional[list[str]] = None,
) -> DashboardResponse:
    """Build the role-shaped dashboard from already computed bundles."""
    strategy = strategy_for(role)
    missing = sorted(missing_views or [])

    if strategy.role == UserRole.employee:
        return _compose_employee(bundles, recent_activity, missing)
    if strategy.role == UserRole.team_leader:
        return _compose_team(bundles, recent_activity, missing)
    return _compose_org(strategy.role, bundles, recent_activity, missing)


def _compose_org(
    role: UserRole,
    bundles: Mapping[str, Any],
    recent_activity: Optional[RecentActivity],
    missing: list[str],
) -> DashboardResponse:
    today: Optional[AttendanceBundle] = bundles.get("attendance_today")
    week: Optional[AttendanceBundle] = bundles.get("attendance_week")
    month: Optional[AttendanceBundle] = bundles.get("attendance_month")
    leave: Optional[LeaveBundle] = bundles.get("leave")
    assets = bundles.get("assets")
    payroll: Optional[PayrollBundle] = bundles.get("payroll")
    department: Optional[DepartmentBundle] = bundles.get("department")
    growth: Optional[GrowthBundle] = bundles.get("growth")

    total = department.total if department else (growth.total_employees if growth else 0)
    inactive = department.inactive if department else 0

    overview: dict[str, Any] = {
        "total_employees": total,
        "active_employees": department.active if department else None,
        "inactive_employees": inactive,
        "total_departments": len(department.departments) if department else None,
        "present_today": today.present + today.late + today.half_day if today else None,
        "absent_today": today.absent if today else None,
        "on_leave_today": today.on_leave if today else None,
        "pending_leaves": leave.pending if leave else None,
        "joined_this_month": growth.joined_this_month if growth else None,
        "monthly_growth": growth.monthly_change if growth else None,
        "growth_percentage": growth.growth_percentage if growth else None,
    }

    performance = None
    if today is not None or month is not None:
        performance = {
            "productivity_score": productivity_score(
                (today.attendance_rate / 100) if today else 0.0,
                month.avg_hours_worked if month else 0.0,
                month.overtime_hours if month else 0.0,
            ),
            "avg_hours_worked": month.avg_hours_worked if month else 0.0,
            "overtime_hours": month.overtime_hours if month else 0.0,
            "employees_with_overtime": month.employees_with_overtime if month else 0,
        }

    workforce = None
    if department is not None:
        workforce = {
            "total": department.total,
            "active": department.active,
            "inactive": department.inactive,
            "by_role": department.by_role,
            "by_designation": department.by_designation,
        }

    alerts = generate_alerts(
        strategy_for(role).thresholds,
        attendance_today=today,
        pending_leaves=leave.pending if leave else 0,
        inactive=inactive,
        total_employees=total,
        pending_asset_requests=assets.pending_requests if assets else 0,
    )

    return DashboardResponse(
        role=role.value,
        overview=overview,
        attendance={
            "today": _summary(today),
            "week": _summary(week),
            "month": _summary(month),
            "trend": [point.model_dump() for point in week.trend] if week else [],
        },
        leaves=_dump(leave),
        assets=_dump(assets),
        payroll=_dump(payroll),
        departments=[stat.model_dump() for stat in department.departments] if department else None,
        workforce=workforce,
        performance=performance,
        recent_activity=recent_activity,
        alerts=alerts,
        missing_views=missing,
    )


def _compose_team(
    bundles: Mapping[str, Any],
    recent_activity: Optional[RecentActivity],
    missing: list[str],
) -> DashboardResponse:
    today: Optional[AttendanceBundle] = bundles.get("attendance_today")
    week: Optional[AttendanceBundle] = bundles.get("attendance_week")
    month: Optional[AttendanceBundle] = bundles.get("attendance_month")
    leave: Optional[LeaveBundle] = bundles.get("leave")
    payroll: Optional[PayrollBundle] = bundles.get("payroll")
    department: Optional[DepartmentBundle] = bundles.get("department")

    # The leader is always in scope, so the team is never smaller than one.
    team_size = max(
        today.total_employees if today else (department.active if department else 0),
        1,
    )

    overview = {
        "team_size": team_size,
        "present_today": today.present + today.late + today.half_day if today else None,
        "absent_today": today.absent if today else None,
        "late_today": today.late if today else None,
        "pending_leaves": leave.pending if leave else None,
        "month_attendance_rate": month.attendance_rate if month else None,
    }

    alerts = generate_alerts(
        strategy_for(UserRole.team_leader).thresholds,
        attendance_today=today,
        pending_leaves=leave.pending if leave else 0,
        team_size=team_size,
    )

    return DashboardResponse(
        role=UserRole.team_leader.value,
        overview=overview,
        attendance={
            "today": _summary(today),
            "week": _summary(week),
            "month": _summary(month),
            "trend": [point.model_dump() for point in week.trend] if week else [],
        },
        leaves=_dump(leave),
        payroll={"salary": payroll.salary.model_dump()} if payroll else None,
        team_members=[entry.model_dump() for entry in department.roster] if department else None,
        member_performance=_member_performance(month.by_employee) if month else None,
        recent_activity=recent_activity,
        alerts=alerts,
        missing_views=missing,
    )


def _compose_employee(
    bundles: Mapping[str, Any],
    recent_activity: Optional[RecentActivity],
    missing: list[str],
) -> DashboardResponse:
    today: Optional[AttendanceBundle] = bundles.get("attendance_today")
    month: Optional[AttendanceBundle] = bundles.get("attendance_month")
    year: Optional[AttendanceBundle] = bundles.get("attendance_year")
    leave: Optional[LeaveBundle] = bundles.get("leave_year")
    profile: Optional[DepartmentBundle] = bundles.get("profile")

    overview: dict[str, Any] = {}
    if profile is not None and profile.roster:
        overview = profile.roster[0].model_dump()

    attendance = {
        "today": {
            "status": _today_status(today),
            "work_hours": today.total_hours if today else 0.0,
        },
        "month": _summary(month),
        "year": _summary(year),
        "trend": [point.model_dump() for point in month.trend] if month else [],
    }

    leaves = None
    if leave is not None:
        leaves = {
            "pending": leave.pending,
            "approved_this_year": leave.approved,
            "remaining": max(0, ANNUAL_LEAVE_ALLOWANCE - leave.approved),
            "by_type": leave.by_type,
        }

    # Employees only see announcements in their activity feed.
    if recent_activity is not None:
        recent_activity = RecentActivity(recent_announcements=recent_activity.recent_announcements)

    return DashboardResponse(
        role=UserRole.employee.value,
        overview=overview,
        attendance=attendance,
        leaves=leaves,
        recent_activity=recent_activity,
        alerts=generate_alerts(strategy_for(UserRole.employee).thresholds, attendance_today=today),
        missing_views=missing,
    )


# ═════════════════════════════════════════════════════════════════════
# GET /analytics
# ═════════════════════════════════════════════════════════════════════


def compose_analytics(
    role: UserRole,
    window: TimeWindow,
    bundles: Mapping[str, Any],
    missing_views: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Period analytics: summaries plus trends over one window."""
    attendance: Optional[AttendanceBundle] = bundles.get("attendance")
    leave: Optional[LeaveBundle] = bundles.get("leave")
    growth: Optional[GrowthBundle] = bundles.get("growth")
    department: Optional[DepartmentBundle] = bundles.get("department")

    analytics: dict[str, Any] = {
        **_window_fields(window),
        "attendance": None,
        "leaves": _dump(leave),
        "growth": _dump(growth),
        "departments": [stat.model_dump() for stat in department.departments] if department else None,
        "missing_views": sorted(missing_views or []),
    }
    if attendance is not None:
        analytics["attendance"] = {
            "summary": _summary(attendance),
            "trend": [point.model_dump() for point in attendance.trend],
        }
        if strategy_for(role).role == UserRole.team_leader:
            analytics["member_performance"] = _member_performance(attendance.by_employee)
    if "payroll" in bundles:
        analytics["payroll"] = _dump(bundles["payroll"])
    return analytics


# ═════════════════════════════════════════════════════════════════════
# GET /reports/{view}
# ═════════════════════════════════════════════════════════════════════


def compose_report(
    view: View,
    window: TimeWindow,
    bundles: Mapping[str, Any],
    missing_views: Optional[list[str]] = None,
) -> dict[str, Any]:
    """One view's bundle over one window, unabridged."""
    return {
        "view": view.value,
        **_window_fields(window),
        "report": _dump(bundles.get(view.value)),
        "missing_views": sorted(missing_views or []),
    }


# ═════════════════════════════════════════════════════════════════════
# GET /summary
# ═════════════════════════════════════════════════════════════════════


def compose_summary(
    role: UserRole,
    bundles: Mapping[str, Any],
    missing_views: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Compact HR summary: headline counts plus alerts."""
    today: Optional[AttendanceBundle] = bundles.get("attendance_today")
    leave: Optional[LeaveBundle] = bundles.get("leave")
    assets = bundles.get("assets")
    growth: Optional[GrowthBundle] = bundles.get("growth")
    payroll: Optional[PayrollBundle] = bundles.get("payroll")
    department: Optional[DepartmentBundle] = bundles.get("department")

    total = department.total if department else 0
    inactive = department.inactive if department else 0
    pending_assets = assets.pending_requests if assets else 0
    pending_leaves = leave.pending if leave else 0

    return {
        "total_employees": total,
        "active_employees": department.active if department else 0,
        "inactive_employees": inactive,
        "present_today": today.present + today.late + today.half_day if today else 0,
        "absent_today": today.absent if today else 0,
        "on_leave_today": today.on_leave if today else 0,
        "attendance_rate_today": today.attendance_rate if today else 0.0,
        "pending_leaves": pending_leaves,
        "leave_approval_rate": leave.approval_rate if leave else 0.0,
        "pending_asset_requests": pending_assets,
        "joined_this_month": growth.joined_this_month if growth else 0,
        "monthly_growth": growth.monthly_change if growth else 0.0,
        "payroll_this_month": payroll.total_net if payroll else 0.0,
        "departments": [stat.model_dump() for stat in department.departments] if department else [],
        "alerts": [
            alert.model_dump()
            for alert in generate_alerts(
                strategy_for(role).thresholds,
                attendance_today=today,
                pending_leaves=pending_leaves,
                inactive=inactive,
                total_employees=total,
                pending_asset_requests=pending_assets,
            )
        ],
        "missing_views": sorted(missing_views or []),
    }
