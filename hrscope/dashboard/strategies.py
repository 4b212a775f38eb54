"""Per-role dashboard strategies.

A strategy decides which bundles a role's dashboard needs and which alert
thresholds apply. Adding a role means adding a subclass here and an entry
in ``_STRATEGIES``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterator, Optional

from hrscope.analytics.engine import BundleRequest
from hrscope.analytics.windows import TimeWindow, build_window, resolve_period
from hrscope.common.constants import UserRole, View
from hrscope.common.exceptions import ForbiddenException, InvalidRoleError
from hrscope.config import settings
from hrscope.dashboard.alerts import (
    ORG_THRESHOLDS,
    SELF_THRESHOLDS,
    TEAM_THRESHOLDS,
    AlertThresholds,
)
from hrscope.scope.resolver import ScopeSet

VIEW_SETS = ("stats", "analytics", "summary")


@dataclass(frozen=True)
class BundlePlan:
    """Bundle requests for one endpoint.

    ``window`` is the single period every request shares, or ``None`` when
    the requests mix windows (stats, summary).
    """

    requests: list[BundleRequest]
    window: Optional[TimeWindow] = None

    def __iter__(self) -> Iterator[BundleRequest]:
        return iter(self.requests)


def period_window(
    now: datetime,
    period: Optional[str] = None,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> TimeWindow:
    return resolve_period(
        period, now, default=settings.DEFAULT_PERIOD, start=start, end=end,
    )


class DashboardStrategy:
    role: UserRole
    thresholds: AlertThresholds = SELF_THRESHOLDS
    report_views: frozenset[View] = frozenset()

    def build_bundle_requests(
        self,
        scope: ScopeSet,
        now: datetime,
        view_set: str,
        period: Optional[str] = None,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> BundlePlan:
        if view_set == "stats":
            return BundlePlan(self.stats_requests(scope, now))
        if view_set == "analytics":
            window = period_window(now, period, start=start, end=end)
            return BundlePlan(self.analytics_requests(scope, window), window)
        if view_set == "summary":
            return BundlePlan(self.summary_requests(scope, now))
        raise ValueError(f"Unknown view set '{view_set}'. Expected one of {VIEW_SETS}.")

    def build_report_request(
        self,
        scope: ScopeSet,
        now: datetime,
        view: View,
        period: Optional[str] = None,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        year: Optional[int] = None,
    ) -> BundlePlan:
        """One bundle for a single report view.

        ``year`` only applies to payroll and overrides ``period`` with the
        whole calendar year, capped at ``now``.
        """
        if view not in self.report_views:
            raise ForbiddenException(detail=f"The {view.value} report is not available for this role.")
        if view == View.payroll and year is not None:
            window = resolve_period(
                "custom", now, start=date(year, 1, 1), end=date(year, 12, 31),
            )
        else:
            window = period_window(now, period, start=start, end=end)
        return BundlePlan([self.report_request(scope, view, window)], window)

    def stats_requests(self, scope: ScopeSet, now: datetime) -> list[BundleRequest]:
        raise NotImplementedError

    def analytics_requests(self, scope: ScopeSet, window: TimeWindow) -> list[BundleRequest]:
        raise ForbiddenException(detail="Analytics are not available for this role.")

    def summary_requests(self, scope: ScopeSet, now: datetime) -> list[BundleRequest]:
        raise ForbiddenException(detail="The HR summary is not available for this role.")

    def report_request(self, scope: ScopeSet, view: View, window: TimeWindow) -> BundleRequest:
        return _request(view.value, view, scope, window)


def _request(key: str, view: View, scope: ScopeSet, window: TimeWindow, **options) -> BundleRequest:
    return BundleRequest(key=key, view=view, scope=scope, window=window, options=options)


class AdminStrategy(DashboardStrategy):
    role = UserRole.admin
    thresholds = ORG_THRESHOLDS
    report_views = frozenset(View)

    def stats_requests(self, scope: ScopeSet, now: datetime) -> list[BundleRequest]:
        today = build_window("today", now)
        week = build_window("week", now)
        month = build_window("month", now)
        return [
            _request("attendance_today", View.attendance, scope, today),
            _request("attendance_week", View.attendance, scope, week),
            _request("attendance_month", View.attendance, scope, month),
            _request("leave", View.leave, scope, month),
            _request("assets", View.assets, scope, month),
            _request("payroll", View.payroll, scope, month),
            _request("department", View.department, scope, month),
            _request("growth", View.growth, scope, month),
        ]

    def analytics_requests(self, scope: ScopeSet, window: TimeWindow) -> list[BundleRequest]:
        return [
            _request("attendance", View.attendance, scope, window),
            _request("leave", View.leave, scope, window),
            _request("growth", View.growth, scope, window),
            _request("payroll", View.payroll, scope, window),
            _request("department", View.department, scope, window),
        ]

    def summary_requests(self, scope: ScopeSet, now: datetime) -> list[BundleRequest]:
        today = build_window("today", now)
        month = build_window("month", now)
        return [
            _request("attendance_today", View.attendance, scope, today),
            _request("leave", View.leave, scope, month),
            _request("assets", View.assets, scope, month),
            _request("growth", View.growth, scope, month),
            _request("payroll", View.payroll, scope, month),
            _request("department", View.department, scope, month),
        ]


class HRManagerStrategy(AdminStrategy):
    """Same dashboard as admin; the difference is the scope it is handed."""

    role = UserRole.hr_manager


class TeamLeaderStrategy(DashboardStrategy):
    role = UserRole.team_leader
    thresholds = TEAM_THRESHOLDS
    report_views = frozenset({
        View.attendance, View.leave, View.growth, View.payroll, View.department,
    })

    def stats_requests(self, scope: ScopeSet, now: datetime) -> list[BundleRequest]:
        month = build_window("month", now)
        return [
            _request("attendance_today", View.attendance, scope, build_window("today", now)),
            _request("attendance_week", View.attendance, scope, build_window("week", now)),
            _request("attendance_month", View.attendance, scope, month, per_member=True),
            _request("leave", View.leave, scope, month),
            _request("payroll", View.payroll, scope, month),
            _request("department", View.department, scope, month, include_roster=True),
        ]

    def analytics_requests(self, scope: ScopeSet, window: TimeWindow) -> list[BundleRequest]:
        return [
            _request("attendance", View.attendance, scope, window, per_member=True),
            _request("leave", View.leave, scope, window),
            _request("growth", View.growth, scope, window),
            _request("department", View.department, scope, window),
        ]

    def report_request(self, scope: ScopeSet, view: View, window: TimeWindow) -> BundleRequest:
        if view == View.attendance:
            return _request(view.value, view, scope, window, per_member=True)
        if view == View.department:
            return _request(view.value, view, scope, window, include_roster=True)
        return super().report_request(scope, view, window)


class EmployeeStrategy(DashboardStrategy):
    role = UserRole.employee
    thresholds = SELF_THRESHOLDS

    def stats_requests(self, scope: ScopeSet, now: datetime) -> list[BundleRequest]:
        month = build_window("month", now)
        year = build_window("year", now)
        return [
            _request("attendance_today", View.attendance, scope, build_window("today", now)),
            _request("attendance_month", View.attendance, scope, month),
            _request("attendance_year", View.attendance, scope, year),
            _request("leave_year", View.leave, scope, year),
            _request("profile", View.department, scope, month, include_roster=True),
        ]


_STRATEGIES: dict[UserRole, DashboardStrategy] = {
    UserRole.admin: AdminStrategy(),
    UserRole.hr_manager: HRManagerStrategy(),
    UserRole.team_leader: TeamLeaderStrategy(),
    UserRole.employee: EmployeeStrategy(),
}


def strategy_for(role: object) -> DashboardStrategy:
    try:
        return _STRATEGIES[UserRole(role)]
    except ValueError:
        raise InvalidRoleError(role)
