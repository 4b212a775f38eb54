"""Dashboard service: request orchestration for every dashboard endpoint.

Each call resolves the actor's scope, builds its windows (both fail fast,
before any aggregation runs), fans the bundle requests out through the
aggregation engine and hands the results to the composer.

All methods are static async, following the project convention.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from hrscope.analytics.engine import AggregationEngine, BundleRequest, GatherResult
from hrscope.assets.schemas import AssetRequestStats
from hrscope.assets.service import AssetRequestService
from hrscope.common.constants import View
from hrscope.common.exceptions import NotFoundException
from hrscope.common.observability import DashboardObserver, default_observer
from hrscope.config import settings
from hrscope.core_hr.models import Department, Employee
from hrscope.dashboard.composer import (
    compose,
    compose_analytics,
    compose_report,
    compose_summary,
)
from hrscope.dashboard.schemas import (
    DashboardResponse,
    RecentActivity,
    RecentJoiner,
    RecentLeave,
)
from hrscope.dashboard.strategies import period_window, strategy_for
from hrscope.leave.models import LeaveRequest
from hrscope.notices.service import NoticeService
from hrscope.scope.resolver import Actor, ScopeResolver, ScopeSet, VisibilityScope

RECENT_ACTIVITY_KEY = "recent_activity"


async def load_recent_activity(
    db: AsyncSession,
    scope: ScopeSet,
    visibility: VisibilityScope,
    limit: int,
) -> RecentActivity:
    """Recent joiners and leave requests inside the scope, plus visible announcements."""
    ids = list(scope.employee_ids)

    joiner_rows = (await db.execute(
        select(
            Employee.id,
            Employee.employee_code,
            Employee.first_name,
            Employee.last_name,
            Employee.date_of_joining,
            Department.name.label("department"),
        )
        .outerjoin(Department, Employee.department_id == Department.id)
        .where(Employee.id.in_(ids))
        .order_by(Employee.date_of_joining.desc(), Employee.first_name)
        .limit(limit),
    )).all()

    Requester = aliased(Employee, flat=True)
    leave_rows = (await db.execute(
        select(LeaveRequest, Requester.first_name, Requester.last_name)
        .join(Requester, LeaveRequest.employee_id == Requester.id)
        .where(LeaveRequest.employee_id.in_(ids))
        .order_by(LeaveRequest.created_at.desc())
        .limit(limit),
    )).all()

    return RecentActivity(
        recent_joiners=[
            RecentJoiner(
                employee_id=row.id,
                employee_code=row.employee_code,
                name=f"{row.first_name} {row.last_name}".strip(),
                department=row.department,
                date_of_joining=row.date_of_joining,
            )
            for row in joiner_rows
        ],
        recent_leaves=[
            RecentLeave(
                leave_id=leave.id,
                employee_id=leave.employee_id,
                employee_name=f"{first} {last}".strip(),
                leave_type=leave.leave_type.value,
                status=leave.status.value,
                start_date=leave.start_date,
                end_date=leave.end_date,
                created_at=leave.created_at,
            )
            for leave, first, last in leave_rows
        ],
        recent_announcements=await NoticeService.list_announcements(db, visibility, limit=limit),
    )


class DashboardService:
    """Async dashboard orchestration."""

    @staticmethod
    async def _prepare(
        db: AsyncSession,
        actor: Actor,
        observer: DashboardObserver,
    ) -> ScopeSet:
        scope = await ScopeResolver.resolve_scope(db, actor)
        observer.scope_resolved(scope)
        return scope

    @staticmethod
    async def _fan_out(
        db_factory: async_sessionmaker,
        engine: AggregationEngine,
        requests: list[BundleRequest],
        observer: DashboardObserver,
        extras: Optional[dict[str, Any]] = None,
    ) -> GatherResult:
        for request in requests:
            observer.window_built(request.key, request.window)
        return await engine.gather(db_factory, requests, extras=extras)

    # ═════════════════════════════════════════════════════════════════
    # GET /stats
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_stats(
        db: AsyncSession,
        db_factory: async_sessionmaker,
        actor: Actor,
        now: datetime,
        engine: Optional[AggregationEngine] = None,
        observer: DashboardObserver = default_observer,
    ) -> DashboardResponse:
        """Role-shaped dashboard with alerts and the recent activity feed."""
        engine = engine or AggregationEngine(observer=observer)
        strategy = strategy_for(actor.role)
        scope = await DashboardService._prepare(db, actor, observer)
        visibility = await ScopeResolver.resolve_visibility_scope(db, actor, scope)
        requests = strategy.build_bundle_requests(scope, now, "stats").requests

        limit = settings.RECENT_ACTIVITY_LIMIT
        extras = {
            RECENT_ACTIVITY_KEY: lambda session: load_recent_activity(
                session, scope, visibility, limit,
            ),
        }
        result = await DashboardService._fan_out(db_factory, engine, requests, observer, extras)
        return compose(
            strategy.role,
            result.bundles,
            recent_activity=result.get(RECENT_ACTIVITY_KEY),
            missing_views=result.missing,
        )

    # ═════════════════════════════════════════════════════════════════
    # GET /analytics
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_analytics(
        db: AsyncSession,
        db_factory: async_sessionmaker,
        actor: Actor,
        now: datetime,
        period: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        engine: Optional[AggregationEngine] = None,
        observer: DashboardObserver = default_observer,
    ) -> dict[str, Any]:
        """Attendance, leave, growth and department analytics for one period."""
        engine = engine or AggregationEngine(observer=observer)
        strategy = strategy_for(actor.role)
        scope = await DashboardService._prepare(db, actor, observer)
        plan = strategy.build_bundle_requests(
            scope, now, "analytics", period, start=start, end=end,
        )

        result = await DashboardService._fan_out(db_factory, engine, plan.requests, observer)
        return compose_analytics(strategy.role, plan.window, result.bundles, result.missing)

    # ═════════════════════════════════════════════════════════════════
    # GET /summary
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_summary(
        db: AsyncSession,
        db_factory: async_sessionmaker,
        actor: Actor,
        now: datetime,
        engine: Optional[AggregationEngine] = None,
        observer: DashboardObserver = default_observer,
    ) -> dict[str, Any]:
        """Compact HR summary for admins and HR managers."""
        engine = engine or AggregationEngine(observer=observer)
        strategy = strategy_for(actor.role)
        scope = await DashboardService._prepare(db, actor, observer)
        requests = strategy.build_bundle_requests(scope, now, "summary").requests

        result = await DashboardService._fan_out(db_factory, engine, requests, observer)
        return compose_summary(strategy.role, result.bundles, result.missing)

    # ═════════════════════════════════════════════════════════════════
    # GET /employees/{employee_id}/attendance
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_employee_attendance(
        db: AsyncSession,
        db_factory: async_sessionmaker,
        actor: Actor,
        now: datetime,
        employee_id: uuid.UUID,
        period: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        engine: Optional[AggregationEngine] = None,
        observer: DashboardObserver = default_observer,
    ) -> dict[str, Any]:
        """Attendance for one explicitly requested employee inside the actor's scope."""
        engine = engine or AggregationEngine(observer=observer)
        scope = await DashboardService._prepare(db, actor, observer)

        employee = (await db.execute(
            select(Employee.id, Employee.first_name, Employee.last_name, Employee.employee_code)
            .where(Employee.id == employee_id),
        )).first()
        if employee is None:
            raise NotFoundException("Employee", employee_id)
        ScopeResolver.ensure_in_scope(scope, employee_id)

        window = period_window(now, period, start=start, end=end)
        member_scope = ScopeSet(
            actor_id=actor.id,
            role=scope.role,
            employee_ids=frozenset({employee_id}),
        )
        request = BundleRequest(
            key="attendance",
            view=View.attendance,
            scope=member_scope,
            window=window,
        )
        result = await DashboardService._fan_out(db_factory, engine, [request], observer)
        attendance = result.get("attendance")

        return {
            "employee": {
                "id": employee.id,
                "employee_code": employee.employee_code,
                "name": f"{employee.first_name} {employee.last_name}".strip(),
            },
            "period": window.period,
            "start": window.start.isoformat(),
            "end": window.end.isoformat(),
            "granularity": window.granularity.value,
            "attendance": attendance.model_dump(exclude={"by_employee"}) if attendance else None,
        }

    # ═════════════════════════════════════════════════════════════════
    # GET /reports/{view}
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_report(
        db: AsyncSession,
        db_factory: async_sessionmaker,
        actor: Actor,
        now: datetime,
        view: View,
        period: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        year: Optional[int] = None,
        engine: Optional[AggregationEngine] = None,
        observer: DashboardObserver = default_observer,
    ) -> dict[str, Any]:
        """A single view's full bundle for one period."""
        engine = engine or AggregationEngine(observer=observer)
        strategy = strategy_for(actor.role)
        scope = await DashboardService._prepare(db, actor, observer)
        plan = strategy.build_report_request(
            scope, now, view, period, start=start, end=end, year=year,
        )

        result = await DashboardService._fan_out(db_factory, engine, plan.requests, observer)
        return compose_report(view, plan.window, result.bundles, result.missing)

    # ═════════════════════════════════════════════════════════════════
    # GET /asset-requests/stats
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_asset_request_stats(
        db: AsyncSession,
        actor: Actor,
        observer: DashboardObserver = default_observer,
    ) -> AssetRequestStats:
        scope = await DashboardService._prepare(db, actor, observer)
        return await AssetRequestService.stats(db, scope)
