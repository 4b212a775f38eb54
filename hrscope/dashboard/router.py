"""Dashboard router: role-shaped dashboard, analytics, reports and HR summary.

Every endpoint requires a bearer token. What each actor sees is decided by
the scope resolver, never by query parameters.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrscope.analytics.engine import AggregationEngine
from hrscope.auth.dependencies import get_current_actor, get_now, require_permission
from hrscope.common.constants import View
from hrscope.dashboard.schemas import AnalyticsEnvelope, DataEnvelope, StatsEnvelope
from hrscope.dashboard.service import DashboardService
from hrscope.database import get_db, get_session_factory
from hrscope.scope.resolver import Actor

router = APIRouter()

PERIOD_HELP = "today | week | month | quarter | year | custom (with start, end)"


def get_aggregation_engine() -> AggregationEngine:
    """FastAPI dependency: a fresh engine configured from settings."""
    return AggregationEngine()


# ── GET /stats ──────────────────────────────────────────────────────

@router.get("/stats", response_model=StatsEnvelope)
async def dashboard_stats(
    actor: Actor = Depends(require_permission("dashboard:self")),
    db: AsyncSession = Depends(get_db),
    db_factory: async_sessionmaker = Depends(get_session_factory),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    now: datetime = Depends(get_now),
):
    """Dashboard for the requesting role: overview, attendance, leaves, alerts."""
    stats = await DashboardService.get_stats(db, db_factory, actor, now, engine=engine)
    return StatsEnvelope(stats=stats, user_role=actor.role.value)


# ── GET /analytics ──────────────────────────────────────────────────

@router.get("/analytics", response_model=AnalyticsEnvelope)
async def dashboard_analytics(
    period: Optional[str] = Query(None, description=PERIOD_HELP),
    start: Optional[date] = Query(None, description="First day of a custom period"),
    end: Optional[date] = Query(None, description="Last day of a custom period"),
    actor: Actor = Depends(require_permission("analytics:read")),
    db: AsyncSession = Depends(get_db),
    db_factory: async_sessionmaker = Depends(get_session_factory),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    now: datetime = Depends(get_now),
):
    """Period analytics; unknown periods fall back to the current month."""
    analytics = await DashboardService.get_analytics(
        db, db_factory, actor, now, period=period, start=start, end=end, engine=engine,
    )
    return AnalyticsEnvelope(analytics=analytics, user_role=actor.role.value)


# ── GET /summary ────────────────────────────────────────────────────

@router.get("/summary", response_model=DataEnvelope)
async def dashboard_summary(
    actor: Actor = Depends(require_permission("summary:read")),
    db: AsyncSession = Depends(get_db),
    db_factory: async_sessionmaker = Depends(get_session_factory),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    now: datetime = Depends(get_now),
):
    """Compact HR summary: headcount, today's attendance, backlogs, alerts."""
    summary = await DashboardService.get_summary(db, db_factory, actor, now, engine=engine)
    return DataEnvelope(data=summary, message="HR summary retrieved successfully")


# ── GET /employees/{employee_id}/attendance ─────────────────────────

@router.get("/employees/{employee_id}/attendance", response_model=DataEnvelope)
async def employee_attendance(
    employee_id: uuid.UUID,
    period: Optional[str] = Query(None, description=PERIOD_HELP),
    start: Optional[date] = Query(None, description="First day of a custom period"),
    end: Optional[date] = Query(None, description="Last day of a custom period"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    db_factory: async_sessionmaker = Depends(get_session_factory),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    now: datetime = Depends(get_now),
):
    """Attendance for one employee inside the requester's scope."""
    data = await DashboardService.get_employee_attendance(
        db, db_factory, actor, now, employee_id,
        period=period, start=start, end=end, engine=engine,
    )
    return DataEnvelope(data=data, message="Employee attendance retrieved successfully")


# ── GET /reports/{view} ─────────────────────────────────────────────

@router.get("/reports/{view}", response_model=DataEnvelope)
async def dashboard_report(
    view: View,
    period: Optional[str] = Query(None, description=PERIOD_HELP),
    start: Optional[date] = Query(None, description="First day of a custom period"),
    end: Optional[date] = Query(None, description="Last day of a custom period"),
    year: Optional[int] = Query(None, ge=1970, le=9999, description="Calendar year (payroll only)"),
    actor: Actor = Depends(require_permission("reports:read")),
    db: AsyncSession = Depends(get_db),
    db_factory: async_sessionmaker = Depends(get_session_factory),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    now: datetime = Depends(get_now),
):
    """Full statistics for one view over one period."""
    report = await DashboardService.get_report(
        db, db_factory, actor, now, view,
        period=period, start=start, end=end, year=year, engine=engine,
    )
    return DataEnvelope(data=report, message=f"{view.value.capitalize()} report retrieved successfully")


# ── GET /asset-requests/stats ───────────────────────────────────────

@router.get("/asset-requests/stats", response_model=DataEnvelope)
async def asset_request_stats(
    actor: Actor = Depends(require_permission("asset_requests:read")),
    db: AsyncSession = Depends(get_db),
):
    """Asset requests raised inside the requester's scope, by status, priority and category."""
    stats = await DashboardService.get_asset_request_stats(db, actor)
    return DataEnvelope(data=stats, message="Asset request stats retrieved successfully")
