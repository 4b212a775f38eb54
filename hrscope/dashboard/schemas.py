"""Dashboard Pydantic v2 schemas: response envelopes, alerts, recent activity."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from hrscope.notices.schemas import AnnouncementItem


# ═════════════════════════════════════════════════════════════════════
# Alerts
# ═════════════════════════════════════════════════════════════════════


class Alert(BaseModel):
    """A derived warning; recomputed on every call, never stored."""

    type: str
    severity: Literal["info", "warning", "high"]
    message: str
    suggested_action: str


# ═════════════════════════════════════════════════════════════════════
# Recent activity
# ═════════════════════════════════════════════════════════════════════


class RecentJoiner(BaseModel):
    employee_id: uuid.UUID
    employee_code: str
    name: str
    department: Optional[str] = None
    date_of_joining: date


class RecentLeave(BaseModel):
    leave_id: uuid.UUID
    employee_id: uuid.UUID
    employee_name: str
    leave_type: str
    status: str
    start_date: date
    end_date: date
    created_at: datetime


class RecentActivity(BaseModel):
    recent_joiners: list[RecentJoiner] = Field(default_factory=list)
    recent_leaves: list[RecentLeave] = Field(default_factory=list)
    recent_announcements: list[AnnouncementItem] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Dashboard (GET /stats)
# ═════════════════════════════════════════════════════════════════════


class DashboardResponse(BaseModel):
    """Role-shaped dashboard. Sections a role does not get stay ``None``."""

    role: str
    overview: dict[str, Any] = Field(default_factory=dict)
    attendance: Optional[dict[str, Any]] = None
    leaves: Optional[dict[str, Any]] = None
    assets: Optional[dict[str, Any]] = None
    payroll: Optional[dict[str, Any]] = None
    departments: Optional[list[dict[str, Any]]] = None
    workforce: Optional[dict[str, Any]] = None
    performance: Optional[dict[str, Any]] = None
    team_members: Optional[list[dict[str, Any]]] = None
    member_performance: Optional[list[dict[str, Any]]] = None
    recent_activity: Optional[RecentActivity] = None
    alerts: list[Alert] = Field(default_factory=list)
    missing_views: list[str] = Field(
        default_factory=list,
        description="Views that failed to load; their sections are empty",
    )


# ═════════════════════════════════════════════════════════════════════
# Envelopes
# ═════════════════════════════════════════════════════════════════════


class StatsEnvelope(BaseModel):
    success: bool = True
    stats: DashboardResponse
    user_role: str
    message: str = "Dashboard statistics retrieved successfully"


class AnalyticsEnvelope(BaseModel):
    success: bool = True
    analytics: dict[str, Any]
    user_role: str
    message: str = "Dashboard analytics retrieved successfully"


class DataEnvelope(BaseModel):
    success: bool = True
    data: Any
    message: str
