"""Alert rules and per-role thresholds.

Each rule is independent; every rule that fires appends one Alert.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from hrscope.analytics.bundles import AttendanceBundle
from hrscope.dashboard.schemas import Alert


@dataclass(frozen=True)
class AlertThresholds:
    """Ratios are fractions of the relevant population; ``None`` disables a rule."""

    absenteeism: Optional[float] = None
    absenteeism_severity: str = "high"
    lateness: Optional[float] = None
    pending_leaves: Optional[int] = None
    pending_leaves_team_ratio: Optional[float] = None
    inactive_ratio: Optional[float] = None
    asset_requests: Optional[int] = None


ORG_THRESHOLDS = AlertThresholds(
    absenteeism=0.15,
    lateness=0.10,
    pending_leaves=10,
    inactive_ratio=0.05,
    asset_requests=5,
)

TEAM_THRESHOLDS = AlertThresholds(
    absenteeism=0.30,
    absenteeism_severity="warning",
    lateness=0.20,
    pending_leaves_team_ratio=0.5,
)

SELF_THRESHOLDS = AlertThresholds()


def generate_alerts(
    thresholds: AlertThresholds,
    *,
    attendance_today: Optional[AttendanceBundle] = None,
    pending_leaves: int = 0,
    team_size: int = 0,
    inactive: int = 0,
    total_employees: int = 0,
    pending_asset_requests: int = 0,
) -> list[Alert]:
    alerts: list[Alert] = []

    if attendance_today is not None:
        headcount = attendance_today.total_employees
        if thresholds.absenteeism is not None and attendance_today.absent > headcount * thresholds.absenteeism:
            alerts.append(Alert(
                type="attendance",
                severity=thresholds.absenteeism_severity,
                message=f"High absenteeism today: {attendance_today.absent} of {headcount} absent",
                suggested_action="Review attendance patterns and contact absent employees",
            ))
        if thresholds.lateness is not None and attendance_today.late > headcount * thresholds.lateness:
            alerts.append(Alert(
                type="lateness",
                severity="warning",
                message=f"{attendance_today.late} employees arrived late today",
                suggested_action="Check shift timings and follow up on repeated late arrivals",
            ))

    pending_limit: Optional[float] = thresholds.pending_leaves
    if thresholds.pending_leaves_team_ratio is not None:
        pending_limit = team_size * thresholds.pending_leaves_team_ratio
    if pending_limit is not None and pending_leaves > pending_limit:
        alerts.append(Alert(
            type="leaves",
            severity="warning",
            message=f"{pending_leaves} leave requests pending approval",
            suggested_action="Review and process pending leave requests",
        ))

    if (
        thresholds.inactive_ratio is not None
        and total_employees > 0
        and inactive > total_employees * thresholds.inactive_ratio
    ):
        alerts.append(Alert(
            type="workforce",
            severity="info",
            message=f"{inactive} inactive employees on record",
            suggested_action="Review inactive employee accounts",
        ))

    if thresholds.asset_requests is not None and pending_asset_requests > thresholds.asset_requests:
        alerts.append(Alert(
            type="assets",
            severity="warning",
            message=f"{pending_asset_requests} asset requests pending",
            suggested_action="Process pending asset requests",
        ))

    return alerts
