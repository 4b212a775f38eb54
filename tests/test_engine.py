"""Aggregation engine tests: per-view math, scope filtering, zero-scope
safety and the concurrent fan-out.

View tests query SQLite directly through the ``db`` fixture; fan-out tests
use stub views so ordering and failures can be controlled.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from hrscope.analytics.bundles import AttendanceBundle, LeaveBundle
from hrscope.analytics.engine import (
    AggregationEngine,
    BundleRequest,
    growth_pct,
)
from hrscope.analytics.windows import build_window
from hrscope.assets.models import Asset, AssetAssignment, AssetRequest
from hrscope.common.constants import (
    AssetRequestStatus,
    AssetStatus,
    AttendanceStatus,
    LeaveStatus,
    PayrollStatus,
    UserRole,
    View,
)
from hrscope.common.exceptions import UpstreamQueryError
from hrscope.common.observability import DashboardObserver
from hrscope.payroll.models import Payroll
from hrscope.scope.resolver import Actor, ScopeResolver, ScopeSet
from tests.conftest import IST, NOW, TODAY, create_attendance, create_employee, create_leave


async def _scope_of(db, data: dict) -> ScopeSet:
    return await ScopeResolver.resolve_scope(db, Actor(id=data["id"], role=data["role"]))


def _collect_uuids(value) -> set[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return {value}
    if isinstance(value, dict):
        return set().union(*(_collect_uuids(v) for v in value.values())) if value else set()
    if isinstance(value, list):
        return set().union(*(_collect_uuids(v) for v in value)) if value else set()
    return set()


# ═════════════════════════════════════════════════════════════════════
# 1. Growth percentage
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    ("prior", "current", "expected"),
    [(0, 0, 0.0), (0, 5, 100.0), (10, 15, 50.0), (4, 3, -25.0), (3, 4, 33.3)],
)
def test_growth_pct(prior, current, expected):
    assert growth_pct(prior, current) == expected


# ═════════════════════════════════════════════════════════════════════
# 2. Attendance
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_team_attendance_today_counts_missing_records_as_absent(db, org):
    """Leader manages A and B; A present, B and the leader have no record."""
    await create_attendance(db, org["a"]["id"], AttendanceStatus.present)
    scope = await _scope_of(db, org["leader"])

    bundle = await AggregationEngine().aggregate(db, View.attendance, scope, build_window("today", NOW))

    assert bundle.total_employees == 3
    assert bundle.present == 1
    assert bundle.late == 0
    assert bundle.half_day == 0
    assert bundle.absent == 2
    assert bundle.attendance_rate == 33.3


@pytest.mark.asyncio
async def test_absent_identity_over_a_week(db, org):
    scope = await _scope_of(db, org["leader"])
    window = build_window("week", NOW)
    await create_attendance(db, org["a"]["id"], AttendanceStatus.present, day=TODAY - timedelta(days=1))
    await create_attendance(db, org["a"]["id"], AttendanceStatus.late)
    await create_attendance(db, org["b"]["id"], AttendanceStatus.half_day)
    await create_attendance(db, org["leader"]["id"], AttendanceStatus.on_leave)

    bundle = await AggregationEngine().aggregate(db, View.attendance, scope, window)

    effective = bundle.present + bundle.late + bundle.half_day
    assert bundle.expected == 3 * window.days()
    assert bundle.absent == bundle.expected - effective
    assert bundle.on_leave == 1
    assert len(bundle.trend) == window.days()
    assert bundle.trend[-1].late == 1
    assert bundle.trend[-1].absent == 1


@pytest.mark.asyncio
async def test_records_after_now_and_outside_scope_are_ignored(db, org):
    scope = await _scope_of(db, org["leader"])
    await create_attendance(db, org["a"]["id"], AttendanceStatus.present, day=TODAY + timedelta(days=1))
    await create_attendance(db, org["outsider"]["id"], AttendanceStatus.present)

    bundle = await AggregationEngine().aggregate(db, View.attendance, scope, build_window("today", NOW))

    assert bundle.present == 0
    assert bundle.absent == 3


@pytest.mark.asyncio
async def test_attendance_hours_and_overtime(db, org):
    scope = await _scope_of(db, org["leader"])
    await create_attendance(db, org["a"]["id"], AttendanceStatus.present, hours=9.5, overtime=1.5)
    await create_attendance(db, org["b"]["id"], AttendanceStatus.present, hours=6.5)

    bundle = await AggregationEngine().aggregate(
        db, View.attendance, scope, build_window("month", NOW), per_member=True,
    )

    assert bundle.total_hours == 16.0
    assert bundle.overtime_hours == 1.5
    assert bundle.avg_hours_worked == 8.0
    assert bundle.employees_with_overtime == 1
    assert {row.employee_id for row in bundle.by_employee} == scope.employee_ids


@pytest.mark.asyncio
async def test_year_window_trend_is_monthly(db, org):
    scope = await _scope_of(db, org["a"])
    await create_attendance(db, org["a"]["id"], AttendanceStatus.present, day=date(2026, 1, 5))

    bundle = await AggregationEngine().aggregate(db, View.attendance, scope, build_window("year", NOW))

    assert [point.period for point in bundle.trend] == ["2026-01", "2026-02"]
    assert bundle.trend[0].present == 1
    assert bundle.trend[0].total == 31


# ═════════════════════════════════════════════════════════════════════
# 3. Zero scope
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize("view", list(View))
async def test_empty_scope_returns_zero_bundle_without_querying(view):
    empty = ScopeSet(actor_id=uuid.uuid4(), role=UserRole.team_leader)

    # ``None`` as the session proves nothing is queried.
    bundle = await AggregationEngine().aggregate(None, view, empty, build_window("month", NOW))

    assert bundle == type(bundle)()


# ═════════════════════════════════════════════════════════════════════
# 4. Leave
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_leave_summary_and_prior_period_change(db, org):
    scope = await _scope_of(db, org["leader"])
    await create_leave(db, org["a"]["id"], LeaveStatus.approved, days=2)
    await create_leave(db, org["b"]["id"], LeaveStatus.rejected, created_at=NOW - timedelta(days=2))
    await create_leave(db, org["b"]["id"], LeaveStatus.pending, created_at=datetime(2026, 1, 5, 10, tzinfo=IST))
    await create_leave(db, org["a"]["id"], LeaveStatus.approved, created_at=datetime(2026, 1, 20, 10, tzinfo=IST))
    await create_leave(db, org["outsider"]["id"], LeaveStatus.pending)

    bundle = await AggregationEngine().aggregate(db, View.leave, scope, build_window("month", NOW))

    assert bundle.pending == 1
    assert bundle.approved == 1
    assert bundle.rejected == 1
    assert bundle.total == 2
    assert bundle.approval_rate == 50.0
    assert bundle.approval_rate_change == -50.0
    assert bundle.total_days == 3
    assert bundle.utilization_rate == 50.0
    assert bundle.by_type == {"casual": 2}
    assert len(bundle.trend) == 1
    assert bundle.trend[0].label == "Feb"
    assert bundle.trend[0].approval_rate == 50.0


@pytest.mark.asyncio
async def test_leave_without_requests_has_zero_rates(db, org):
    scope = await _scope_of(db, org["a"])

    bundle = await AggregationEngine().aggregate(db, View.leave, scope, build_window("quarter", NOW))

    assert bundle.approval_rate == 0.0
    assert bundle.approval_rate_change == 0.0
    assert [point.label for point in bundle.trend] == ["Nov", "Dec", "Jan", "Feb"]


# ═════════════════════════════════════════════════════════════════════
# 5. Growth
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_growth_from_zero_baseline(db, org):
    await create_employee(
        db, first_name="New", added_by_id=org["leader"]["id"], date_of_joining=date(2026, 2, 10),
    )
    scope = await _scope_of(db, org["leader"])

    bundle = await AggregationEngine().aggregate(db, View.growth, scope, build_window("month", NOW))

    assert bundle.joined_this_month == 1
    assert bundle.joined_last_month == 0
    assert bundle.monthly_change == 100.0
    assert bundle.growth_percentage == 100.0
    assert bundle.joined_in_window == 1
    assert sum(point.count for point in bundle.trend) == 1


@pytest.mark.asyncio
async def test_growth_with_prior_year_baseline(db, org):
    for day in (date(2025, 3, 1), date(2025, 6, 1)):
        await create_employee(db, first_name="Old", added_by_id=org["hr"]["id"], date_of_joining=day)
    for day in (date(2026, 1, 10), date(2026, 1, 11), date(2026, 2, 2)):
        await create_employee(db, first_name="Fresh", added_by_id=org["hr"]["id"], date_of_joining=day)
    scope = await _scope_of(db, org["hr"])

    bundle = await AggregationEngine().aggregate(db, View.growth, scope, build_window("year", NOW))

    assert bundle.joined_last_year == 2
    assert bundle.joined_this_year == 3
    assert bundle.growth_percentage == 50.0
    assert bundle.monthly_change == -50.0
    assert [point.count for point in bundle.trend] == [2, 1]


# ═════════════════════════════════════════════════════════════════════
# 6. Payroll
# ═════════════════════════════════════════════════════════════════════


def _payroll(employee_id, net, status, *, month=2, year=2026) -> Payroll:
    return Payroll(
        id=uuid.uuid4(),
        employee_id=employee_id,
        month=month,
        year=year,
        basic_salary=Decimal(net),
        gross_salary=Decimal(net) + 5000,
        net_salary=Decimal(net),
        status=status,
    )


@pytest.mark.asyncio
async def test_payroll_totals_and_salary_distribution(db, org):
    db.add_all([
        _payroll(org["a"]["id"], 40000, PayrollStatus.paid),
        _payroll(org["b"]["id"], 60000, PayrollStatus.pending),
        _payroll(org["a"]["id"], 40000, PayrollStatus.paid, month=1),
        _payroll(org["outsider"]["id"], 90000, PayrollStatus.paid),
    ])
    await db.commit()
    scope = await _scope_of(db, org["leader"])

    bundle = await AggregationEngine().aggregate(db, View.payroll, scope, build_window("month", NOW))

    assert bundle.records == 2
    assert bundle.total_net == 100000.0
    assert bundle.total_gross == 110000.0
    assert bundle.average_net == 50000.0
    assert bundle.by_status["paid"].count == 1
    assert bundle.by_status["pending"].total == 60000.0
    assert bundle.salary.employees == 3
    assert bundle.salary.average == 50000.0
    counts = {bucket.range: bucket.count for bucket in bundle.distribution}
    assert counts["50000-75000"] == 3
    assert counts["other"] == 0


# ═════════════════════════════════════════════════════════════════════
# 7. Assets
# ═════════════════════════════════════════════════════════════════════


def _asset(code, status, price=1000) -> Asset:
    return Asset(
        id=uuid.uuid4(),
        asset_code=code,
        name=f"Laptop {code}",
        category="Laptop",
        status=status,
        purchase_price=Decimal(price),
    )


@pytest.mark.asyncio
async def test_assets_only_count_scope_holders(db, org):
    held = _asset("A-1", AssetStatus.assigned, price=1200)
    foreign = _asset("A-2", AssetStatus.assigned)
    spare = _asset("A-3", AssetStatus.available)
    db.add_all([held, foreign, spare])
    await db.flush()
    db.add_all([
        AssetAssignment(id=uuid.uuid4(), asset_id=held.id, employee_id=org["a"]["id"], assigned_date=TODAY),
        AssetAssignment(id=uuid.uuid4(), asset_id=foreign.id, employee_id=org["outsider"]["id"], assigned_date=TODAY),
        AssetRequest(id=uuid.uuid4(), requested_by_id=org["b"]["id"], asset_category="Monitor"),
        AssetRequest(id=uuid.uuid4(), requested_by_id=org["outsider"]["id"], asset_category="Monitor"),
        AssetRequest(
            id=uuid.uuid4(),
            requested_by_id=org["a"]["id"],
            asset_category="Mouse",
            status=AssetRequestStatus.fulfilled,
        ),
    ])
    await db.commit()
    scope = await _scope_of(db, org["leader"])

    bundle = await AggregationEngine().aggregate(db, View.assets, scope, build_window("month", NOW))

    assert bundle.assigned == 1
    assert bundle.pool == 1
    assert bundle.utilization_rate == 50.0
    assert bundle.pending_requests == 1
    assert bundle.total_value == 1200.0
    assert bundle.average_price == 1200.0
    assert bundle.by_category == {"Laptop": 1}
    assert [row.employee_id for row in bundle.top_assignees] == [org["a"]["id"]]


@pytest.mark.asyncio
async def test_assets_count_each_held_asset_once(db, org):
    shared = _asset("A-9", AssetStatus.assigned, price=900)
    db.add(shared)
    await db.flush()
    db.add_all([
        AssetAssignment(id=uuid.uuid4(), asset_id=shared.id, employee_id=org["a"]["id"], assigned_date=TODAY),
        AssetAssignment(id=uuid.uuid4(), asset_id=shared.id, employee_id=org["b"]["id"], assigned_date=TODAY),
    ])
    await db.commit()
    scope = await _scope_of(db, org["leader"])

    bundle = await AggregationEngine().aggregate(db, View.assets, scope, build_window("month", NOW))

    assert bundle.assigned == 1
    assert bundle.total_value == 900.0
    assert bundle.by_category == {"Laptop": 1}
    assert bundle.by_status == {"assigned": 1}


# ═════════════════════════════════════════════════════════════════════
# 8. Department
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_department_grouping_and_roster(db, org):
    await create_attendance(db, org["a"]["id"], AttendanceStatus.present)
    scope = await _scope_of(db, org["admin"])

    bundle = await AggregationEngine().aggregate(
        db, View.department, scope, build_window("today", NOW), include_roster=True,
    )

    assert bundle.total == 7
    assert bundle.active == 6
    assert bundle.inactive == 1
    stats = {stat.name: stat for stat in bundle.departments}
    assert stats["Engineering"].count == 5
    assert stats["Engineering"].attendance_rate == 20.0
    assert stats["Unassigned"].count == 1
    assert bundle.by_role["employee"] == 3
    assert len(bundle.roster) == 6
    roster = {entry.employee_id: entry for entry in bundle.roster}
    assert roster[org["a"]["id"]].manager_name == "Tara User"


# ═════════════════════════════════════════════════════════════════════
# 9. No scope leakage
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_no_identifier_outside_scope_reaches_a_bundle(db, org):
    await create_attendance(db, org["outsider"]["id"], AttendanceStatus.present, overtime=2)
    await create_leave(db, org["outsider"]["id"], LeaveStatus.approved)
    await create_attendance(db, org["a"]["id"], AttendanceStatus.late)
    scope = await _scope_of(db, org["leader"])
    window = build_window("month", NOW)
    engine = AggregationEngine()

    seen: set[uuid.UUID] = set()
    for view in View:
        options = {}
        if view == View.attendance:
            options["per_member"] = True
        if view == View.department:
            options["include_roster"] = True
        bundle = await engine.aggregate(db, view, scope, window, **options)
        seen |= _collect_uuids(bundle.model_dump())

    assert seen <= scope.all_ids
    assert org["outsider"]["id"] not in seen


# ═════════════════════════════════════════════════════════════════════
# 10. Fan-out
# ═════════════════════════════════════════════════════════════════════


class _NullSession:
    async def __aenter__(self):
        return None

    async def __aexit__(self, *exc_info):
        return False


def _null_factory():
    return _NullSession()


class _RecordingObserver(DashboardObserver):
    def __init__(self):
        self.computed: list[str] = []
        self.failed: list[str] = []

    def bundle_computed(self, key, view, elapsed_ms):
        self.computed.append(key)

    def bundle_failed(self, key, view, error):
        self.failed.append(key)


def _member_scope() -> ScopeSet:
    actor_id = uuid.uuid4()
    return ScopeSet(actor_id=actor_id, role=UserRole.employee, employee_ids=frozenset({actor_id}))


@pytest.mark.asyncio
async def test_gather_joins_by_key_regardless_of_completion_order():
    async def slow_attendance(db, scope, window, **options):
        await asyncio.sleep(0.05)
        return AttendanceBundle(present=7)

    async def fast_leave(db, scope, window, **options):
        return LeaveBundle(pending=3)

    engine = AggregationEngine(
        views={View.attendance: slow_attendance, View.leave: fast_leave},
        max_concurrency=4,
    )
    scope, window = _member_scope(), build_window("month", NOW)

    result = await engine.gather(_null_factory, [
        BundleRequest("attendance", View.attendance, scope, window),
        BundleRequest("leave", View.leave, scope, window),
    ])

    assert result.bundles["attendance"].present == 7
    assert result.bundles["leave"].pending == 3
    assert result.missing == []


@pytest.mark.asyncio
async def test_gather_reports_failed_view_as_missing():
    async def broken(db, scope, window, **options):
        raise OperationalError("SELECT 1", {}, Exception("connection reset"))

    async def fine(db, scope, window, **options):
        return LeaveBundle(pending=1)

    observer = _RecordingObserver()
    engine = AggregationEngine(
        views={View.attendance: broken, View.leave: fine},
        observer=observer,
        max_concurrency=2,
    )
    scope, window = _member_scope(), build_window("month", NOW)

    result = await engine.gather(_null_factory, [
        BundleRequest("attendance", View.attendance, scope, window),
        BundleRequest("leave", View.leave, scope, window),
    ])

    assert result.missing == ["attendance"]
    assert result.bundles["leave"].pending == 1
    assert observer.failed == ["attendance"]
    assert observer.computed == ["leave"]


@pytest.mark.asyncio
async def test_gather_raises_when_every_view_fails():
    async def broken(db, scope, window, **options):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    engine = AggregationEngine(views={View.attendance: broken})
    scope, window = _member_scope(), build_window("month", NOW)

    with pytest.raises(UpstreamQueryError):
        await engine.gather(_null_factory, [BundleRequest("attendance", View.attendance, scope, window)])


@pytest.mark.asyncio
async def test_gather_times_out():
    async def hung(db, scope, window, **options):
        await asyncio.sleep(5)
        return AttendanceBundle()

    engine = AggregationEngine(views={View.attendance: hung}, timeout=0.05)
    scope, window = _member_scope(), build_window("month", NOW)

    with pytest.raises(UpstreamQueryError, match="timed out"):
        await engine.gather(_null_factory, [BundleRequest("attendance", View.attendance, scope, window)])


@pytest.mark.asyncio
async def test_gather_runs_extra_loaders_alongside_views():
    async def attendance(db, scope, window, **options):
        return AttendanceBundle(present=1)

    async def feed(session):
        return ["joined"]

    engine = AggregationEngine(views={View.attendance: attendance})
    scope, window = _member_scope(), build_window("month", NOW)

    result = await engine.gather(
        _null_factory,
        [BundleRequest("attendance", View.attendance, scope, window)],
        extras={"feed": feed},
    )

    assert result.get("feed") == ["joined"]


@pytest.mark.asyncio
async def test_gather_cancels_siblings_when_a_view_crashes():
    state = {"finished": False, "cancelled": False}

    async def crashing(db, scope, window, **options):
        await asyncio.sleep(0.01)
        raise TypeError("bad row")

    async def slow(db, scope, window, **options):
        try:
            await asyncio.sleep(0.2)
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise
        state["finished"] = True
        return LeaveBundle()

    engine = AggregationEngine(
        views={View.attendance: crashing, View.leave: slow},
        max_concurrency=2,
    )
    scope, window = _member_scope(), build_window("month", NOW)

    with pytest.raises(TypeError):
        await engine.gather(_null_factory, [
            BundleRequest("attendance", View.attendance, scope, window),
            BundleRequest("leave", View.leave, scope, window),
        ])

    assert state == {"finished": False, "cancelled": True}
    await asyncio.sleep(0.25)
    assert state["finished"] is False
