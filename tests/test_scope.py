"""Scope resolver tests: per-role membership, self-inclusion, visibility,
explicit scope checks.
"""

from __future__ import annotations

import uuid

import pytest

from hrscope.common.constants import UserRole
from hrscope.common.exceptions import InvalidRoleError, ScopeViolationError
from hrscope.scope.resolver import Actor, ScopeResolver, ScopeSet
from tests.conftest import create_employee


def _actor(data: dict) -> Actor:
    return Actor(
        id=data["id"],
        role=data["role"],
        added_by_id=data["added_by_id"],
        manager_id=data["manager_id"],
    )


# ═════════════════════════════════════════════════════════════════════
# 1. resolve_scope per role
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_admin_sees_everyone(db, org):
    scope = await ScopeResolver.resolve_scope(db, _actor(org["admin"]))

    everyone = {data["id"] for key, data in org.items() if key != "department"}
    assert scope.all_ids == everyone
    assert org["c"]["id"] in scope.inactive_ids
    assert org["c"]["id"] not in scope.employee_ids


@pytest.mark.asyncio
async def test_hr_manager_sees_onboarded_and_self(db, org):
    scope = await ScopeResolver.resolve_scope(db, _actor(org["hr"]))

    assert scope.employee_ids == {
        org["hr"]["id"], org["leader"]["id"], org["a"]["id"], org["b"]["id"],
    }
    assert scope.inactive_ids == {org["c"]["id"]}
    assert org["outsider"]["id"] not in scope
    assert org["admin"]["id"] not in scope


@pytest.mark.asyncio
async def test_team_leader_sees_managed_and_onboarded(db, org):
    leader = org["leader"]
    onboarded = await create_employee(db, first_name="Dev", added_by_id=leader["id"])

    scope = await ScopeResolver.resolve_scope(db, _actor(leader))

    assert scope.employee_ids == {
        leader["id"], org["a"]["id"], org["b"]["id"], onboarded["id"],
    }
    assert scope.size == 4


@pytest.mark.asyncio
async def test_team_leader_managing_and_onboarding_same_member_counts_once(db, org):
    leader = org["leader"]
    both = await create_employee(db, first_name="Esha", added_by_id=leader["id"], manager_id=leader["id"])

    scope = await ScopeResolver.resolve_scope(db, _actor(leader))

    assert both["id"] in scope.employee_ids
    assert scope.size == 4


@pytest.mark.asyncio
async def test_team_leader_without_team_is_only_self(db):
    lonely = await create_employee(db, first_name="Lone", role=UserRole.team_leader)

    scope = await ScopeResolver.resolve_scope(db, _actor(lonely))

    assert scope.employee_ids == {lonely["id"]}
    assert scope.size == 1


@pytest.mark.asyncio
async def test_employee_sees_only_self(db, org):
    scope = await ScopeResolver.resolve_scope(db, _actor(org["a"]))

    assert scope.employee_ids == {org["a"]["id"]}
    assert scope.inactive_ids == frozenset()


@pytest.mark.asyncio
async def test_every_role_includes_self(db, org):
    for key in ("admin", "hr", "leader", "a"):
        scope = await ScopeResolver.resolve_scope(db, _actor(org[key]))
        assert org[key]["id"] in scope.employee_ids


@pytest.mark.asyncio
async def test_scope_grows_with_new_hires(db, org):
    actor = _actor(org["hr"])
    before = await ScopeResolver.resolve_scope(db, actor)

    await create_employee(db, first_name="Farah", added_by_id=org["hr"]["id"])
    after = await ScopeResolver.resolve_scope(db, actor)

    assert before.all_ids < after.all_ids


@pytest.mark.asyncio
async def test_ownership_cycle_does_not_loop(db):
    x = await create_employee(db, first_name="X", role=UserRole.team_leader)
    y = await create_employee(db, first_name="Y", role=UserRole.team_leader, manager_id=x["id"])

    from sqlalchemy import update

    from hrscope.core_hr.models import Employee

    await db.execute(update(Employee).where(Employee.id == x["id"]).values(manager_id=y["id"]))
    await db.commit()

    scope = await ScopeResolver.resolve_scope(db, Actor(id=x["id"], role=UserRole.team_leader))

    assert scope.employee_ids == {x["id"], y["id"]}


@pytest.mark.asyncio
async def test_unknown_role_is_rejected(db, org):
    actor = Actor(id=org["a"]["id"], role="superuser")  # type: ignore[arg-type]

    with pytest.raises(InvalidRoleError):
        await ScopeResolver.resolve_scope(db, actor)


# ═════════════════════════════════════════════════════════════════════
# 2. Visibility scope
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_employee_visibility_includes_onboarder_and_manager(db, org):
    actor = _actor(org["a"])

    visibility = await ScopeResolver.resolve_visibility_scope(db, actor)

    assert visibility.author_ids == {org["a"]["id"], org["hr"]["id"], org["leader"]["id"]}


@pytest.mark.asyncio
async def test_visibility_skips_missing_edges(db, org):
    visibility = await ScopeResolver.resolve_visibility_scope(db, _actor(org["admin"]))

    assert None not in visibility.author_ids


# ═════════════════════════════════════════════════════════════════════
# 3. ensure_in_scope
# ═════════════════════════════════════════════════════════════════════


def test_ensure_in_scope_accepts_inactive_member():
    actor_id, inactive = uuid.uuid4(), uuid.uuid4()
    scope = ScopeSet(
        actor_id=actor_id,
        role=UserRole.hr_manager,
        employee_ids=frozenset({actor_id}),
        inactive_ids=frozenset({inactive}),
    )

    ScopeResolver.ensure_in_scope(scope, inactive)


def test_ensure_in_scope_rejects_outsider():
    actor_id = uuid.uuid4()
    scope = ScopeSet(actor_id=actor_id, role=UserRole.employee, employee_ids=frozenset({actor_id}))

    with pytest.raises(ScopeViolationError) as exc_info:
        ScopeResolver.ensure_in_scope(scope, uuid.uuid4())

    assert exc_info.value.status_code == 403
