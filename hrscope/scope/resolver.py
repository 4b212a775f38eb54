"""Scope resolver: which employee records an actor may see.

Every dashboard, analytics and notice query filters through a ``ScopeSet``
produced here. The resolver reads one level of the ``added_by`` /
``manager`` edges and never walks them transitively, so cycles in the
ownership graph are harmless.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrscope.common.constants import UserRole
from hrscope.common.exceptions import InvalidRoleError, ScopeViolationError
from hrscope.core_hr.models import Employee


@dataclass(frozen=True)
class Actor:
    """The authenticated principal making the request."""

    id: uuid.UUID
    role: UserRole
    added_by_id: Optional[uuid.UUID] = None
    manager_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class ScopeSet:
    """Employees an actor may see, split by active flag.

    ``employee_ids`` (active members plus the actor) filters every
    aggregation; ``all_ids`` is what authorization checks against.
    """

    actor_id: uuid.UUID
    role: UserRole
    employee_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)
    inactive_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)

    @property
    def all_ids(self) -> frozenset[uuid.UUID]:
        return self.employee_ids | self.inactive_ids

    @property
    def size(self) -> int:
        return len(self.employee_ids)

    @property
    def is_empty(self) -> bool:
        return not self.employee_ids

    def __contains__(self, employee_id: object) -> bool:
        return employee_id in self.all_ids


@dataclass(frozen=True)
class VisibilityScope:
    """Authors whose notices and announcements the actor may read."""

    actor_id: uuid.UUID
    author_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)


class ScopeResolver:
    """Resolve actor scopes. All methods are static, pure reads."""

    @staticmethod
    def _membership_filter(actor: Actor):
        role = actor.role
        if role == UserRole.admin:
            return None
        if role == UserRole.hr_manager:
            return Employee.added_by_id == actor.id
        if role == UserRole.team_leader:
            return or_(
                Employee.manager_id == actor.id,
                Employee.added_by_id == actor.id,
            )
        raise InvalidRoleError(role)

    @staticmethod
    async def resolve_scope(db: AsyncSession, actor: Actor) -> ScopeSet:
        """Return the ScopeSet for ``actor``; the actor is always a member."""
        try:
            role = UserRole(actor.role)
        except ValueError:
            raise InvalidRoleError(actor.role)

        if role == UserRole.employee:
            return ScopeSet(
                actor_id=actor.id,
                role=role,
                employee_ids=frozenset({actor.id}),
            )

        criterion = ScopeResolver._membership_filter(actor)
        query = select(Employee.id, Employee.is_active)
        if criterion is not None:
            query = query.where(criterion)
        rows = (await db.execute(query)).all()

        active = {row.id for row in rows if row.is_active}
        inactive = {row.id for row in rows if not row.is_active}
        active.add(actor.id)
        inactive.discard(actor.id)

        return ScopeSet(
            actor_id=actor.id,
            role=role,
            employee_ids=frozenset(active),
            inactive_ids=frozenset(inactive),
        )

    @staticmethod
    async def resolve_visibility_scope(
        db: AsyncSession,
        actor: Actor,
        scope: Optional[ScopeSet] = None,
    ) -> VisibilityScope:
        """Authors visible to ``actor``: its scope plus its onboarder and manager."""
        if scope is None:
            scope = await ScopeResolver.resolve_scope(db, actor)
        authors = set(scope.all_ids)
        authors.update(
            author for author in (actor.added_by_id, actor.manager_id) if author is not None
        )
        return VisibilityScope(actor_id=actor.id, author_ids=frozenset(authors))

    @staticmethod
    def ensure_in_scope(scope: ScopeSet, employee_id: uuid.UUID) -> None:
        """Raise ScopeViolationError unless ``employee_id`` is in the scope."""
        if employee_id not in scope.all_ids:
            raise ScopeViolationError("Employee", employee_id)
