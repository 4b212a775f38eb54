"""Notice service: notices and announcements visible to an actor.

Visibility is read-only. It is derived from the actor's VisibilityScope
and never used to authorize writes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from hrscope.common.constants import NoticeAudience, UserRole
from hrscope.core_hr.models import Employee
from hrscope.notices.models import Announcement, Notice, NoticeTarget
from hrscope.notices.schemas import AnnouncementItem, NoticeItem
from hrscope.scope.resolver import Actor, ScopeSet, VisibilityScope


def _author_name(first: Optional[str], last: Optional[str]) -> Optional[str]:
    return f"{first} {last}".strip() if first else None


class NoticeService:
    """Async notice queries."""

    @staticmethod
    async def list_visible(
        db: AsyncSession,
        actor: Actor,
        scope: ScopeSet,
        visibility: VisibilityScope,
        now: datetime,
        limit: int = 20,
    ) -> list[NoticeItem]:
        """Active, unexpired notices from visible authors addressed to the actor.

        Admins see every notice from a visible author regardless of audience.
        """
        Author = aliased(Employee, flat=True)
        targeted = exists().where(
            NoticeTarget.notice_id == Notice.id,
            NoticeTarget.employee_id == actor.id,
        )

        stmt = (
            select(Notice, Author.first_name, Author.last_name)
            .outerjoin(Author, Notice.created_by_id == Author.id)
            .where(
                Notice.is_active.is_(True),
                or_(Notice.expiry_date.is_(None), Notice.expiry_date >= now.date()),
                Notice.created_by_id.in_(list(visibility.author_ids)),
            )
            .order_by(Notice.created_at.desc())
            .limit(limit)
        )
        if scope.role != UserRole.admin:
            stmt = stmt.where(or_(
                Notice.target_audience == NoticeAudience.all,
                targeted,
                Notice.created_by_id == actor.id,
            ))

        rows = (await db.execute(stmt)).all()
        return [
            NoticeItem(
                id=notice.id,
                title=notice.title,
                content=notice.content,
                notice_type=notice.notice_type,
                priority=notice.priority,
                target_audience=notice.target_audience.value,
                created_by_id=notice.created_by_id,
                created_by=_author_name(first, last),
                expiry_date=notice.expiry_date,
                created_at=notice.created_at,
            )
            for notice, first, last in rows
        ]

    @staticmethod
    async def list_announcements(
        db: AsyncSession,
        visibility: VisibilityScope,
        limit: int = 5,
    ) -> list[AnnouncementItem]:
        """Most recent active announcements authored by visible employees."""
        Author = aliased(Employee, flat=True)
        stmt = (
            select(Announcement, Author.first_name, Author.last_name)
            .outerjoin(Author, Announcement.created_by_id == Author.id)
            .where(
                Announcement.is_active.is_(True),
                Announcement.created_by_id.in_(list(visibility.author_ids)),
            )
            .order_by(Announcement.created_at.desc())
            .limit(limit)
        )
        rows = (await db.execute(stmt)).all()
        return [
            AnnouncementItem(
                id=announcement.id,
                title=announcement.title,
                message=announcement.message,
                category=announcement.category,
                created_by=_author_name(first, last),
                created_at=announcement.created_at,
            )
            for announcement, first, last in rows
        ]
