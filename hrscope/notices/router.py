"""Notice router: the notice board as seen by the requesting actor."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrscope.auth.dependencies import get_now, require_permission
from hrscope.dashboard.schemas import DataEnvelope
from hrscope.database import get_db
from hrscope.notices.schemas import NoticeFeed
from hrscope.notices.service import NoticeService
from hrscope.scope.resolver import Actor, ScopeResolver

router = APIRouter()


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=DataEnvelope)
async def list_notices(
    limit: int = Query(20, ge=1, le=100, description="Maximum notices to return"),
    actor: Actor = Depends(require_permission("notice:read_visible")),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Active notices and recent announcements the actor may read."""
    scope = await ScopeResolver.resolve_scope(db, actor)
    visibility = await ScopeResolver.resolve_visibility_scope(db, actor, scope)
    notices = await NoticeService.list_visible(db, actor, scope, visibility, now, limit=limit)
    announcements = await NoticeService.list_announcements(db, visibility, limit=limit)
    return DataEnvelope(
        data=NoticeFeed(notices=notices, announcements=announcements),
        message="Notices retrieved successfully",
    )
