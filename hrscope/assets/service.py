"""Asset request service: request counts for the employees in scope."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrscope.assets.models import AssetRequest
from hrscope.assets.schemas import AssetRequestStats
from hrscope.scope.resolver import ScopeSet


class AssetRequestService:
    """Async asset request queries."""

    @staticmethod
    async def stats(db: AsyncSession, scope: ScopeSet) -> AssetRequestStats:
        """Requests raised by scope members, counted by status, priority and category."""
        in_scope = AssetRequest.requested_by_id.in_(list(scope.employee_ids))
        stats = AssetRequestStats()

        status_rows = (await db.execute(
            select(AssetRequest.status, func.count(AssetRequest.id))
            .where(in_scope)
            .group_by(AssetRequest.status),
        )).all()
        for status, count in status_rows:
            setattr(stats, status.value, count)
            stats.total += count

        for column, target in (
            (AssetRequest.priority, stats.by_priority),
            (AssetRequest.asset_category, stats.by_category),
        ):
            rows = (await db.execute(
                select(column, func.count(AssetRequest.id))
                .where(in_scope)
                .group_by(column)
                .order_by(column),
            )).all()
            target.update({key: count for key, count in rows})

        return stats
