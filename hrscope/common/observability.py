"""Observation points for the dashboard pipeline.

Every pipeline event (scope resolution, window construction, bundle success
or failure) goes to a ``DashboardObserver``. Business code never logs
directly; it calls the observer it was handed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hrscope.analytics.windows import TimeWindow
    from hrscope.scope.resolver import ScopeSet

logger = logging.getLogger("hrscope.pipeline")


class DashboardObserver:
    """No-op base observer; subclasses override the hooks they care about."""

    def scope_resolved(self, scope: ScopeSet) -> None:
        pass

    def window_built(self, key: str, window: TimeWindow) -> None:
        pass

    def bundle_computed(self, key: str, view: str, elapsed_ms: float) -> None:
        pass

    def bundle_failed(self, key: str, view: str, error: BaseException) -> None:
        pass


class LoggingObserver(DashboardObserver):
    """Emit each pipeline event as a structured log record."""

    def __init__(self, log: logging.Logger = logger) -> None:
        self.log = log

    def scope_resolved(self, scope: ScopeSet) -> None:
        self.log.info(
            "scope resolved",
            extra={
                "event": "scope_resolved",
                "actor_id": str(scope.actor_id),
                "role": scope.role.value,
                "scope_size": len(scope.employee_ids),
                "inactive_size": len(scope.inactive_ids),
            },
        )

    def window_built(self, key: str, window: TimeWindow) -> None:
        self.log.debug(
            "window built",
            extra={
                "event": "window_built",
                "window": key,
                "period": window.period,
                "start": window.start.isoformat(),
                "end": window.end.isoformat(),
                "granularity": window.granularity.value,
            },
        )

    def bundle_computed(self, key: str, view: str, elapsed_ms: float) -> None:
        self.log.debug(
            "bundle computed",
            extra={
                "event": "bundle_computed",
                "bundle": key,
                "view": view,
                "duration_ms": round(elapsed_ms, 1),
            },
        )

    def bundle_failed(self, key: str, view: str, error: BaseException) -> None:
        self.log.warning(
            "bundle failed: %s",
            error,
            extra={"event": "bundle_failed", "bundle": key, "view": view},
        )


default_observer = LoggingObserver()
