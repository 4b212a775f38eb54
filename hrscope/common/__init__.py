"""Common module — shared constants, errors and observability for HR Scope."""

from hrscope.common.constants import (
    EFFECTIVE_PRESENCE,
    MONTH_LABELS,
    PERMISSIONS,
    AssetRequestStatus,
    AssetStatus,
    AttendanceStatus,
    Granularity,
    LeaveStatus,
    LeaveType,
    NoticeAudience,
    PayrollStatus,
    UserRole,
    View,
)
from hrscope.common.exceptions import (
    AppException,
    ForbiddenException,
    InvalidPeriodError,
    InvalidRoleError,
    NotFoundException,
    ScopeViolationError,
    UpstreamQueryError,
    ValidationException,
    register_exception_handlers,
)
from hrscope.common.observability import DashboardObserver, LoggingObserver

__all__ = [
    # Constants / Enums
    "AssetRequestStatus",
    "AssetStatus",
    "AttendanceStatus",
    "Granularity",
    "LeaveStatus",
    "LeaveType",
    "NoticeAudience",
    "PayrollStatus",
    "UserRole",
    "View",
    "EFFECTIVE_PRESENCE",
    "MONTH_LABELS",
    "PERMISSIONS",
    # Exceptions
    "AppException",
    "ForbiddenException",
    "InvalidPeriodError",
    "InvalidRoleError",
    "NotFoundException",
    "ScopeViolationError",
    "UpstreamQueryError",
    "ValidationException",
    "register_exception_handlers",
    # Observability
    "DashboardObserver",
    "LoggingObserver",
]
