"""Custom exceptions and the ``{success: false, ...}`` error envelope handlers."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → error envelope JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ForbiddenException(AppException):
    """403 — insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
        error_type: str = "forbidden",
    ) -> None:
        super().__init__(status_code=403, error_type=error_type, detail=detail)


class InvalidRoleError(ForbiddenException):
    """403 — the actor's role is not one the platform recognizes."""

    def __init__(self, role: Any) -> None:
        super().__init__(
            detail=f"Access denied. Invalid role '{role}'.",
            error_type="invalid-role",
        )
        self.role = role


class ScopeViolationError(ForbiddenException):
    """403 — a requested sub-resource lies outside the actor's scope."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            detail=f"{entity_type} '{entity_id}' is outside your visibility scope.",
            error_type="scope-violation",
        )
        self.entity_id = entity_id


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


class InvalidPeriodError(ValidationException):
    """422 — unknown period token (usually recovered by defaulting to ``month``)."""

    def __init__(self, token: Any) -> None:
        super().__init__(errors={"period": [f"Unknown period '{token}'."]})
        self.detail = f"Unknown period '{token}'."
        self.token = token


class UpstreamQueryError(AppException):
    """500 — the record store failed or timed out while aggregating."""

    def __init__(self, detail: str = "Server error while aggregating dashboard data.") -> None:
        super().__init__(status_code=500, error_type="upstream-query-failure", detail=detail)


# ── Envelope builder ────────────────────────────────────────────────

def _build_error_body(
    message: str,
    error: Optional[str] = None,
    errors: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if error:
        body["error"] = error
    if errors:
        body["errors"] = errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_error_body(exc.detail, exc.error_type, exc.errors),
    )


async def _handle_http_exception(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content=_build_error_body(
            "Request validation failed.", "validation-error", field_errors,
        ),
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
