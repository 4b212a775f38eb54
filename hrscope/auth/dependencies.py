"""Auth dependencies: JWT validation, actor loading, RBAC enforcement.

Token issuance lives outside this service; the payload's ``{sub, role}``
is trusted once the signature checks out.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrscope.common.constants import PERMISSIONS, UserRole
from hrscope.common.exceptions import ForbiddenException, InvalidRoleError
from hrscope.config import settings
from hrscope.core_hr.models import Employee
from hrscope.database import get_db
from hrscope.scope.resolver import Actor


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


def _parse_role(raw: object) -> UserRole:
    try:
        return UserRole(raw)
    except ValueError:
        raise InvalidRoleError(raw)


# ── Request clock ───────────────────────────────────────────────────

def get_now() -> datetime:
    """Single timezone-aware ``now`` for the whole request."""
    return datetime.now(ZoneInfo(settings.TIMEZONE))


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_actor(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Validate the JWT and return the requesting Actor."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    try:
        actor_id = uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    role = _parse_role(payload.get("role"))

    result = await db.execute(
        select(Employee.added_by_id, Employee.manager_id).where(
            Employee.id == actor_id,
            Employee.is_active.is_(True),
        ),
    )
    row = result.first()
    if row is None:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    request.state.user_role = role
    return Actor(
        id=actor_id,
        role=role,
        added_by_id=row.added_by_id,
        manager_id=row.manager_id,
    )


# ── Permission-based dependency ─────────────────────────────────────

def require_permission(permission: str) -> Callable:
    """Return a FastAPI dependency that enforces a specific permission string."""

    async def _check(actor: Actor = Depends(get_current_actor)) -> Actor:
        if permission not in PERMISSIONS.get(actor.role, []):
            raise ForbiddenException(
                detail=f"Permission '{permission}' is not granted to role '{actor.role.value}'.",
            )
        return actor

    return _check
