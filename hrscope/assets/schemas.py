"""Asset request Pydantic v2 schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AssetRequestStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    fulfilled: int = 0
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)
