"""Notice and announcement Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class NoticeItem(BaseModel):
    id: uuid.UUID
    title: str
    content: str
    notice_type: str
    priority: str
    target_audience: str
    created_by_id: uuid.UUID
    created_by: Optional[str] = None
    expiry_date: Optional[date] = None
    created_at: datetime


class AnnouncementItem(BaseModel):
    id: uuid.UUID
    title: str
    message: str
    category: str
    created_by: Optional[str] = None
    created_at: datetime


class NoticeFeed(BaseModel):
    notices: list[NoticeItem]
    announcements: list[AnnouncementItem]
