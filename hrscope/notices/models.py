"""Notice and announcement ORM models: Notice, NoticeTarget, Announcement."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrscope.common.constants import NoticeAudience
from hrscope.database import Base

if TYPE_CHECKING:
    from hrscope.core_hr.models import Employee


class Notice(Base):
    """Notice board entry; team notices name their recipients in NoticeTarget."""

    __tablename__ = "notices"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    content: Mapped[str] = mapped_column(sa.Text, nullable=False)
    notice_type: Mapped[str] = mapped_column(sa.String(30), default="general")
    priority: Mapped[str] = mapped_column(sa.String(20), default="medium")
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    target_audience: Mapped[NoticeAudience] = mapped_column(
        sa.Enum(NoticeAudience, name="notice_audience", create_type=False),
        default=NoticeAudience.all,
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    created_by: Mapped[Employee] = relationship()
    targets: Mapped[list[NoticeTarget]] = relationship(
        back_populates="notice", cascade="all, delete-orphan",
    )


class NoticeTarget(Base):
    __tablename__ = "notice_targets"

    notice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("notices.id", ondelete="CASCADE"), primary_key=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), primary_key=True,
    )

    notice: Mapped[Notice] = relationship(back_populates="targets")


class Announcement(Base):
    """Organisation-wide announcement authored by an HR manager or admin."""

    __tablename__ = "announcements"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    message: Mapped[str] = mapped_column(sa.Text, nullable=False)
    category: Mapped[str] = mapped_column(sa.String(50), default="general")
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    created_by: Mapped[Employee] = relationship()
