"""Asset ORM models: Asset, AssetAssignment, AssetRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrscope.common.constants import AssetRequestStatus, AssetStatus
from hrscope.database import Base

if TYPE_CHECKING:
    from hrscope.core_hr.models import Employee


class Asset(Base):
    """Company-owned asset (laptop, ID card, monitor, ...)."""

    __tablename__ = "assets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    asset_code: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    category: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    status: Mapped[AssetStatus] = mapped_column(
        sa.Enum(AssetStatus, name="asset_status", create_type=False),
        default=AssetStatus.available,
    )
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    purchase_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    assignments: Mapped[list[AssetAssignment]] = relationship(back_populates="asset")

    def __repr__(self) -> str:
        return f"<Asset {self.asset_code} {self.category}>"


class AssetAssignment(Base):
    """An asset handed to an employee; ``is_active`` until it is returned."""

    __tablename__ = "asset_assignments"
    __table_args__ = (
        sa.Index("ix_asset_assignments_employee_active", "employee_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    assigned_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    return_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)

    asset: Mapped[Asset] = relationship(back_populates="assignments")
    employee: Mapped[Employee] = relationship()


class AssetRequest(Base):
    """Employee request for a new or replacement asset."""

    __tablename__ = "asset_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    requested_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    asset_category: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    request_type: Mapped[str] = mapped_column(sa.String(20), default="new")
    priority: Mapped[str] = mapped_column(sa.String(20), default="medium")
    status: Mapped[AssetRequestStatus] = mapped_column(
        sa.Enum(AssetRequestStatus, name="asset_request_status", create_type=False),
        default=AssetRequestStatus.pending,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    requested_by: Mapped[Employee] = relationship()
