"""Payroll ORM model: one Payroll row per employee per month.

SQLAlchemy 2.0 async-compatible models.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrscope.common.constants import PayrollStatus
from hrscope.database import Base

if TYPE_CHECKING:
    from hrscope.core_hr.models import Employee


class Payroll(Base):
    """Monthly payroll record for an employee."""

    __tablename__ = "payrolls"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "month", "year", name="uq_payroll_employee_period"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_payroll_month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id"),
        nullable=False,
    )
    month: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=0)
    gross_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=0)
    net_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=0)
    status: Mapped[PayrollStatus] = mapped_column(
        sa.Enum(PayrollStatus, name="payroll_status", create_type=False),
        default=PayrollStatus.pending,
    )
    payment_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    employee: Mapped[Employee] = relationship()

    def __repr__(self) -> str:
        return f"<Payroll {self.employee_id} {self.year}-{self.month:02d}>"
