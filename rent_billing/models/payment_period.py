"""Payment period ORM model: one billing month of a lease's schedule."""

import calendar
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rent_billing.models import Base, BaseModel


class PaymentPeriodStatus(str, Enum):
    """Settlement status of a billing period."""

    UNPAID = "unpaid"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentPeriod(Base, BaseModel):
    """Model representing one calendar-month slice of a lease term.

    ``period_start``/``period_end`` bound the slice (end exclusive); they only
    differ from the calendar month for prorated boundary months. Replaced
    periods are kept with ``superseded=True`` for audit and never deleted.
    """

    __tablename__ = "payment_periods"

    lease_id: Mapped[int] = mapped_column(
        ForeignKey("leases.id"),
        nullable=False,
        index=True,
    )
    month: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="First day of the calendar month this period bills",
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False, comment="Exclusive")
    rent_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Rent snapshot taken when the period was generated",
    )
    status: Mapped[PaymentPeriodStatus] = mapped_column(
        SQLEnum(PaymentPeriodStatus),
        nullable=False,
        default=PaymentPeriodStatus.UNPAID,
        index=True,
    )
    paid_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("payments.id"),
        nullable=True,
        comment="Most recent payment that settled the period",
    )
    superseded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    lease: Mapped["Lease"] = relationship(  # noqa: F821
        "Lease",
        back_populates="periods",
    )
    allocations: Mapped[list["Allocation"]] = relationship(  # noqa: F821
        "Allocation",
        back_populates="period",
    )

    __table_args__ = (
        Index("idx_period_lease_month", "lease_id", "month"),
        Index("idx_period_lease_status", "lease_id", "status"),
    )

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("status", PaymentPeriodStatus.UNPAID)
        kwargs.setdefault("superseded", False)
        super().__init__(**kwargs)

    @property
    def month_key(self) -> str:
        """Calendar period identifier, e.g. ``2024-02``."""
        return f"{self.month.year:04d}-{self.month.month:02d}"

    @property
    def due_date(self) -> date:
        """Last day of the period's month."""
        last_day = calendar.monthrange(self.month.year, self.month.month)[1]
        return self.month.replace(day=last_day)

    @property
    def active_allocations(self) -> list["Allocation"]:  # noqa: F821
        return [allocation for allocation in self.allocations if allocation.is_active]

    @property
    def amount_credited(self) -> Decimal:
        return sum((allocation.amount for allocation in self.active_allocations), Decimal("0"))

    @property
    def balance_due(self) -> Decimal:
        return max(self.rent_amount - self.amount_credited, Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<PaymentPeriod(id={self.id}, lease_id={self.lease_id}, month={self.month_key}, "
            f"rent_amount={self.rent_amount}, status={self.status}, superseded={self.superseded})>"
        )


__all__ = ["PaymentPeriod", "PaymentPeriodStatus"]
