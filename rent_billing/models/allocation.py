"""Allocation ORM model: the ledger of payment amounts credited to periods or invoices."""

from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rent_billing.models import Base, BaseModel


class Allocation(Base, BaseModel):
    """Amount of one payment credited to exactly one period or invoice.

    Partial credit toward a period is an allocation smaller than the period's
    rent. Reversal sets ``reversed_on``; rows are never deleted.
    """

    __tablename__ = "allocations"

    payment_id: Mapped[int] = mapped_column(
        ForeignKey("payments.id"),
        nullable=False,
        index=True,
    )
    period_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_periods.id"),
        nullable=True,
        index=True,
    )
    invoice_id: Mapped[int | None] = mapped_column(
        ForeignKey("invoices.id"),
        nullable=True,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    allocated_on: Mapped[date] = mapped_column(Date, nullable=False)
    reversed_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Relationships
    payment: Mapped["Payment"] = relationship(  # noqa: F821
        "Payment",
        back_populates="allocations",
    )
    period: Mapped["PaymentPeriod | None"] = relationship(  # noqa: F821
        "PaymentPeriod",
        back_populates="allocations",
    )
    invoice: Mapped["Invoice | None"] = relationship(  # noqa: F821
        "Invoice",
        back_populates="allocations",
    )

    __table_args__ = (
        CheckConstraint(
            "(period_id IS NULL AND invoice_id IS NOT NULL) OR "
            "(period_id IS NOT NULL AND invoice_id IS NULL)",
            name="ck_allocation_single_target",
        ),
        CheckConstraint("amount > 0", name="ck_allocation_amount_positive"),
        Index("idx_allocation_payment_active", "payment_id", "reversed_on"),
    )

    @property
    def is_active(self) -> bool:
        return self.reversed_on is None

    def __repr__(self) -> str:
        return (
            f"<Allocation(id={self.id}, payment_id={self.payment_id}, period_id={self.period_id}, "
            f"invoice_id={self.invoice_id}, amount={self.amount}, reversed_on={self.reversed_on})>"
        )


__all__ = ["Allocation"]
