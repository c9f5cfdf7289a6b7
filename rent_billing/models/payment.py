"""Payment ORM model for tenant payment events."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rent_billing.models import Base, BaseModel


class PaymentStatus(str, Enum):
    """Processing status of a payment."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentType(str, Enum):
    """What the payment is for."""

    RENT = "rent"
    UTILITY = "utility"
    DEPOSIT = "deposit"
    OTHER = "other"


class Payment(Base, BaseModel):
    """Model representing a payment made by a tenant.

    Immutable after creation except ``status`` and the derived linkage to
    periods (through allocations) and invoices. ``version`` is bumped on every
    allocation and reversal, so two writers cannot both credit the same payment.
    """

    __tablename__ = "payments"

    tenant_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
        comment="Tenant who made the payment",
    )
    lease_id: Mapped[int | None] = mapped_column(
        ForeignKey("leases.id"),
        nullable=True,
        index=True,
    )
    invoice_id: Mapped[int | None] = mapped_column(
        ForeignKey("invoices.id"),
        nullable=True,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_type: Mapped[PaymentType] = mapped_column(
        "type",
        SQLEnum(PaymentType),
        nullable=False,
        default=PaymentType.RENT,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus),
        nullable=False,
        default=PaymentStatus.COMPLETED,
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    months_covered: Mapped[list[str] | None] = mapped_column(
        JSON,
        nullable=True,
        comment="Explicit target months ('YYYY-MM'); oldest-first allocation when empty",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    lease: Mapped["Lease | None"] = relationship(  # noqa: F821
        "Lease",
        back_populates="payments",
    )
    invoice: Mapped["Invoice | None"] = relationship(  # noqa: F821
        "Invoice",
        back_populates="payments",
    )
    allocations: Mapped[list["Allocation"]] = relationship(  # noqa: F821
        "Allocation",
        back_populates="payment",
    )

    __table_args__ = (
        Index("idx_payment_tenant_date", "tenant_id", "payment_date"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("payment_type", PaymentType.RENT)
        kwargs.setdefault("status", PaymentStatus.COMPLETED)
        super().__init__(**kwargs)

    @property
    def active_allocations(self) -> list["Allocation"]:  # noqa: F821
        return [allocation for allocation in self.allocations if allocation.is_active]

    @property
    def is_allocated(self) -> bool:
        return bool(self.active_allocations)

    @property
    def amount_allocated(self) -> Decimal:
        return sum((allocation.amount for allocation in self.active_allocations), Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, tenant_id={self.tenant_id}, amount={self.amount}, "
            f"type={self.payment_type}, status={self.status}, payment_date={self.payment_date})>"
        )


__all__ = ["Payment", "PaymentStatus", "PaymentType"]
