"""Invoice ORM models: billing documents aggregating one or more charges."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable

from sqlalchemy import Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rent_billing.models import Base, BaseModel


class InvoiceStatus(str, Enum):
    """Lifecycle status of an invoice."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Invoice(Base, BaseModel):
    """Model representing an invoice issued to a tenant.

    ``payments`` lists the payments linked to the invoice; the amount each one
    actually contributed lives in ``allocations``. ``version`` guards the
    credited balance when the invoice has no lease to carry the check.
    """

    __tablename__ = "invoices"

    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    lease_id: Mapped[int | None] = mapped_column(
        ForeignKey("leases.id"),
        nullable=True,
        index=True,
    )
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(InvoiceStatus),
        nullable=False,
        default=InvoiceStatus.DRAFT,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    lease: Mapped["Lease | None"] = relationship(  # noqa: F821
        "Lease",
        back_populates="invoices",
    )
    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
    )
    payments: Mapped[list["Payment"]] = relationship(  # noqa: F821
        "Payment",
        back_populates="invoice",
    )
    allocations: Mapped[list["Allocation"]] = relationship(  # noqa: F821
        "Allocation",
        back_populates="invoice",
    )

    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("status", InvoiceStatus.DRAFT)
        super().__init__(**kwargs)

    @classmethod
    def from_items(
        cls,
        items: Iterable[tuple[str, Decimal]],
        amount: Decimal | None = None,
        **kwargs: Any,
    ) -> "Invoice":
        """Build an invoice from (description, amount) pairs.

        The invoice amount defaults to the sum of the item amounts.
        """
        invoice_items = [InvoiceItem(description=description, amount=value) for description, value in items]
        total = sum((item.amount for item in invoice_items), Decimal("0"))
        return cls(items=invoice_items, amount=total if amount is None else amount, **kwargs)

    @property
    def active_allocations(self) -> list["Allocation"]:  # noqa: F821
        return [allocation for allocation in self.allocations if allocation.is_active]

    @property
    def amount_credited(self) -> Decimal:
        return sum((allocation.amount for allocation in self.active_allocations), Decimal("0"))

    @property
    def balance_due(self) -> Decimal:
        return max(self.amount - self.amount_credited, Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id}, invoice_number={self.invoice_number}, amount={self.amount}, "
            f"due_date={self.due_date}, status={self.status})>"
        )


class InvoiceItem(Base, BaseModel):
    """Single charge line on an invoice."""

    __tablename__ = "invoice_items"

    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")

    def __repr__(self) -> str:
        return f"<InvoiceItem(id={self.id}, description={self.description!r}, amount={self.amount})>"


__all__ = ["Invoice", "InvoiceItem", "InvoiceStatus"]
