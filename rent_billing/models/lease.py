"""Lease ORM model: the tenancy whose term and rent drive the billing schedule."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Date, Index, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from rent_billing.models import Base, BaseModel
from rent_billing.models.lease_terms import LeaseTerms


class LeaseStatus(str, Enum):
    """Lifecycle status of a lease."""

    ACTIVE = "active"
    EXPIRED = "expired"
    TERMINATED = "terminated"


class Lease(Base, BaseModel):
    """Model representing a signed tenancy.

    Owns its payment periods exclusively. The ``version`` column is the
    optimistic-concurrency counter: every billing write bumps it, so two
    writers racing on the same lease cannot both commit.
    """

    __tablename__ = "leases"

    tenant_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
        comment="Tenant holding the lease",
    )
    unit_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        comment="Leased unit",
    )
    building_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        comment="Building the unit belongs to",
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False, comment="First day of the term")
    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Day after the last day of the term (exclusive)",
    )
    rent_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Monthly rent",
    )
    security_deposit: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
    )

    status: Mapped[LeaseStatus] = mapped_column(
        SQLEnum(LeaseStatus),
        nullable=False,
        default=LeaseStatus.ACTIVE,
        index=True,
    )
    terminated_on: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        comment="Effective termination date (set once, lease is immutable afterwards)",
    )
    terms: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    """Validated ``LeaseTerms`` dump, see ``lease_terms`` for typed access."""

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    periods: Mapped[list["PaymentPeriod"]] = relationship(  # noqa: F821
        "PaymentPeriod",
        back_populates="lease",
        cascade="all, delete-orphan",
        order_by="PaymentPeriod.period_start",
    )
    payments: Mapped[list["Payment"]] = relationship(  # noqa: F821
        "Payment",
        back_populates="lease",
    )
    invoices: Mapped[list["Invoice"]] = relationship(  # noqa: F821
        "Invoice",
        back_populates="lease",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_lease_tenant_status", "tenant_id", "status"),
    )

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("status", LeaseStatus.ACTIVE)
        super().__init__(**kwargs)

    @validates("terms")
    def _validate_terms(self, key: str, value: Any) -> dict[str, Any] | None:
        if value is None:
            return None
        return LeaseTerms.model_validate(value).model_dump()

    @property
    def lease_terms(self) -> LeaseTerms:
        """Typed view of ``terms`` (defaults when unset)."""
        return LeaseTerms.model_validate(self.terms or {})

    @property
    def live_periods(self) -> list["PaymentPeriod"]:  # noqa: F821
        """Periods that are part of the current schedule, oldest first."""
        return sorted(
            (period for period in self.periods if not period.superseded),
            key=lambda period: period.period_start,
        )

    @property
    def is_terminated(self) -> bool:
        return self.status == LeaseStatus.TERMINATED

    def __repr__(self) -> str:
        return (
            f"<Lease(id={self.id}, tenant_id={self.tenant_id}, unit_id={self.unit_id}, "
            f"start_date={self.start_date}, end_date={self.end_date}, "
            f"rent_amount={self.rent_amount}, status={self.status})>"
        )


__all__ = ["Lease", "LeaseStatus"]
