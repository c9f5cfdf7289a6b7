"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from rent_billing.models.allocation import Allocation  # noqa: E402
from rent_billing.models.audit_log import AuditLog  # noqa: E402
from rent_billing.models.invoice import Invoice, InvoiceItem, InvoiceStatus  # noqa: E402
from rent_billing.models.lease import Lease, LeaseStatus  # noqa: E402
from rent_billing.models.lease_terms import LeaseTerms  # noqa: E402
from rent_billing.models.payment import Payment, PaymentStatus, PaymentType  # noqa: E402
from rent_billing.models.payment_period import PaymentPeriod, PaymentPeriodStatus  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "Allocation",
    "AuditLog",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Lease",
    "LeaseStatus",
    "LeaseTerms",
    "Payment",
    "PaymentStatus",
    "PaymentType",
    "PaymentPeriod",
    "PaymentPeriodStatus",
]
