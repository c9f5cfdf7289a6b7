"""Pydantic schemas for billing inputs and the payment calendar view."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rent_billing.models.lease import LeaseStatus
from rent_billing.models.lease_terms import LeaseTerms
from rent_billing.models.payment import PaymentStatus, PaymentType
from rent_billing.models.payment_period import PaymentPeriodStatus
from rent_billing.services.period_service import parse_month_key


class CreateLeasePayload(BaseModel):
    """Request payload for creating a lease."""

    tenant_id: str = Field(..., min_length=1, description="Tenant holding the lease")
    unit_id: str = Field(..., min_length=1, description="Leased unit")
    building_id: str = Field(..., min_length=1, description="Building of the unit")
    start_date: date
    end_date: date
    rent_amount: Decimal = Field(..., gt=0, description="Rent amount must be greater than 0")
    security_deposit: Decimal | None = Field(None, gt=0)
    status: LeaseStatus = LeaseStatus.ACTIVE
    terms: LeaseTerms | None = None

    @model_validator(mode="after")
    def check_term(self) -> "CreateLeasePayload":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        if self.status == LeaseStatus.TERMINATED:
            raise ValueError("a lease cannot be created terminated")
        return self


class UpdateLeasePayload(BaseModel):
    """Request payload for updating lease terms.

    Termination is its own action and is not accepted here.
    """

    start_date: date | None = None
    end_date: date | None = None
    rent_amount: Decimal | None = Field(None, gt=0, description="Rent amount must be greater than 0")
    security_deposit: Decimal | None = Field(None, gt=0)
    terms: LeaseTerms | None = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def check_term(self) -> "UpdateLeasePayload":
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class CreatePaymentPayload(BaseModel):
    """Request payload for recording a payment."""

    tenant_id: str = Field(..., min_length=1, description="Paying tenant")
    lease_id: int | None = Field(None, description="Lease whose periods the payment targets")
    amount: Decimal = Field(..., gt=0, description="Amount must be greater than 0")
    payment_type: PaymentType = Field(PaymentType.RENT, alias="type")
    status: PaymentStatus = PaymentStatus.COMPLETED
    payment_date: date
    months_covered: list[str] | None = Field(None, description="Target months as YYYY-MM")
    invoice_id: int | None = None
    notes: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("months_covered")
    @classmethod
    def check_months(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        months = [parse_month_key(key) for key in value]
        if len(set(months)) != len(months):
            raise ValueError("months_covered contains duplicates")
        return [f"{month.year:04d}-{month.month:02d}" for month in months]


class InvoiceItemPayload(BaseModel):
    """Single invoice charge."""

    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)


class CreateInvoicePayload(BaseModel):
    """Request payload for creating an invoice (amount defaults to the items' sum)."""

    tenant_id: str = Field(..., min_length=1)
    lease_id: int | None = None
    invoice_number: str = Field(..., min_length=1, max_length=50)
    due_date: date
    items: list[InvoiceItemPayload] = Field(..., min_length=1)
    amount: Decimal | None = Field(None, gt=0)
    notes: str | None = None


class PaymentPeriodView(BaseModel):
    """Read-only view of one period in the payment calendar."""

    id: int | None
    lease_id: int | None
    month: str
    period_start: date
    period_end: date
    due_date: date
    rent_amount: Decimal
    status: PaymentPeriodStatus
    paid_at: date | None = None
    payment_id: int | None = None
    amount_credited: Decimal
    balance_due: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentCalendar(BaseModel):
    """Payment calendar of a lease: schedule bounds plus its periods."""

    lease_id: int | None
    start_date: date
    end_date: date
    rent_amount: Decimal
    periods: list[PaymentPeriodView]
    total_due: Decimal
    total_paid: Decimal
    total_outstanding: Decimal


__all__ = [
    "CreateLeasePayload",
    "UpdateLeasePayload",
    "CreatePaymentPayload",
    "InvoiceItemPayload",
    "CreateInvoicePayload",
    "PaymentPeriodView",
    "PaymentCalendar",
]
