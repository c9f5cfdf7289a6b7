"""Shared pytest fixtures for billing engine tests."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rent_billing.config import Settings
from rent_billing.models import (
    Base,
    Invoice,
    InvoiceStatus,
    Lease,
    Payment,
    PaymentStatus,
    PaymentType,
)
from rent_billing.schemas import CreateLeasePayload, CreatePaymentPayload
from rent_billing.services.billing_service import BillingService
from rent_billing.services.locking import LeaseLockRegistry
from rent_billing.services.period_service import PeriodGenerator


@pytest.fixture
def db_session():
    """Create test database session."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def make_lease():
    """Factory for transient leases (no database)."""

    def _make(
        start=date(2024, 1, 1),
        end=date(2024, 4, 1),
        rent="1000.00",
        lease_id=1,
        **kwargs,
    ) -> Lease:
        return Lease(
            id=lease_id,
            tenant_id=kwargs.pop("tenant_id", "tenant-1"),
            unit_id=kwargs.pop("unit_id", "unit-1"),
            building_id=kwargs.pop("building_id", "building-1"),
            start_date=start,
            end_date=end,
            rent_amount=Decimal(rent),
            **kwargs,
        )

    return _make


@pytest.fixture
def scheduled_lease(make_lease):
    """Factory for a transient lease with its generated periods attached."""

    def _make(**kwargs) -> Lease:
        lease = make_lease(**kwargs)
        lease.periods.extend(PeriodGenerator().generate(lease))
        return lease

    return _make


@pytest.fixture
def make_payment():
    """Factory for transient completed rent payments."""

    def _make(
        amount="1000.00",
        payment_id=1,
        payment_date=date(2024, 2, 10),
        months=None,
        status=PaymentStatus.COMPLETED,
        **kwargs,
    ) -> Payment:
        return Payment(
            id=payment_id,
            tenant_id=kwargs.pop("tenant_id", "tenant-1"),
            amount=Decimal(amount),
            payment_type=kwargs.pop("payment_type", PaymentType.RENT),
            status=status,
            payment_date=payment_date,
            months_covered=months,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_invoice():
    """Factory for transient sent invoices."""

    def _make(
        amount="1500.00",
        invoice_id=1,
        due_date=date(2024, 3, 31),
        status=InvoiceStatus.SENT,
        **kwargs,
    ) -> Invoice:
        return Invoice(
            id=invoice_id,
            tenant_id=kwargs.pop("tenant_id", "tenant-1"),
            invoice_number=kwargs.pop("invoice_number", f"INV-{invoice_id:04d}"),
            amount=Decimal(amount),
            due_date=due_date,
            status=status,
            **kwargs,
        )

    return _make


class FakeClock:
    """Settable "today" for services that take an injected clock."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def clock():
    return FakeClock(date(2024, 1, 10))


@pytest.fixture
def billing(db_session, clock):
    """BillingService on the in-memory database with its own lock registry."""
    return BillingService(db_session, clock=clock, locks=LeaseLockRegistry(), settings=Settings())


@pytest.fixture
def lease_payload():
    """Factory for lease creation payloads (Jan-Mar 2024 at 1000)."""

    def _make(**overrides) -> CreateLeasePayload:
        data = {
            "tenant_id": "tenant-1",
            "unit_id": "unit-1",
            "building_id": "building-1",
            "start_date": date(2024, 1, 1),
            "end_date": date(2024, 4, 1),
            "rent_amount": Decimal("1000.00"),
        }
        data.update(overrides)
        return CreateLeasePayload(**data)

    return _make


@pytest.fixture
def payment_payload():
    """Factory for payment payloads from tenant-1."""

    def _make(amount="1000.00", payment_date=date(2024, 2, 10), **kwargs) -> CreatePaymentPayload:
        return CreatePaymentPayload(
            tenant_id=kwargs.pop("tenant_id", "tenant-1"),
            amount=Decimal(amount),
            payment_date=payment_date,
            **kwargs,
        )

    return _make
