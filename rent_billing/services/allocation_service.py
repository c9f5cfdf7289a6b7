"""Allocation engine for applying payments to rent periods or invoices.

Targeting rules:
- Explicit months (``payment.months_covered``): credit exactly those months,
  oldest first, up to each period's outstanding balance. The last targeted
  month may receive partial credit.
- No months: settle outstanding (unpaid/overdue) periods oldest first. A
  payment too small to settle the oldest one is credited to it as partial
  credit; otherwise whatever cannot settle the next whole period is returned.
- Invoice: credit up to the invoice's outstanding balance.

Anything not consumed is reported as ``remainder``; it is never applied
implicitly. Every check runs before the first mutation, so a rejected call
leaves periods, invoices and allocations untouched.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from rent_billing.errors import DuplicateAllocationError, InvalidAllocationError
from rent_billing.models.allocation import Allocation
from rent_billing.models.invoice import Invoice, InvoiceStatus
from rent_billing.models.payment import Payment, PaymentStatus
from rent_billing.models.payment_period import PaymentPeriod, PaymentPeriodStatus
from rent_billing.services.period_service import parse_month_key

logger = logging.getLogger(__name__)

OPEN_INVOICE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


@dataclass
class AllocationResult:
    """Outcome of allocating one payment."""

    updated_periods: list[PaymentPeriod] = field(default_factory=list)
    updated_invoice: Invoice | None = None
    remainder: Decimal = Decimal("0")
    allocations: list[Allocation] = field(default_factory=list)

    @property
    def settled_periods(self) -> list[PaymentPeriod]:
        return [period for period in self.updated_periods if period.status == PaymentPeriodStatus.PAID]

    @property
    def amount_applied(self) -> Decimal:
        return sum((allocation.amount for allocation in self.allocations), Decimal("0"))

    @property
    def has_remainder(self) -> bool:
        return self.remainder > 0


class AllocationService:
    """Applies payments against periods or invoices, keyed by payment identifier."""

    def allocate(
        self,
        payment: Payment,
        periods: Iterable[PaymentPeriod] | None = None,
        invoice: Invoice | None = None,
        allocated_on: date | None = None,
    ) -> AllocationResult:
        """Allocate a payment to the lease's periods or to an invoice.

        Args:
            payment: Completed payment with a positive amount
            periods: Candidate periods of the lease (superseded ones are ignored)
            invoice: Target invoice (mutually exclusive with periods)
            allocated_on: Booking date of the allocation (default: payment date)

        Returns:
            AllocationResult with touched periods/invoice and the remainder

        Raises:
            InvalidAllocationError: Bad amount, payment status, target or invoice status
            DuplicateAllocationError: Payment already has active allocations
        """
        amount = self._validate_payment(payment)
        if (periods is None) == (invoice is None):
            raise InvalidAllocationError("Exactly one of periods or invoice must be given")

        candidates = list(periods) if periods is not None else []
        if self.is_allocated(payment, candidates, invoice):
            logger.warning("Rejected duplicate allocation of payment %s", payment.id)
            raise DuplicateAllocationError(payment.id)

        booked_on = allocated_on or payment.payment_date
        if invoice is not None:
            return self._allocate_invoice(payment, amount, invoice, booked_on)
        return self._allocate_periods(payment, amount, candidates, booked_on)

    def is_allocated(
        self,
        payment: Payment,
        periods: Iterable[PaymentPeriod] = (),
        invoice: Invoice | None = None,
    ) -> bool:
        """Whether the payment identifier already holds active credit.

        Checks the payment's own allocations and, for records loaded
        separately, any active allocation on the targets carrying the same id.
        """
        if payment.active_allocations:
            return True
        if payment.id is None:
            return False

        targets = list(periods)
        allocations = [allocation for period in targets for allocation in period.active_allocations]
        if invoice is not None:
            allocations.extend(invoice.active_allocations)
        return any(
            allocation.payment_id == payment.id
            or (allocation.payment is not None and allocation.payment.id == payment.id)
            for allocation in allocations
        )

    def reverse(self, payment: Payment, reversed_on: date) -> list[Allocation]:
        """Reverse every active allocation of a payment.

        Statuses are not touched here: the reconciler moves settled periods
        back to unpaid/overdue and paid invoices back to sent/overdue.

        Args:
            payment: Payment whose credit is withdrawn
            reversed_on: Date of the reversal

        Returns:
            The allocations that were reversed (empty if none were active)
        """
        reversed_allocations = payment.active_allocations
        for allocation in reversed_allocations:
            allocation.reversed_on = reversed_on

        if reversed_allocations:
            logger.info(
                "Reversed %d allocations of payment %s (amount=%s)",
                len(reversed_allocations),
                payment.id,
                sum((allocation.amount for allocation in reversed_allocations), Decimal("0")),
            )
        return reversed_allocations

    @staticmethod
    def _validate_payment(payment: Payment) -> Decimal:
        amount = Decimal(str(payment.amount)) if payment.amount is not None else Decimal("0")
        if amount <= 0:
            raise InvalidAllocationError(f"Payment {payment.id} amount must be positive, got {payment.amount}")
        if payment.status != PaymentStatus.COMPLETED:
            raise InvalidAllocationError(
                f"Payment {payment.id} is {payment.status.value}; only completed payments can be allocated"
            )
        return amount

    def _plan_periods(
        self,
        payment: Payment,
        amount: Decimal,
        periods: list[PaymentPeriod],
    ) -> tuple[list[tuple[PaymentPeriod, Decimal]], Decimal]:
        live = sorted((period for period in periods if not period.superseded), key=lambda p: p.period_start)
        plan: list[tuple[PaymentPeriod, Decimal]] = []
        left = amount

        if payment.months_covered:
            by_month = {period.month: period for period in live}
            try:
                months = sorted({parse_month_key(key) for key in payment.months_covered})
            except ValueError as e:
                raise InvalidAllocationError(str(e)) from e
            missing = [month for month in months if month not in by_month]
            if missing:
                raise InvalidAllocationError(
                    "No billing period for "
                    + ", ".join(f"{month.year:04d}-{month.month:02d}" for month in missing)
                )
            for month in months:
                if left <= 0:
                    break
                period = by_month[month]
                due = period.balance_due
                if due <= 0:
                    continue
                share = min(left, due)
                plan.append((period, share))
                left -= share
            return plan, left

        outstanding = [
            period for period in live if period.status != PaymentPeriodStatus.PAID and period.balance_due > 0
        ]
        for period in outstanding:
            due = period.balance_due
            if left >= due:
                plan.append((period, due))
                left -= due
                continue
            if not plan:
                plan.append((period, left))
                left = Decimal("0")
            break
        return plan, left

    def _allocate_periods(
        self,
        payment: Payment,
        amount: Decimal,
        periods: list[PaymentPeriod],
        allocated_on: date,
    ) -> AllocationResult:
        plan, remainder = self._plan_periods(payment, amount, periods)
        result = AllocationResult(remainder=remainder)

        for period, share in plan:
            allocation = Allocation(payment=payment, period=period, amount=share, allocated_on=allocated_on)
            result.allocations.append(allocation)
            result.updated_periods.append(period)
            if period.amount_credited >= period.rent_amount:
                period.status = PaymentPeriodStatus.PAID
                period.paid_at = payment.payment_date
                period.payment_id = payment.id

        logger.info(
            "Allocated payment %s: periods=%s, settled=%d, remainder=%s",
            payment.id,
            [period.month_key for period in result.updated_periods],
            len(result.settled_periods),
            result.remainder,
        )
        return result

    def _allocate_invoice(
        self,
        payment: Payment,
        amount: Decimal,
        invoice: Invoice,
        allocated_on: date,
    ) -> AllocationResult:
        if invoice.status not in OPEN_INVOICE_STATUSES:
            raise InvalidAllocationError(
                f"Invoice {invoice.invoice_number} is {invoice.status.value} and accepts no payments"
            )

        share = min(amount, invoice.balance_due)
        result = AllocationResult(updated_invoice=invoice, remainder=amount - share)
        # Linked first: loading invoice.payments may autoflush the session
        if payment not in invoice.payments:
            invoice.payments.append(payment)
        if share > 0:
            result.allocations.append(
                Allocation(payment=payment, invoice=invoice, amount=share, allocated_on=allocated_on)
            )
        if invoice.amount_credited >= invoice.amount:
            invoice.status = InvoiceStatus.PAID

        logger.info(
            "Allocated payment %s to invoice %s: applied=%s, remainder=%s, status=%s",
            payment.id,
            invoice.invoice_number,
            share,
            result.remainder,
            invoice.status.value,
        )
        return result


__all__ = ["AllocationService", "AllocationResult"]
