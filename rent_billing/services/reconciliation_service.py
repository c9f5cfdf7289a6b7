"""Status reconciliation for periods, invoices and leases.

Derived statuses are recomputed from recorded allocations and an injected
current date; running the reconciler again on unchanged inputs changes
nothing. Explicit actions (send/cancel invoice, terminate lease) live here too
so every status transition goes through one place.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from rent_billing.errors import InvalidTransitionError
from rent_billing.models.invoice import Invoice, InvoiceStatus
from rent_billing.models.lease import Lease, LeaseStatus
from rent_billing.models.payment_period import PaymentPeriod, PaymentPeriodStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusChange:
    """One status transition applied by the reconciler."""

    entity_type: str
    entity_id: int | None
    old_status: str
    new_status: str

    def as_audit_changes(self) -> dict:
        return {"from": self.old_status, "to": self.new_status}


def _change(entity_type: str, entity_id: int | None, old, new) -> StatusChange:
    return StatusChange(entity_type, entity_id, old.value, new.value)


class StatusReconciler:
    """Recomputes period, invoice and lease statuses."""

    def reconcile_period(
        self,
        period: PaymentPeriod,
        current_date: date,
        lease: Lease | None = None,
    ) -> list[StatusChange]:
        """Bring one period's status in line with its credit and due date.

        A period marked paid without any allocation history (imported data)
        stays paid. For a terminated lease, periods starting after the
        termination date are not moved to overdue.
        """
        if period.superseded:
            return []

        old = period.status
        if self._is_settled(period):
            new = PaymentPeriodStatus.PAID
            self._fill_settlement(period)
        else:
            period.paid_at = None
            period.payment_id = None
            lease = lease or period.lease
            frozen = (
                lease is not None
                and lease.is_terminated
                and lease.terminated_on is not None
                and period.period_start > lease.terminated_on
            )
            if frozen:
                new = PaymentPeriodStatus.UNPAID if old == PaymentPeriodStatus.PAID else old
            elif current_date > period.due_date:
                new = PaymentPeriodStatus.OVERDUE
            else:
                new = PaymentPeriodStatus.UNPAID

        if new == old:
            return []
        period.status = new
        logger.info("Period %s (%s) %s -> %s", period.id, period.month_key, old.value, new.value)
        return [_change("period", period.id, old, new)]

    def reconcile_invoice(self, invoice: Invoice, current_date: date) -> list[StatusChange]:
        """Bring one invoice's status in line with its credit and due date.

        Draft and cancelled invoices are left alone.
        """
        old = invoice.status
        if old in (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED):
            return []
        if old == InvoiceStatus.PAID and not invoice.allocations:
            return []

        if invoice.amount_credited >= invoice.amount:
            new = InvoiceStatus.PAID
        elif current_date > invoice.due_date:
            new = InvoiceStatus.OVERDUE
        else:
            new = InvoiceStatus.SENT

        if new == old:
            return []
        invoice.status = new
        logger.info("Invoice %s %s -> %s", invoice.invoice_number, old.value, new.value)
        return [_change("invoice", invoice.id, old, new)]

    def reconcile_lease(self, lease: Lease, current_date: date) -> list[StatusChange]:
        """Expire an active lease once its end date is reached."""
        old = lease.status
        if old == LeaseStatus.ACTIVE and current_date >= lease.end_date:
            lease.status = LeaseStatus.EXPIRED
            logger.info("Lease %s expired on %s", lease.id, lease.end_date)
            return [_change("lease", lease.id, old, lease.status)]
        return []

    def reconcile(
        self,
        lease: Lease,
        periods: Iterable[PaymentPeriod],
        invoices: Iterable[Invoice],
        current_date: date,
    ) -> list[StatusChange]:
        """Reconcile a lease together with its periods and invoices."""
        changes = self.reconcile_lease(lease, current_date)
        for period in periods:
            changes.extend(self.reconcile_period(period, current_date, lease))
        for invoice in invoices:
            changes.extend(self.reconcile_invoice(invoice, current_date))
        return changes

    def send_invoice(self, invoice: Invoice) -> StatusChange:
        """Issue a draft invoice."""
        if invoice.status != InvoiceStatus.DRAFT:
            raise InvalidTransitionError(
                f"Invoice {invoice.invoice_number} is {invoice.status.value}; only drafts can be sent"
            )
        invoice.status = InvoiceStatus.SENT
        logger.info("Invoice %s sent", invoice.invoice_number)
        return _change("invoice", invoice.id, InvoiceStatus.DRAFT, InvoiceStatus.SENT)

    def cancel_invoice(self, invoice: Invoice) -> StatusChange:
        """Cancel an invoice that has not been paid."""
        old = invoice.status
        if old in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            raise InvalidTransitionError(
                f"Invoice {invoice.invoice_number} is {old.value} and cannot be cancelled"
            )
        invoice.status = InvoiceStatus.CANCELLED
        logger.info("Invoice %s cancelled (was %s)", invoice.invoice_number, old.value)
        return _change("invoice", invoice.id, old, InvoiceStatus.CANCELLED)

    def terminate_lease(self, lease: Lease, on_date: date) -> StatusChange:
        """Terminate a lease; terminal, the schedule is frozen afterwards."""
        old = lease.status
        if old == LeaseStatus.TERMINATED:
            raise InvalidTransitionError(f"Lease {lease.id} is already terminated")
        lease.status = LeaseStatus.TERMINATED
        lease.terminated_on = on_date
        logger.info("Lease %s terminated on %s (was %s)", lease.id, on_date, old.value)
        return _change("lease", lease.id, old, LeaseStatus.TERMINATED)

    @staticmethod
    def _is_settled(period: PaymentPeriod) -> bool:
        if not period.allocations:
            return period.status == PaymentPeriodStatus.PAID
        return period.amount_credited >= period.rent_amount

    @staticmethod
    def _fill_settlement(period: PaymentPeriod) -> None:
        if period.paid_at is not None and period.payment_id is not None:
            return
        active = period.active_allocations
        if not active:
            return
        # Most recent allocation wins; list order breaks ties on the same day
        _, latest = max(enumerate(active), key=lambda item: (item[1].allocated_on, item[0]))
        period.paid_at = latest.payment.payment_date
        period.payment_id = latest.payment_id if latest.payment_id is not None else latest.payment.id


__all__ = ["StatusReconciler", "StatusChange"]
