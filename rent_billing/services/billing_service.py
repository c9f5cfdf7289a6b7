"""Session-bound billing operations.

Wires the pure engine (period generator, allocation engine, status
reconciler, calendar projector) to the database. Every mutating operation:

1. holds the lease's lock (per-lease serialization, unrelated leases never wait),
2. runs in one transaction that is rolled back on any error,
3. bumps the versions of the lease, payment and invoice it touches so a
   concurrent writer in another process fails its optimistic check instead
   of double-crediting,
4. writes audit entries for the action and every status change.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Hashable, Iterator

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from rent_billing.config import Settings, get_settings
from rent_billing.errors import (
    ConcurrencyConflictError,
    InvalidAllocationError,
    InvalidTransitionError,
    RecordNotFoundError,
)
from rent_billing.models.allocation import Allocation
from rent_billing.models.invoice import Invoice, InvoiceStatus
from rent_billing.models.lease import Lease, LeaseStatus
from rent_billing.models.payment import Payment, PaymentStatus
from rent_billing.schemas import (
    CreateInvoicePayload,
    CreateLeasePayload,
    CreatePaymentPayload,
    PaymentCalendar,
    UpdateLeasePayload,
)
from rent_billing.services.allocation_service import AllocationResult, AllocationService
from rent_billing.services.audit_service import AuditService
from rent_billing.services.calendar_service import CalendarProjector
from rent_billing.services.locking import LeaseLockRegistry, default_registry
from rent_billing.services.period_service import PeriodGenerator, ScheduleChange
from rent_billing.services.reconciliation_service import StatusChange, StatusReconciler

logger = logging.getLogger(__name__)

# Allowed explicit payment status changes
PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.COMPLETED: {PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.CANCELLED: set(),
}


@dataclass
class ScanSummary:
    """Result of one periodic time-advance scan."""

    scan_date: date
    leases_scanned: int = 0
    invoices_scanned: int = 0
    conflicts: int = 0
    changes: list[StatusChange] = field(default_factory=list)


class BillingService:
    """Billing operations against a database session.

    Args:
        db: SQLAlchemy session
        clock: Returns "today"; injected so tests and scans are deterministic
        locks: Lock registry shared by services of the process
        settings: Settings override (default: get_settings())
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], date] | None = None,
        locks: LeaseLockRegistry | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.clock = clock or date.today
        self.locks = locks if locks is not None else default_registry
        self.settings = settings or get_settings()
        self.generator = PeriodGenerator(self.settings.currency_quantum)
        self.allocator = AllocationService()
        self.reconciler = StatusReconciler()
        self.projector = CalendarProjector()

    # --- lookups -----------------------------------------------------------

    def get_lease(self, lease_id: int) -> Lease:
        lease = self.db.query(Lease).filter(Lease.id == lease_id).first()
        if lease is None:
            raise RecordNotFoundError("Lease", lease_id)
        return lease

    def get_payment(self, payment_id: int) -> Payment:
        payment = self.db.query(Payment).filter(Payment.id == payment_id).first()
        if payment is None:
            raise RecordNotFoundError("Payment", payment_id)
        return payment

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if invoice is None:
            raise RecordNotFoundError("Invoice", invoice_id)
        return invoice

    # --- leases ------------------------------------------------------------

    def create_lease(self, payload: CreateLeasePayload, actor_id: str | None = None) -> Lease:
        """Persist a lease and generate its billing schedule."""
        lease = Lease(
            tenant_id=payload.tenant_id,
            unit_id=payload.unit_id,
            building_id=payload.building_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            rent_amount=payload.rent_amount,
            security_deposit=payload.security_deposit,
            status=payload.status,
            terms=payload.terms.model_dump() if payload.terms else None,
        )
        with self._transaction():
            periods = self.generator.generate(lease)
            lease.periods.extend(periods)
            self.db.add(lease)
            self.db.flush()

            changes = self.reconciler.reconcile(lease, lease.live_periods, [], self.clock())
            AuditService.log(self.db, "lease", lease.id, "generate", actor_id, {"periods": len(periods)})
            AuditService.log_status_changes(self.db, changes, actor_id)

        logger.info("Created lease %s for tenant %s with %d periods", lease.id, lease.tenant_id, len(periods))
        return lease

    def update_lease(
        self,
        lease_id: int,
        payload: UpdateLeasePayload,
        actor_id: str | None = None,
    ) -> ScheduleChange:
        """Apply new lease terms and regenerate the replaceable periods."""
        with self.locks.hold(lease_id), self._transaction():
            lease = self.get_lease(lease_id)
            if lease.is_terminated:
                raise InvalidTransitionError(f"Lease {lease_id} is terminated and cannot be updated")

            updates = payload.model_dump(exclude_unset=True)
            for name in ("start_date", "end_date", "rent_amount", "security_deposit"):
                if name in updates:
                    setattr(lease, name, updates[name])
            if "terms" in updates:
                lease.terms = payload.terms.model_dump() if payload.terms else None

            today = self.clock()
            change = self.generator.regenerate(lease, list(lease.periods), today)
            lease.periods.extend(change.created)
            if lease.status == LeaseStatus.EXPIRED and today < lease.end_date:
                lease.status = LeaseStatus.ACTIVE
                logger.info("Lease %s reactivated, term now ends %s", lease_id, lease.end_date)
            self._touch(lease)
            self.db.flush()

            changes = self.reconciler.reconcile(lease, lease.live_periods, lease.invoices, today)
            AuditService.log(
                self.db,
                "lease",
                lease.id,
                "update",
                actor_id,
                {
                    "fields": payload.model_dump(mode="json", exclude_unset=True),
                    "kept": len(change.kept),
                    "created": len(change.created),
                    "superseded": len(change.superseded),
                },
            )
            AuditService.log_status_changes(self.db, changes, actor_id)
        return change

    def terminate_lease(
        self,
        lease_id: int,
        on_date: date | None = None,
        actor_id: str | None = None,
    ) -> StatusChange:
        """Terminate a lease; its schedule is frozen afterwards."""
        with self.locks.hold(lease_id), self._transaction():
            lease = self.get_lease(lease_id)
            today = self.clock()
            termination = self.reconciler.terminate_lease(lease, on_date or today)
            self._touch(lease)
            self.db.flush()

            changes = self.reconciler.reconcile(lease, lease.live_periods, lease.invoices, today)
            AuditService.log(
                self.db,
                "lease",
                lease.id,
                "terminate",
                actor_id,
                {**termination.as_audit_changes(), "terminated_on": lease.terminated_on.isoformat()},
            )
            AuditService.log_status_changes(self.db, changes, actor_id)
        return termination

    # --- payments ----------------------------------------------------------

    def record_payment(self, payload: CreatePaymentPayload, actor_id: str | None = None) -> Payment:
        """Store a payment event; allocation is a separate step."""
        with self._transaction():
            if payload.lease_id is not None:
                lease = self.get_lease(payload.lease_id)
                if lease.tenant_id != payload.tenant_id:
                    raise InvalidAllocationError(
                        f"Tenant {payload.tenant_id} does not hold lease {payload.lease_id}"
                    )
            if payload.invoice_id is not None:
                self._check_invoice_owner(payload.tenant_id, payload.lease_id, self.get_invoice(payload.invoice_id))

            payment = Payment(
                tenant_id=payload.tenant_id,
                lease_id=payload.lease_id,
                invoice_id=payload.invoice_id,
                amount=payload.amount,
                payment_type=payload.payment_type,
                status=payload.status,
                payment_date=payload.payment_date,
                months_covered=payload.months_covered,
                notes=payload.notes,
            )
            self.db.add(payment)
            self.db.flush()
            AuditService.log(
                self.db,
                "payment",
                payment.id,
                "create",
                actor_id,
                {"amount": str(payment.amount), "status": payment.status.value},
            )

        logger.info("Recorded payment %s: amount=%s, tenant=%s", payment.id, payment.amount, payment.tenant_id)
        return payment

    def apply_payment(
        self,
        payment_id: int,
        invoice_id: int | None = None,
        actor_id: str | None = None,
    ) -> AllocationResult:
        """Allocate a payment to its lease's periods or to an invoice, then reconcile.

        Retries when another writer bumped the lease version first.

        Raises:
            InvalidAllocationError: Payment cannot be allocated
            DuplicateAllocationError: Payment already allocated
            ConcurrencyConflictError: Version conflicts on every attempt
        """
        payment = self.get_payment(payment_id)
        lock_key = self._lock_key(payment, invoice_id)
        attempts = self.settings.allocation_retry_attempts

        for attempt in range(1, attempts + 1):
            with self.locks.hold(lock_key):
                try:
                    return self._apply_payment_once(payment_id, invoice_id, actor_id)
                except StaleDataError:
                    logger.warning(
                        "Version conflict allocating payment %s (attempt %d/%d)",
                        payment_id,
                        attempt,
                        attempts,
                    )
        raise ConcurrencyConflictError(lock_key if isinstance(lock_key, int) else None, attempts)

    def reverse_payment(self, payment_id: int, actor_id: str | None = None) -> list[Allocation]:
        """Withdraw a payment's credit so it can be re-applied or written off."""
        payment = self.get_payment(payment_id)
        with self.locks.hold(self._lock_key(payment)), self._transaction():
            return self._reverse(self.get_payment(payment_id), actor_id)

    def set_payment_status(
        self,
        payment_id: int,
        status: PaymentStatus,
        actor_id: str | None = None,
    ) -> Payment:
        """Change a payment's status; failing or cancelling an allocated payment reverses it."""
        payment = self.get_payment(payment_id)
        with self.locks.hold(self._lock_key(payment)), self._transaction():
            payment = self.get_payment(payment_id)
            old = payment.status
            if status == old:
                return payment
            if status not in PAYMENT_TRANSITIONS[old]:
                raise InvalidTransitionError(f"Payment {payment_id} cannot go from {old.value} to {status.value}")

            payment.status = status
            if status in (PaymentStatus.FAILED, PaymentStatus.CANCELLED) and payment.is_allocated:
                self._reverse(payment, actor_id)
            AuditService.log(
                self.db,
                "payment",
                payment.id,
                "status_change",
                actor_id,
                {"from": old.value, "to": status.value},
            )
        return payment

    # --- invoices ----------------------------------------------------------

    def create_invoice(self, payload: CreateInvoicePayload, actor_id: str | None = None) -> Invoice:
        """Create a draft invoice from its items."""
        with self._transaction():
            if payload.lease_id is not None:
                self.get_lease(payload.lease_id)
            invoice = Invoice.from_items(
                ((item.description, item.amount) for item in payload.items),
                amount=payload.amount,
                tenant_id=payload.tenant_id,
                lease_id=payload.lease_id,
                invoice_number=payload.invoice_number,
                due_date=payload.due_date,
                notes=payload.notes,
            )
            self.db.add(invoice)
            self.db.flush()
            AuditService.log(
                self.db,
                "invoice",
                invoice.id,
                "create",
                actor_id,
                {"amount": str(invoice.amount), "items": len(invoice.items)},
            )
        return invoice

    def send_invoice(self, invoice_id: int, actor_id: str | None = None) -> Invoice:
        """Issue a draft invoice (it may go straight to overdue if its due date passed)."""
        invoice = self.get_invoice(invoice_id)
        with self.locks.hold(self._invoice_lock_key(invoice)), self._transaction():
            invoice = self.get_invoice(invoice_id)
            changes = [self.reconciler.send_invoice(invoice)]
            changes.extend(self.reconciler.reconcile_invoice(invoice, self.clock()))
            AuditService.log_status_changes(self.db, changes, actor_id)
        return invoice

    def cancel_invoice(self, invoice_id: int, actor_id: str | None = None) -> Invoice:
        """Cancel an unpaid invoice."""
        invoice = self.get_invoice(invoice_id)
        with self.locks.hold(self._invoice_lock_key(invoice)), self._transaction():
            invoice = self.get_invoice(invoice_id)
            AuditService.log_status_changes(self.db, [self.reconciler.cancel_invoice(invoice)], actor_id)
        return invoice

    # --- reconciliation ----------------------------------------------------

    def reconcile_lease(self, lease_id: int, actor_id: str | None = None) -> list[StatusChange]:
        """Re-evaluate one lease with its periods and invoices as of today."""
        with self.locks.hold(lease_id), self._transaction():
            lease = self.get_lease(lease_id)
            changes = self.reconciler.reconcile(lease, lease.live_periods, lease.invoices, self.clock())
            if changes:
                self._touch(lease)
                AuditService.log_status_changes(self.db, changes, actor_id)
        return changes

    def run_scan(self) -> ScanSummary:
        """Periodic time-advance scan over every lease and lease-less open invoice.

        Each lease is reconciled under its own lock and transaction; a version
        conflict on one lease is counted and the scan moves on.
        """
        summary = ScanSummary(scan_date=self.clock())

        lease_ids = [row[0] for row in self.db.query(Lease.id).order_by(Lease.id).all()]
        for lease_id in lease_ids:
            try:
                summary.changes.extend(self.reconcile_lease(lease_id))
            except StaleDataError:
                summary.conflicts += 1
                logger.warning("Scan skipped lease %s after a version conflict", lease_id)
            summary.leases_scanned += 1

        invoice_ids = [
            row[0]
            for row in self.db.query(Invoice.id)
            .filter(
                Invoice.lease_id.is_(None),
                Invoice.status.in_([InvoiceStatus.SENT, InvoiceStatus.OVERDUE, InvoiceStatus.PAID]),
            )
            .order_by(Invoice.id)
            .all()
        ]
        for invoice_id in invoice_ids:
            try:
                with self.locks.hold(("invoice", invoice_id)), self._transaction():
                    invoice = self.get_invoice(invoice_id)
                    changes = self.reconciler.reconcile_invoice(invoice, summary.scan_date)
                    AuditService.log_status_changes(self.db, changes, None)
                summary.changes.extend(changes)
            except StaleDataError:
                summary.conflicts += 1
                logger.warning("Scan skipped invoice %s after a version conflict", invoice_id)
            summary.invoices_scanned += 1

        logger.info(
            "Scan for %s: leases=%d, invoices=%d, changes=%d, conflicts=%d",
            summary.scan_date,
            summary.leases_scanned,
            summary.invoices_scanned,
            len(summary.changes),
            summary.conflicts,
        )
        return summary

    def get_calendar(self, lease_id: int) -> PaymentCalendar:
        """Payment calendar of a lease with its current reconciled statuses."""
        lease = self.get_lease(lease_id)
        return self.projector.project(lease, lease.periods)

    # --- internals ---------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _apply_payment_once(
        self,
        payment_id: int,
        invoice_id: int | None,
        actor_id: str | None,
    ) -> AllocationResult:
        with self._transaction():
            payment = self.get_payment(payment_id)
            today = self.clock()
            target_invoice_id = invoice_id or payment.invoice_id

            if target_invoice_id is not None:
                invoice = self.get_invoice(target_invoice_id)
                self._check_invoice_owner(payment.tenant_id, payment.lease_id, invoice)
                lease = invoice.lease
                result = self.allocator.allocate(payment, invoice=invoice, allocated_on=today)
            else:
                if payment.lease_id is None:
                    raise InvalidAllocationError(f"Payment {payment_id} has no lease or invoice to allocate against")
                invoice = None
                lease = self.get_lease(payment.lease_id)
                result = self.allocator.allocate(payment, periods=lease.live_periods, allocated_on=today)

            self.db.add_all(result.allocations)
            for row in (payment, invoice, lease):
                if row is not None:
                    self._touch(row)
            self.db.flush()

            if lease is not None:
                changes = self.reconciler.reconcile(lease, lease.live_periods, lease.invoices, today)
            else:
                changes = self.reconciler.reconcile_invoice(invoice, today)

            AuditService.log(
                self.db,
                "payment",
                payment.id,
                "allocate",
                actor_id,
                {
                    "applied": str(result.amount_applied),
                    "remainder": str(result.remainder),
                    "periods": [period.month_key for period in result.updated_periods],
                    "invoice_id": invoice.id if invoice is not None else None,
                },
            )
            AuditService.log_status_changes(self.db, changes, actor_id)
        return result

    def _reverse(self, payment: Payment, actor_id: str | None) -> list[Allocation]:
        today = self.clock()
        reversed_allocations = self.allocator.reverse(payment, today)

        leases = {allocation.period.lease for allocation in reversed_allocations if allocation.period is not None}
        invoices = {allocation.invoice for allocation in reversed_allocations if allocation.invoice is not None}
        leases.update(invoice.lease for invoice in invoices if invoice.lease is not None)

        self._touch(payment)
        for invoice in invoices:
            self._touch(invoice)

        changes: list[StatusChange] = []
        for lease in leases:
            self._touch(lease)
            changes.extend(self.reconciler.reconcile(lease, lease.live_periods, lease.invoices, today))
        for invoice in invoices:
            if invoice.lease is None:
                changes.extend(self.reconciler.reconcile_invoice(invoice, today))

        if reversed_allocations:
            AuditService.log(
                self.db,
                "payment",
                payment.id,
                "reverse",
                actor_id,
                {"allocations": len(reversed_allocations)},
            )
        AuditService.log_status_changes(self.db, changes, actor_id)
        return reversed_allocations

    def _lock_key(self, payment: Payment, invoice_id: int | None = None) -> Hashable:
        target_invoice_id = invoice_id or payment.invoice_id
        if target_invoice_id is not None:
            return self._invoice_lock_key(self.get_invoice(target_invoice_id))
        return payment.lease_id

    @staticmethod
    def _invoice_lock_key(invoice: Invoice) -> Hashable:
        if invoice.lease_id is not None:
            return invoice.lease_id
        return ("invoice", invoice.id)

    @staticmethod
    def _check_invoice_owner(tenant_id: str, lease_id: int | None, invoice: Invoice) -> None:
        if invoice.tenant_id != tenant_id:
            raise InvalidAllocationError(f"Invoice {invoice.invoice_number} is not billed to tenant {tenant_id}")
        if lease_id is not None and invoice.lease_id is not None and invoice.lease_id != lease_id:
            raise InvalidAllocationError(f"Invoice {invoice.invoice_number} does not belong to lease {lease_id}")

    @staticmethod
    def _touch(row: Lease | Payment | Invoice) -> None:
        # Forces an UPDATE so the version check runs even when only related rows changed
        row.updated_at = datetime.now(timezone.utc)


__all__ = ["BillingService", "ScanSummary", "PAYMENT_TRANSITIONS"]
