"""Payment calendar projection for presentation."""

from decimal import Decimal
from typing import Iterable

from rent_billing.models.lease import Lease
from rent_billing.models.payment_period import PaymentPeriod
from rent_billing.schemas import PaymentCalendar, PaymentPeriodView


class CalendarProjector:
    """Assembles the read-only payment calendar of a lease.

    Copies reconciled statuses as they are; it never derives a status itself.
    """

    def project(self, lease: Lease, periods: Iterable[PaymentPeriod]) -> PaymentCalendar:
        """Build the calendar from a lease and its periods.

        Args:
            lease: Lease providing the schedule bounds
            periods: Periods of the lease (superseded ones are left out)

        Returns:
            PaymentCalendar with periods sorted by period start
        """
        live = sorted(
            (period for period in periods if not period.superseded),
            key=lambda period: period.period_start,
        )
        views = [self._view(period) for period in live]

        return PaymentCalendar(
            lease_id=lease.id,
            start_date=lease.start_date,
            end_date=lease.end_date,
            rent_amount=lease.rent_amount,
            periods=views,
            total_due=sum((view.rent_amount for view in views), Decimal("0")),
            total_paid=sum((view.amount_credited for view in views), Decimal("0")),
            total_outstanding=sum((view.balance_due for view in views), Decimal("0")),
        )

    @staticmethod
    def _view(period: PaymentPeriod) -> PaymentPeriodView:
        return PaymentPeriodView(
            id=period.id,
            lease_id=period.lease_id,
            month=period.month_key,
            period_start=period.period_start,
            period_end=period.period_end,
            due_date=period.due_date,
            rent_amount=period.rent_amount,
            status=period.status,
            paid_at=period.paid_at,
            payment_id=period.payment_id,
            amount_credited=period.amount_credited,
            balance_due=period.balance_due,
        )


__all__ = ["CalendarProjector"]
