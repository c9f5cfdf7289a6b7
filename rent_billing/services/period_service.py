"""Billing period generation for leases.

Partitions a lease term ``[start_date, end_date)`` into calendar-month periods.
Boundary months that the term only partly covers are prorated:

    rent_amount * days_in_period / days_in_calendar_month

rounded half-up to the currency quantum.
"""

import calendar
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from rent_billing.errors import InvalidScheduleError, InvalidTransitionError
from rent_billing.models.lease import Lease
from rent_billing.models.payment_period import PaymentPeriod, PaymentPeriodStatus

logger = logging.getLogger(__name__)

MONTH_KEY_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def month_start(day: date) -> date:
    return day.replace(day=1)


def next_month(day: date) -> date:
    """First day of the month following ``day``'s month."""
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def days_in_month(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]


def month_key(day: date) -> str:
    """Calendar period identifier, e.g. ``2024-02``."""
    return f"{day.year:04d}-{day.month:02d}"


def parse_month_key(key: str) -> date:
    """Parse a ``YYYY-MM`` identifier into the first day of that month.

    Raises:
        ValueError: If the key is malformed or the month is out of range
    """
    match = MONTH_KEY_PATTERN.match(key.strip()) if isinstance(key, str) else None
    if not match:
        raise ValueError(f"Invalid month '{key}', expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month '{key}', month must be 01-12")
    return date(year, month, 1)


def prorate(
    rent_amount: Decimal,
    days: int,
    total_days: int,
    quantum: Decimal = Decimal("0.01"),
) -> Decimal:
    """Rent for ``days`` out of a ``total_days`` month, rounded half-up."""
    rent = Decimal(str(rent_amount))
    if days >= total_days:
        return rent.quantize(quantum, rounding=ROUND_HALF_UP)
    return (rent * days / total_days).quantize(quantum, rounding=ROUND_HALF_UP)


@dataclass
class ScheduleChange:
    """Outcome of regenerating a lease schedule."""

    kept: list[PaymentPeriod] = field(default_factory=list)
    created: list[PaymentPeriod] = field(default_factory=list)
    superseded: list[PaymentPeriod] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.superseded)


class PeriodGenerator:
    """Derives the ordered billing periods of a lease."""

    def __init__(self, quantum: Decimal = Decimal("0.01")):
        self.quantum = quantum

    @staticmethod
    def validate_terms(start_date: date, end_date: date, rent_amount: Decimal) -> None:
        """Check that the lease can produce a schedule.

        Raises:
            InvalidScheduleError: If end_date <= start_date or rent_amount <= 0
        """
        if start_date is None or end_date is None:
            raise InvalidScheduleError("Lease start_date and end_date are required")
        if end_date <= start_date:
            raise InvalidScheduleError(
                f"Lease end_date {end_date} must be after start_date {start_date}"
            )
        if rent_amount is None or Decimal(str(rent_amount)) <= 0:
            raise InvalidScheduleError(f"Lease rent_amount must be positive, got {rent_amount}")

    def generate(self, lease: Lease) -> list[PaymentPeriod]:
        """Generate the full schedule for a lease.

        The periods are not attached to the lease; the caller decides whether
        to persist them.

        Args:
            lease: Lease with start_date, end_date and rent_amount set

        Returns:
            Unpaid periods ordered by period_start

        Raises:
            InvalidScheduleError: If the lease terms are invalid
        """
        try:
            self.validate_terms(lease.start_date, lease.end_date, lease.rent_amount)
        except InvalidScheduleError as e:
            logger.warning("Rejected schedule for lease %s: %s", lease.id, e)
            raise

        periods = self._build_periods(lease)
        logger.info(
            "Generated %d periods for lease %s (%s to %s, rent=%s)",
            len(periods),
            lease.id,
            lease.start_date,
            lease.end_date,
            lease.rent_amount,
        )
        return periods

    def regenerate(
        self,
        lease: Lease,
        existing: list[PaymentPeriod],
        current_date: date,
    ) -> ScheduleChange:
        """Rebuild the replaceable part of a schedule after a lease update.

        Paid periods, periods carrying partial credit, and periods of months
        that have already elapsed keep their snapshot. Every other live period
        is superseded and its month regenerated from the lease's current terms.

        Args:
            lease: Lease with the updated terms already applied
            existing: Periods currently attached to the lease
            current_date: Injected "today"

        Returns:
            ScheduleChange listing kept, created and superseded periods

        Raises:
            InvalidTransitionError: If the lease is terminated
            InvalidScheduleError: If the new terms are invalid
        """
        if lease.is_terminated:
            raise InvalidTransitionError(f"Lease {lease.id} is terminated; its schedule is frozen")
        self.validate_terms(lease.start_date, lease.end_date, lease.rent_amount)

        current_month = month_start(current_date)
        change = ScheduleChange()

        for period in existing:
            if period.superseded:
                continue
            if (
                period.status == PaymentPeriodStatus.PAID
                or period.active_allocations
                or period.period_end <= current_month
            ):
                change.kept.append(period)
            else:
                change.superseded.append(period)

        covered_months = {period.month for period in change.kept}
        change.created = [
            period for period in self._build_periods(lease) if period.month not in covered_months
        ]

        for period in change.superseded:
            period.superseded = True

        logger.info(
            "Regenerated schedule for lease %s: kept=%d, created=%d, superseded=%d",
            lease.id,
            len(change.kept),
            len(change.created),
            len(change.superseded),
        )
        return change

    def _build_periods(self, lease: Lease) -> list[PaymentPeriod]:
        periods = []
        cursor = lease.start_date
        while cursor < lease.end_date:
            month = month_start(cursor)
            slice_end = min(next_month(cursor), lease.end_date)
            rent = prorate(
                lease.rent_amount,
                (slice_end - cursor).days,
                days_in_month(month),
                self.quantum,
            )
            periods.append(
                PaymentPeriod(
                    lease_id=lease.id,
                    month=month,
                    period_start=cursor,
                    period_end=slice_end,
                    rent_amount=rent,
                    status=PaymentPeriodStatus.UNPAID,
                )
            )
            cursor = slice_end
        return periods


__all__ = [
    "PeriodGenerator",
    "ScheduleChange",
    "days_in_month",
    "month_key",
    "month_start",
    "next_month",
    "parse_month_key",
    "prorate",
]
