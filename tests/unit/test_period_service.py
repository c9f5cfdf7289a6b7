"""Unit tests for billing period generation."""

from datetime import date
from decimal import Decimal

import pytest

from rent_billing.errors import InvalidScheduleError, InvalidTransitionError
from rent_billing.models import Allocation, LeaseStatus, PaymentPeriodStatus
from rent_billing.services.period_service import (
    PeriodGenerator,
    month_key,
    next_month,
    parse_month_key,
    prorate,
)


class TestMonthHelpers:
    """Test calendar month helpers."""

    def test_month_key_format(self):
        assert month_key(date(2024, 2, 17)) == "2024-02"

    def test_parse_month_key(self):
        assert parse_month_key("2024-11") == date(2024, 11, 1)

    @pytest.mark.parametrize("key", ["2024-13", "2024-1", "24-01", "February", ""])
    def test_parse_month_key_rejects_malformed(self, key):
        with pytest.raises(ValueError):
            parse_month_key(key)

    def test_next_month_crosses_year(self):
        assert next_month(date(2024, 12, 20)) == date(2025, 1, 1)

    def test_prorate_rounds_half_up(self):
        """1.35 / 30 = 0.045 must round up to 0.05, not to even."""
        assert prorate(Decimal("1.35"), 1, 30) == Decimal("0.05")

    def test_prorate_full_month_is_exact_rent(self):
        assert prorate(Decimal("1234.56"), 31, 31) == Decimal("1234.56")


class TestGenerate:
    """Test schedule generation."""

    @pytest.fixture
    def generator(self):
        return PeriodGenerator()

    def test_three_full_months(self, generator, make_lease):
        """Lease 2024-01-01 to 2024-04-01 at 1000 yields Jan, Feb, Mar at 1000."""
        periods = generator.generate(make_lease())

        assert [period.month_key for period in periods] == ["2024-01", "2024-02", "2024-03"]
        assert all(period.rent_amount == Decimal("1000.00") for period in periods)
        assert all(period.status == PaymentPeriodStatus.UNPAID for period in periods)
        assert all(period.lease_id == 1 for period in periods)

    def test_prorated_boundaries(self, generator, make_lease):
        """Mid-month start and end are prorated by days in the calendar month."""
        lease = make_lease(start=date(2024, 1, 15), end=date(2024, 3, 10))

        periods = generator.generate(lease)

        # Jan: 17/31 days, Feb: full, Mar: 9/31 days
        assert [period.rent_amount for period in periods] == [
            Decimal("548.39"),
            Decimal("1000.00"),
            Decimal("290.32"),
        ]

    def test_periods_partition_the_term(self, generator, make_lease):
        lease = make_lease(start=date(2024, 11, 15), end=date(2025, 2, 20))

        periods = generator.generate(lease)

        assert periods[0].period_start == lease.start_date
        assert periods[-1].period_end == lease.end_date
        for previous, current in zip(periods, periods[1:]):
            assert previous.period_end == current.period_start
        assert len({period.month for period in periods}) == len(periods)
        assert [period.month_key for period in periods] == ["2024-11", "2024-12", "2025-01", "2025-02"]

    def test_total_is_full_months_plus_prorated_boundaries(self, generator, make_lease):
        lease = make_lease(start=date(2024, 11, 15), end=date(2025, 2, 1), rent="900.00")

        periods = generator.generate(lease)

        # Nov: 16/30 days = 480.00, Dec and Jan full
        assert sum(period.rent_amount for period in periods) == Decimal("900.00") * 2 + Decimal("480.00")

    def test_single_partial_month(self, generator, make_lease):
        lease = make_lease(start=date(2024, 2, 1), end=date(2024, 2, 15))

        periods = generator.generate(lease)

        # 14 of 29 days in February 2024
        assert len(periods) == 1
        assert periods[0].rent_amount == Decimal("482.76")
        assert periods[0].due_date == date(2024, 2, 29)

    @pytest.mark.parametrize(
        "start,end",
        [
            (date(2024, 4, 1), date(2024, 1, 1)),
            (date(2024, 4, 1), date(2024, 4, 1)),
        ],
    )
    def test_rejects_bad_dates(self, generator, make_lease, start, end):
        with pytest.raises(InvalidScheduleError, match="must be after start_date"):
            generator.generate(make_lease(start=start, end=end))

    @pytest.mark.parametrize("rent", ["0", "-100.00"])
    def test_rejects_non_positive_rent(self, generator, make_lease, rent):
        with pytest.raises(InvalidScheduleError, match="rent_amount must be positive"):
            generator.generate(make_lease(rent=rent))


class TestRegenerate:
    """Test schedule regeneration after lease updates."""

    @pytest.fixture
    def generator(self):
        return PeriodGenerator()

    def test_rent_change_replaces_current_and_future_unpaid(self, generator, scheduled_lease):
        lease = scheduled_lease()
        january, february, march = lease.live_periods
        january.status = PaymentPeriodStatus.PAID
        lease.rent_amount = Decimal("1200.00")

        change = generator.regenerate(lease, list(lease.periods), date(2024, 2, 15))
        lease.periods.extend(change.created)

        assert change.kept == [january]
        assert change.superseded == [february, march]
        assert february.superseded and march.superseded
        assert [period.rent_amount for period in lease.live_periods] == [
            Decimal("1000.00"),
            Decimal("1200.00"),
            Decimal("1200.00"),
        ]
        # Superseded periods are retained, not deleted
        assert len(lease.periods) == 5

    def test_elapsed_unpaid_month_keeps_snapshot(self, generator, scheduled_lease):
        lease = scheduled_lease()
        january = lease.live_periods[0]
        lease.rent_amount = Decimal("1100.00")

        change = generator.regenerate(lease, list(lease.periods), date(2024, 2, 1))

        assert january in change.kept
        assert january.rent_amount == Decimal("1000.00")
        assert not january.superseded

    def test_partially_credited_period_is_kept(self, generator, scheduled_lease, make_payment):
        lease = scheduled_lease()
        march = lease.live_periods[2]
        Allocation(
            payment=make_payment(amount="300.00"),
            period=march,
            amount=Decimal("300.00"),
            allocated_on=date(2024, 1, 5),
        )
        lease.rent_amount = Decimal("1200.00")

        change = generator.regenerate(lease, list(lease.periods), date(2024, 1, 10))

        assert march in change.kept
        assert {period.month_key for period in change.created} == {"2024-01", "2024-02"}

    def test_extending_end_date_adds_months(self, generator, scheduled_lease):
        lease = scheduled_lease()
        lease.end_date = date(2024, 6, 1)

        change = generator.regenerate(lease, list(lease.periods), date(2024, 1, 10))
        lease.periods.extend(change.created)

        assert [period.month_key for period in lease.live_periods] == [
            "2024-01",
            "2024-02",
            "2024-03",
            "2024-04",
            "2024-05",
        ]

    def test_terminated_lease_is_frozen(self, generator, scheduled_lease):
        lease = scheduled_lease(status=LeaseStatus.TERMINATED)

        with pytest.raises(InvalidTransitionError):
            generator.regenerate(lease, list(lease.periods), date(2024, 2, 1))

    def test_invalid_new_terms_rejected_without_changes(self, generator, scheduled_lease):
        lease = scheduled_lease()
        lease.end_date = date(2023, 12, 1)

        with pytest.raises(InvalidScheduleError):
            generator.regenerate(lease, list(lease.periods), date(2024, 1, 10))

        assert not any(period.superseded for period in lease.periods)
