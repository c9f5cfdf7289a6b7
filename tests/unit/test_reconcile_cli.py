"""Tests for the reconciliation scan CLI."""

import logging
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rent_billing.cli.reconcile import main, parse_args
from rent_billing.config import get_settings
from rent_billing.models import Base, Lease, PaymentPeriodStatus
from rent_billing.services.billing_service import BillingService
from rent_billing.services.locking import LeaseLockRegistry


class TestParseArgs:
    """Test command line parsing."""

    def test_date_and_database(self):
        args = parse_args(["--date", "2024-05-01", "--database-url", "sqlite:///scan.db"])

        assert args.date == date(2024, 5, 1)
        assert args.database_url == "sqlite:///scan.db"

    def test_defaults(self):
        args = parse_args([])

        assert args.date is None
        assert args.database_url is None

    def test_rejects_malformed_date(self):
        with pytest.raises(SystemExit):
            parse_args(["--date", "05/01/2024"])


class TestMain:
    """Test the scan entry point end to end."""

    def setup_method(self):
        """Save original handlers before each test."""
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def teardown_method(self):
        """Restore original handlers after each test."""
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)
        get_settings.cache_clear()

    @pytest.fixture(autouse=True)
    def isolated_settings(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "logs" / "scan.log"))
        get_settings.cache_clear()

    def test_scan_marks_overdue_periods(self, tmp_path, lease_payload):
        database_url = f"sqlite:///{tmp_path / 'billing.db'}"
        engine = create_engine(database_url)
        Base.metadata.create_all(engine)
        Session = sessionmaker(bind=engine)
        with Session() as db:
            service = BillingService(db, clock=lambda: date(2024, 1, 10), locks=LeaseLockRegistry())
            lease_id = service.create_lease(lease_payload()).id

        exit_code = main(["--date", "2024-03-05", "--database-url", database_url])

        assert exit_code == 0
        with Session() as db:
            statuses = [period.status for period in db.get(Lease, lease_id).live_periods]
        assert statuses == [
            PaymentPeriodStatus.OVERDUE,
            PaymentPeriodStatus.OVERDUE,
            PaymentPeriodStatus.UNPAID,
        ]
        assert "Scan complete" in (tmp_path / "logs" / "scan.log").read_text()
        engine.dispose()

    def test_failure_returns_nonzero(self, tmp_path):
        """A database without the billing tables makes the scan fail cleanly."""
        exit_code = main(["--date", "2024-03-05", "--database-url", f"sqlite:///{tmp_path / 'empty.db'}"])

        assert exit_code == 1
        assert "Scan failed" in (tmp_path / "logs" / "scan.log").read_text()
