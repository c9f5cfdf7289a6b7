"""Rent billing and reconciliation engine for leases, payments and invoices."""

__version__ = "0.1.0"
