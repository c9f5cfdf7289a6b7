"""Billing engine services.

- period_service: billing schedule generation and regeneration
- allocation_service: applying payments to periods and invoices
- reconciliation_service: derived status transitions
- calendar_service: payment calendar projection
- billing_service: session-bound orchestration with per-lease locking
"""
