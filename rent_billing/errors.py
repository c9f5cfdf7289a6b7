"""Custom exception classes for the billing engine.

Provides domain-specific exceptions for clear error handling and reporting.
Over-allocation is deliberately absent: it is reported as a remainder on the
allocation result, not raised.
"""


class BillingError(Exception):
    """Base exception for billing errors."""

    pass


class InvalidScheduleError(BillingError):
    """Lease dates or rent cannot produce a billing schedule."""

    pass


class InvalidAllocationError(BillingError):
    """Payment cannot be allocated (non-positive amount, bad target, closed invoice)."""

    pass


class DuplicateAllocationError(InvalidAllocationError):
    """Payment has already been allocated and was not reversed."""

    def __init__(self, payment_id: int | None):
        self.payment_id = payment_id
        super().__init__(
            f"Payment {payment_id} is already allocated; reverse it before allocating again"
        )


class InvalidTransitionError(BillingError):
    """Explicit status action not allowed from the entity's current status."""

    pass


class RecordNotFoundError(BillingError, LookupError):
    """Lease, payment or invoice does not exist."""

    def __init__(self, entity_type: str, entity_id: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class ConcurrencyConflictError(BillingError):
    """Optimistic version check kept failing for a lease."""

    def __init__(self, lease_id: int | None, attempts: int):
        self.lease_id = lease_id
        self.attempts = attempts
        super().__init__(f"Lease {lease_id} was modified concurrently; gave up after {attempts} attempts")


__all__ = [
    "BillingError",
    "InvalidScheduleError",
    "InvalidAllocationError",
    "DuplicateAllocationError",
    "InvalidTransitionError",
    "RecordNotFoundError",
    "ConcurrencyConflictError",
]
