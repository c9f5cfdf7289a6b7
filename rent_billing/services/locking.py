"""Per-lease serialization of billing writes.

Each lease gets its own re-entrant lock, so allocations and scans on the same
lease run one at a time while unrelated leases proceed in parallel. Across
processes the ``version`` columns of leases, payments and invoices provide the
optimistic check.
"""

from contextlib import contextmanager
from threading import Lock, RLock
from typing import Hashable, Iterator


class LeaseLockRegistry:
    """Hands out one lock per lease key, created on first use.

    A lock taken through ``hold`` is evicted when its last holder or waiter
    leaves, so the registry only tracks keys currently in use.
    """

    def __init__(self):
        self._locks: dict[Hashable, RLock] = {}
        self._users: dict[Hashable, int] = {}
        self._registry_lock = Lock()

    def lock_for(self, key: Hashable) -> RLock:
        with self._registry_lock:
            return self._get_or_create(key)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        with self._registry_lock:
            lock = self._get_or_create(key)
            self._users[key] = self._users.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._registry_lock:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]

    def _get_or_create(self, key: Hashable) -> RLock:
        lock = self._locks.get(key)
        if lock is None:
            lock = RLock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)


# Shared by every BillingService in the process unless one is injected
default_registry = LeaseLockRegistry()


__all__ = ["LeaseLockRegistry", "default_registry"]
