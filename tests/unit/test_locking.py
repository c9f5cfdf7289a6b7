"""Unit tests for per-lease lock registry."""

import threading
import time

from rent_billing.config import Settings
from rent_billing.services.billing_service import BillingService
from rent_billing.services.locking import LeaseLockRegistry


class TestLeaseLockRegistry:
    """Test lock hand-out and serialization."""

    def test_same_key_same_lock(self):
        registry = LeaseLockRegistry()

        assert registry.lock_for(1) is registry.lock_for(1)
        assert registry.lock_for(1) is not registry.lock_for(2)
        assert len(registry) == 2

    def test_hold_is_reentrant(self):
        registry = LeaseLockRegistry()

        with registry.hold(1):
            with registry.hold(1):
                pass

    def test_same_lease_writes_are_serialized(self):
        registry = LeaseLockRegistry()
        active = []
        overlaps = []

        def worker():
            with registry.hold(42):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(len(active))
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert overlaps == []

    def test_different_leases_do_not_block(self):
        registry = LeaseLockRegistry()
        entered = threading.Event()

        def other_lease():
            with registry.hold(2):
                entered.set()

        with registry.hold(1):
            thread = threading.Thread(target=other_lease)
            thread.start()
            assert entered.wait(timeout=2)
        thread.join()

    def test_released_keys_are_evicted(self):
        registry = LeaseLockRegistry()

        for lease_id in range(100):
            with registry.hold(lease_id):
                assert len(registry) == 1

        assert len(registry) == 0

    def test_key_kept_while_a_waiter_remains(self):
        registry = LeaseLockRegistry()
        waiting = threading.Event()
        done = threading.Event()

        def waiter():
            waiting.set()
            with registry.hold(7):
                done.set()

        with registry.hold(7):
            held = registry.lock_for(7)
            thread = threading.Thread(target=waiter)
            thread.start()
            assert waiting.wait(timeout=2)
            time.sleep(0.01)
            assert registry.lock_for(7) is held
        thread.join()

        assert done.is_set()
        assert len(registry) == 0

    def test_injected_empty_registry_is_used(self, db_session):
        registry = LeaseLockRegistry()

        service = BillingService(db_session, locks=registry, settings=Settings())

        assert service.locks is registry
