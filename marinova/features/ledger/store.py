"""
marinova/features/ledger/store.py

User record store for credit ledgers.

Handles:
- Ledger creation with free-tier defaults
- Atomic per-user read-modify-write (`update`)
- Store selection (SQL when a database is configured, in-memory otherwise)

Mutations passed to `update` must be pure functions of the ledger they
receive: stores may call them more than once when a concurrent write wins.
A mutation that changes nothing must return the ledger it was given.
"""

import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol, Tuple, TypeVar

from marinova.core.errors import NotFoundError
from marinova.features.plans.catalog import FREE_TIER_CREDITS
from marinova.models.ledger import CreditLedger, UsageRecord
from marinova.models.plan import FeatureAllowances, SubscriptionPlan

T = TypeVar("T")

Mutation = Callable[[CreditLedger], Tuple[CreditLedger, T]]


def new_ledger(user_id: str, *, now: Optional[datetime] = None, is_email_verified: bool = False) -> CreditLedger:
    """Ledger for a freshly created account: free tier, seeded universal credits."""
    return CreditLedger(
        user_id=user_id,
        subscription_status=SubscriptionPlan.FREE,
        usage_credits=FREE_TIER_CREDITS,
        monthly_credits=FeatureAllowances.zero(),
        credit_reset_date=now or datetime.now(timezone.utc),
        is_email_verified=is_email_verified,
    )


def appended_records(current: CreditLedger, updated: CreditLedger) -> Tuple[UsageRecord, ...]:
    """History entries added by a mutation. Raises if history was rewritten."""
    existing = len(current.usage_history)
    if updated.usage_history[:existing] != current.usage_history:
        raise ValueError("usage history is append-only")
    return updated.usage_history[existing:]


class LedgerStore(Protocol):
    """
    Protocol for ledger persistence.

    Implementations must guarantee that `update` is atomic per user: the
    mutation observes the latest committed ledger and its result is
    committed only if no other write happened in between.
    """

    def get(self, user_id: str) -> Optional[CreditLedger]:
        ...

    def create(self, ledger: CreditLedger) -> CreditLedger:
        """Insert `ledger`; if the user already has one, return it unchanged."""
        ...

    def update(self, user_id: str, mutate: Mutation[T]) -> Tuple[CreditLedger, T]:
        """
        Apply `mutate` atomically.

        Returns:
            (stored ledger, mutation result)

        Raises:
            NotFoundError: If the user has no ledger
        """
        ...


class InMemoryLedgerStore:
    """Process-local store guarded by one lock per user."""

    def __init__(self):
        self._records: Dict[str, CreditLedger] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            return lock

    def get(self, user_id: str) -> Optional[CreditLedger]:
        return self._records.get(user_id)

    def create(self, ledger: CreditLedger) -> CreditLedger:
        with self._lock_for(ledger.user_id):
            existing = self._records.get(ledger.user_id)
            if existing is not None:
                return existing
            self._records[ledger.user_id] = ledger
            return ledger

    def update(self, user_id: str, mutate: Mutation[T]) -> Tuple[CreditLedger, T]:
        with self._lock_for(user_id):
            current = self._records.get(user_id)
            if current is None:
                raise NotFoundError("User not found")
            updated, result = mutate(current)
            if updated is current:
                return current, result
            appended_records(current, updated)
            stored = updated.evolve(version=current.version + 1)
            self._records[user_id] = stored
            return stored, result

    def clear(self) -> None:
        with self._registry_lock:
            self._records.clear()
            self._locks.clear()


_store: Optional[LedgerStore] = None
_store_lock = threading.Lock()


def get_ledger_store() -> LedgerStore:
    """Process-wide store: SQL when a database URL is configured, memory otherwise."""
    global _store
    with _store_lock:
        if _store is None:
            from marinova.core.database import get_database_url

            if get_database_url():
                from marinova.features.ledger.sql_store import SqlLedgerStore
                _store = SqlLedgerStore()
            else:
                _store = InMemoryLedgerStore()
        return _store


def set_ledger_store(store: Optional[LedgerStore]) -> None:
    """Replace the process-wide store (tests, app wiring)."""
    global _store
    with _store_lock:
        _store = store
