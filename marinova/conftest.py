# marinova/conftest.py
import os
from datetime import datetime, timezone

import pytest

# Settings are read once at import time
os.environ.setdefault("ENV", "test")
os.environ.pop("DATABASE_URL", None)

from marinova.core.metrics import METRICS  # noqa: E402
from marinova.features.ledger.store import InMemoryLedgerStore, new_ledger, set_ledger_store  # noqa: E402
from marinova.features.plans.catalog import get_limits  # noqa: E402
from marinova.models.plan import FeatureAllowances, SubscriptionPlan  # noqa: E402
from marinova.tests.mocks import FakeGenerationProvider  # noqa: E402


FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture(autouse=True)
def isolate_process_state(store):
    """Fresh in-memory store and zeroed counters for every test."""
    set_ledger_store(store)
    METRICS.reset()
    yield
    set_ledger_store(None)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def make_ledger(store):
    """
    Seed a ledger directly in the store.

    Paid tiers default to full catalog pools; pass `monthly={...}` to
    override individual features with wire limits.
    """
    def _make(
        user_id="user-1",
        plan=SubscriptionPlan.FREE,
        usage_credits=None,
        monthly=None,
        verified=True,
        reset_date=FIXED_NOW,
    ):
        plan = SubscriptionPlan(plan)
        ledger = new_ledger(user_id, now=reset_date, is_email_verified=verified)
        pools = FeatureAllowances.zero() if plan is SubscriptionPlan.FREE else get_limits(plan)
        if monthly:
            limits = pools.to_limits()
            limits.update(monthly)
            pools = FeatureAllowances.from_limits(limits)
        ledger = ledger.evolve(subscription_status=plan, monthly_credits=pools)
        if usage_credits is not None:
            ledger = ledger.evolve(usage_credits=usage_credits)
        return store.create(ledger)

    return _make


@pytest.fixture
def provider():
    return FakeGenerationProvider()


@pytest.fixture
def client(store, provider):
    from fastapi.testclient import TestClient

    from marinova.api.deps import get_generation_provider, get_store
    from marinova.main import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_generation_provider] = lambda: provider
    yield TestClient(app)
    app.dependency_overrides.clear()
