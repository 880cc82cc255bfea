"""SQL ledger store against a temporary SQLite database."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from marinova.core.database import build_engine, credit_ledgers, usage_history
from marinova.core.errors import InsufficientCreditsError, LedgerConflictError, NotFoundError
from marinova.features.credits.service import CreditService
from marinova.features.ledger.sql_store import SqlLedgerStore
from marinova.features.ledger.store import new_ledger
from marinova.features.subscriptions.service import SubscriptionService
from marinova.models.ledger import UsageRecord
from marinova.models.plan import FeatureName, Remaining, SubscriptionPlan

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(engine):
    return SqlLedgerStore(engine=engine, max_retries=3)


def _verified(user_id="user-1"):
    return new_ledger(user_id, now=NOW, is_email_verified=True)


def test_create_and_load_round_trip(sql_store):
    sql_store.create(_verified())
    loaded = sql_store.get("user-1")
    assert loaded.subscription_status is SubscriptionPlan.FREE
    assert loaded.usage_credits == 5
    assert loaded.credit_reset_date == NOW
    assert loaded.credit_reset_date.tzinfo is not None
    assert loaded.is_email_verified
    assert loaded.version == 0


def test_create_is_idempotent(sql_store):
    sql_store.create(_verified())
    again = sql_store.create(new_ledger("user-1", now=NOW).evolve(usage_credits=1))
    assert again.usage_credits == 5
    assert again.is_email_verified


def test_missing_user(sql_store):
    assert sql_store.get("ghost") is None
    with pytest.raises(NotFoundError):
        sql_store.update("ghost", lambda led: (led, None))


def test_charge_persists_pool_and_history(sql_store, engine):
    sql_store.create(_verified())
    service = CreditService(sql_store, clock=lambda: NOW)
    service.authorize_and_charge("user-1", "chat")
    service.authorize_and_charge("user-1", "research")

    loaded = sql_store.get("user-1")
    assert loaded.usage_credits == 3
    assert loaded.version == 2
    assert loaded.usage_history == (
        UsageRecord(FeatureName.CHAT, NOW),
        UsageRecord(FeatureName.RESEARCH_LAB, NOW),
    )
    with engine.connect() as conn:
        assert conn.execute(select(func.count()).select_from(usage_history)).scalar() == 2


def test_unlimited_pools_stored_as_minus_one(sql_store, engine):
    sql_store.create(_verified())
    SubscriptionService(sql_store, clock=lambda: NOW).change_plan("user-1", "international")
    with engine.connect() as conn:
        row = conn.execute(select(credit_ledgers).where(credit_ledgers.c.user_id == "user-1")).first()
    assert row.weather_brief_credits == -1
    assert row.chat_credits == 100
    loaded = sql_store.get("user-1")
    assert loaded.monthly_credits.get(FeatureName.CHAT) == Remaining(100)


def test_unchanged_mutation_skips_the_write(sql_store):
    sql_store.create(_verified())
    stored, result = sql_store.update("user-1", lambda led: (led, "noop"))
    assert result == "noop"
    assert sql_store.get("user-1").version == 0


def test_history_rewrite_is_refused(sql_store):
    ledger = _verified().evolve(usage_history=(UsageRecord(FeatureName.CHAT, NOW),))
    sql_store.create(ledger)
    with pytest.raises(ValueError, match="append-only"):
        sql_store.update("user-1", lambda led: (led.evolve(usage_history=()), None))
    assert len(sql_store.get("user-1").usage_history) == 1


def test_version_conflict_reruns_the_mutation(sql_store):
    sql_store.create(_verified())
    calls = []

    def mutate(ledger):
        calls.append(ledger.usage_credits)
        if len(calls) == 1:
            # A competing writer commits between our read and our write
            sql_store.update("user-1", lambda led: (led.evolve(usage_credits=led.usage_credits - 1), None))
        return ledger.evolve(usage_credits=ledger.usage_credits - 1), ledger.usage_credits

    stored, seen = sql_store.update("user-1", mutate)
    assert calls == [5, 4]
    assert seen == 4
    assert stored.usage_credits == 3
    assert sql_store.get("user-1").version == 2


def test_conflict_retries_exhausted(engine):
    store = SqlLedgerStore(engine=engine, max_retries=2)
    store.create(_verified())

    def always_conflicts(ledger):
        store.update("user-1", lambda led: (led.evolve(usage_credits=led.usage_credits - 1), None))
        return ledger.evolve(usage_credits=0), None

    with pytest.raises(LedgerConflictError) as exc:
        store.update("user-1", always_conflicts)
    assert exc.value.status_code == 409


def test_concurrent_charges_spend_each_credit_once(sql_store):
    sql_store.create(_verified().evolve(usage_credits=2))
    store = SqlLedgerStore(engine=sql_store._engine, max_retries=20)
    service = CreditService(store, clock=lambda: NOW)
    barrier = threading.Barrier(4)

    def charge():
        barrier.wait()
        try:
            return service.authorize_and_charge("user-1", "chat")
        except InsufficientCreditsError as e:
            return e

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda _: charge(), range(4)))

    successes = [r for r in results if not isinstance(r, InsufficientCreditsError)]
    assert len(successes) == 2
    loaded = store.get("user-1")
    assert loaded.usage_credits == 0
    assert len(loaded.usage_history) == 2
