"""Tests for plan transitions."""

from datetime import datetime, timezone

import pytest

from marinova.core.errors import InvalidPlanError, NotFoundError
from marinova.core.metrics import plan_changes_total
from marinova.features.credits.service import CreditService
from marinova.features.subscriptions.service import SubscriptionService
from marinova.models.plan import SubscriptionPlan


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def subscriptions(store, now):
    return SubscriptionService(store, clock=lambda: now)


def test_upgrade_copies_catalog_limits(subscriptions, make_ledger, now):
    make_ledger(usage_credits=2, reset_date=utc(2023, 11, 1))
    change = subscriptions.change_plan("user-1", "retail_india")

    assert change.previous_plan is SubscriptionPlan.FREE
    assert change.display_name == "Retail India"
    ledger = change.ledger
    assert ledger.subscription_status is SubscriptionPlan.RETAIL_INDIA
    assert ledger.monthly_credits.to_limits() == {
        "weatherBrief": 50, "researchLab": 10, "chat": 20, "insights": -1,
    }
    assert ledger.credit_reset_date == now
    # Universal pool is not touched when moving to a paid tier
    assert ledger.usage_credits == 2


def test_paid_to_paid_keeps_universal_credits(subscriptions, make_ledger):
    make_ledger(plan=SubscriptionPlan.INTERNATIONAL, usage_credits=1)
    ledger = subscriptions.change_plan("user-1", "enterprise").ledger
    assert ledger.usage_credits == 1
    assert ledger.monthly_credits.to_limits()["researchLab"] == 500


def test_free_round_trip_restores_seed(subscriptions, store, make_ledger, now):
    make_ledger(usage_credits=0)
    subscriptions.change_plan("user-1", "international")
    CreditService(store, clock=lambda: now).authorize_and_charge("user-1", "chat")

    ledger = subscriptions.change_plan("user-1", "free").ledger
    assert ledger.subscription_status is SubscriptionPlan.FREE
    assert ledger.usage_credits == 5
    assert set(ledger.monthly_credits.to_limits().values()) == {0}


def test_downgrade_to_free_keeps_reset_date(subscriptions, make_ledger):
    make_ledger(plan=SubscriptionPlan.ENTERPRISE, reset_date=utc(2023, 12, 5))
    ledger = subscriptions.change_plan("user-1", "free").ledger
    assert ledger.credit_reset_date == utc(2023, 12, 5)


def test_repeating_a_change_is_idempotent_except_reset_date(store, make_ledger):
    make_ledger()
    SubscriptionService(store, clock=lambda: utc(2024, 1, 15)).change_plan("user-1", "retail_india")
    first = store.get("user-1")
    SubscriptionService(store, clock=lambda: utc(2024, 1, 18)).change_plan("user-1", "retail_india")
    second = store.get("user-1")

    assert second.credit_reset_date == utc(2024, 1, 18)
    assert second.evolve(credit_reset_date=first.credit_reset_date, version=first.version) == first


def test_plan_change_writes_no_history(subscriptions, store, make_ledger):
    make_ledger()
    subscriptions.change_plan("user-1", "international")
    subscriptions.change_plan("user-1", "free")
    assert store.get("user-1").usage_history == ()


def test_invalid_plan_is_rejected_before_any_write(subscriptions, store, make_ledger):
    before = make_ledger()
    with pytest.raises(InvalidPlanError):
        subscriptions.change_plan("user-1", "platinum")
    assert store.get("user-1") is before


def test_unknown_user(subscriptions):
    with pytest.raises(NotFoundError):
        subscriptions.change_plan("ghost", "free")


def test_plan_change_is_counted(subscriptions, make_ledger):
    make_ledger()
    subscriptions.change_plan("user-1", "enterprise")
    assert plan_changes_total.value({"from_plan": "free", "to_plan": "enterprise"}) == 1
