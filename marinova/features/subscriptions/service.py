"""
marinova/features/subscriptions/service.py

Subscription transitions.

Plan changes reinitialize the credit pools from the catalog:
- free: universal pool back to the free seed, monthly pools zeroed
- paid: monthly pools copied from the catalog, reset date moved to now;
  the universal pool is left alone
No usage history is written.
"""

from datetime import datetime
from typing import Optional, Union
import logging

from marinova.core.metrics import plan_changes_total
from marinova.features.credits.service import Clock, utc_now
from marinova.features.ledger.store import LedgerStore, get_ledger_store
from marinova.features.plans.catalog import FREE_TIER_CREDITS, display_name, get_limits, parse_plan
from marinova.models.ledger import CreditLedger, PlanChange
from marinova.models.plan import FeatureAllowances, SubscriptionPlan


logger = logging.getLogger(__name__)


def apply_plan(ledger: CreditLedger, plan: SubscriptionPlan, now: datetime) -> CreditLedger:
    if plan is SubscriptionPlan.FREE:
        return ledger.evolve(
            subscription_status=plan,
            usage_credits=FREE_TIER_CREDITS,
            monthly_credits=FeatureAllowances.zero(),
        )
    return ledger.evolve(
        subscription_status=plan,
        monthly_credits=get_limits(plan),
        credit_reset_date=now,
    )


class SubscriptionService:
    def __init__(self, store: Optional[LedgerStore] = None, clock: Optional[Clock] = None):
        self.store = store or get_ledger_store()
        self.clock = clock or utc_now

    def change_plan(
        self,
        user_id: str,
        new_plan: Union[str, SubscriptionPlan, None],
        now: Optional[datetime] = None,
    ) -> PlanChange:
        """Move the user to `new_plan`.

        Raises:
            InvalidPlanError: If `new_plan` is not a catalog tier
            NotFoundError: If the user has no ledger
        """
        plan = parse_plan(new_plan)
        now = now or self.clock()

        def _change(ledger: CreditLedger):
            return apply_plan(ledger, plan, now), ledger.subscription_status

        ledger, previous = self.store.update(user_id, _change)

        plan_changes_total.inc({"from_plan": previous.value, "to_plan": plan.value})
        logger.info(
            "subscription.changed",
            extra={
                "user_id": user_id,
                "plan": plan.value,
                "previous_plan": previous.value,
                "event_type": "plan_change",
            },
        )
        return PlanChange(previous_plan=previous, ledger=ledger, display_name=display_name(plan), changed_at=now)
