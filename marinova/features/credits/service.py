"""
marinova/features/credits/service.py

Usage authorization and deduction engine.

Handles:
- Lazy monthly rollover for paid tiers
- Free (universal pool) vs paid (per-feature pool) authorization
- Deduction + usage history append as one atomic store update

The decision logic is pure (`evaluate_charge`, `commit_charge`); `CreditService`
runs it inside `LedgerStore.update` so every check sees the latest ledger.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple
import logging

from marinova.core.errors import (
    AppError,
    InsufficientCreditsError,
    NotFoundError,
    VerificationRequiredError,
)
from marinova.core.metrics import credit_charges_total, credit_rejections_total, credit_rollovers_total
from marinova.features.ledger.store import LedgerStore, get_ledger_store
from marinova.features.plans.catalog import get_limits, normalize_feature
from marinova.models.ledger import ChargeOutcome, CreditLedger, UsageRecord
from marinova.models.plan import FeatureName, Remaining


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_rollover_due(reset_date: datetime, now: datetime) -> bool:
    """True once `now` falls in a later calendar month than `reset_date`."""
    months_since = (now.year - reset_date.year) * 12 + (now.month - reset_date.month)
    return months_since >= 1


def apply_monthly_rollover(ledger: CreditLedger, now: datetime) -> CreditLedger:
    """Refill paid pools from the catalog when a month boundary has passed.

    Returns the same ledger object when nothing changes.
    """
    if ledger.is_free or not is_rollover_due(ledger.credit_reset_date, now):
        return ledger
    return ledger.evolve(
        monthly_credits=get_limits(ledger.subscription_status),
        credit_reset_date=now,
    )


@dataclass(frozen=True)
class ChargeDecision:
    """Authorization verdict for one invocation.

    `ledger` is the ledger after any due rollover; it must be persisted even
    when `rejection` is set.
    """
    feature: FeatureName
    ledger: CreditLedger
    rolled_over: bool
    rejection: Optional[AppError] = None

    @property
    def allowed(self) -> bool:
        return self.rejection is None


def _insufficient(ledger: CreditLedger, feature: FeatureName) -> InsufficientCreditsError:
    if ledger.is_free:
        return InsufficientCreditsError(
            "You have used all your free credits. Please subscribe to continue.",
            requires_subscription=True,
            remaining_credits=0,
            details={"usageCredits": 0},
        )
    return InsufficientCreditsError(
        f"You have used all your monthly {feature.value} credits. "
        "Please upgrade your plan or wait for next month.",
        requires_upgrade=True,
        remaining_credits=0,
        details={"monthlyCredits": ledger.monthly_credits.to_limits()},
    )


def evaluate_charge(ledger: CreditLedger, feature: FeatureName, now: datetime) -> ChargeDecision:
    """Verification, then rollover, then the pool check. Never deducts."""
    if not ledger.is_email_verified:
        return ChargeDecision(feature, ledger, rolled_over=False, rejection=VerificationRequiredError())

    current = apply_monthly_rollover(ledger, now)
    rolled_over = current is not ledger
    if not current.allowance_for(feature).is_available():
        return ChargeDecision(feature, current, rolled_over, rejection=_insufficient(current, feature))
    return ChargeDecision(feature, current, rolled_over)


def commit_charge(ledger: CreditLedger, feature: FeatureName, now: datetime) -> Tuple[CreditLedger, ChargeOutcome]:
    """Deduct one use of `feature` and append it to the history.

    The caller must have authorized the charge against this exact ledger.
    """
    if ledger.is_free:
        remaining = Remaining(ledger.usage_credits).consume()
        updated = ledger.evolve(usage_credits=remaining.count)
    else:
        remaining = ledger.monthly_credits.get(feature).consume()
        updated = ledger.evolve(monthly_credits=ledger.monthly_credits.with_allowance(feature, remaining))
    updated = updated.evolve(usage_history=ledger.usage_history + (UsageRecord(feature, now),))
    outcome = ChargeOutcome(
        feature=feature,
        subscription_status=updated.subscription_status,
        remaining=remaining,
        ledger=updated,
    )
    return updated, outcome


class CreditService:
    """Runs charge decisions against a ledger store."""

    def __init__(self, store: Optional[LedgerStore] = None, clock: Optional[Clock] = None):
        self.store = store or get_ledger_store()
        self.clock = clock or utc_now

    def get_credits(self, user_id: str) -> CreditLedger:
        """Stored ledger, as-is (rollover is only applied by charges)."""
        ledger = self.store.get(user_id)
        if ledger is None:
            raise NotFoundError("User not found")
        return ledger

    def check(self, user_id: str, feature, now: Optional[datetime] = None) -> ChargeDecision:
        """Pre-check without deducting. A due rollover is persisted."""
        feature = normalize_feature(feature)
        now = now or self.clock()

        def _evaluate(ledger: CreditLedger):
            decision = evaluate_charge(ledger, feature, now)
            return decision.ledger, decision

        _, decision = self.store.update(user_id, _evaluate)
        self._record_decision(user_id, decision)
        return decision

    def authorize_and_charge(self, user_id: str, feature, now: Optional[datetime] = None) -> ChargeOutcome:
        """Authorize and charge in one atomic update.

        Raises:
            NotFoundError: If the user has no ledger
            VerificationRequiredError: If the e-mail is not verified
            InsufficientCreditsError: If the governing pool is exhausted
        """
        feature = normalize_feature(feature)
        now = now or self.clock()

        def _charge(ledger: CreditLedger):
            decision = evaluate_charge(ledger, feature, now)
            if not decision.allowed:
                return decision.ledger, (decision, None)
            updated, outcome = commit_charge(decision.ledger, feature, now)
            return updated, (decision, outcome)

        _, (decision, outcome) = self.store.update(user_id, _charge)
        self._record_decision(user_id, decision)
        if outcome is None:
            raise decision.rejection
        self._record_charge(user_id, outcome)
        return outcome

    def _record_decision(self, user_id: str, decision: ChargeDecision) -> None:
        plan = decision.ledger.subscription_status.value
        if decision.rolled_over:
            credit_rollovers_total.inc({"plan": plan})
            logger.info(
                "credits.rollover",
                extra={"user_id": user_id, "plan": plan, "event_type": "credit_rollover"},
            )
        if decision.rejection is not None:
            credit_rejections_total.inc(
                {"feature": decision.feature.value, "plan": plan, "reason": decision.rejection.code}
            )
            logger.warning(
                "credits.rejected",
                extra={
                    "user_id": user_id,
                    "feature": decision.feature.value,
                    "plan": plan,
                    "error_code": decision.rejection.code,
                },
            )

    def _record_charge(self, user_id: str, outcome: ChargeOutcome) -> None:
        plan = outcome.subscription_status.value
        credit_charges_total.inc({"feature": outcome.feature.value, "plan": plan})
        logger.info(
            "credits.charged",
            extra={
                "user_id": user_id,
                "feature": outcome.feature.value,
                "plan": plan,
                "remaining": outcome.remaining_credits,
                "event_type": "credit_charge",
            },
        )
