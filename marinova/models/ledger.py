"""
marinova/models/ledger.py

Per-user credit ledger and charge outcomes.

Ledgers are immutable snapshots: every mutation produces a new instance,
which lets stores retry a read-modify-write safely.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar

from marinova.models.plan import Allowance, FeatureAllowances, FeatureName, Remaining, SubscriptionPlan

T = TypeVar("T")


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class UsageRecord:
    feature: FeatureName
    used_at: datetime

    def to_dict(self) -> Dict[str, str]:
        return {"feature": self.feature.value, "usedAt": _iso(self.used_at)}


@dataclass(frozen=True)
class CreditLedger:
    """
    Credit state owned by one user record.

    Only one pool is active at a time: `usage_credits` for the free tier,
    `monthly_credits` for paid tiers. `version` increases on every persisted
    change and backs optimistic concurrency in SQL stores.
    """
    user_id: str
    subscription_status: SubscriptionPlan
    usage_credits: int
    monthly_credits: FeatureAllowances
    credit_reset_date: datetime
    usage_history: Tuple[UsageRecord, ...] = ()
    is_email_verified: bool = False
    version: int = 0

    def __post_init__(self):
        if self.usage_credits < 0:
            raise ValueError("usage_credits cannot be negative")

    @property
    def is_free(self) -> bool:
        return self.subscription_status is SubscriptionPlan.FREE

    def allowance_for(self, feature: FeatureName) -> Allowance:
        """Allowance from whichever pool governs `feature` under the current tier."""
        if self.is_free:
            return Remaining(self.usage_credits)
        return self.monthly_credits.get(feature)

    def evolve(self, **changes: Any) -> "CreditLedger":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "usageCredits": self.usage_credits,
            "monthlyCredits": self.monthly_credits.to_limits(),
            "subscriptionStatus": self.subscription_status.value,
            "isEmailVerified": self.is_email_verified,
            "creditResetDate": _iso(self.credit_reset_date),
            "usageHistory": [record.to_dict() for record in self.usage_history],
        }


@dataclass(frozen=True)
class ChargeOutcome:
    """Result of a committed charge."""
    feature: FeatureName
    subscription_status: SubscriptionPlan
    remaining: Allowance
    ledger: CreditLedger = field(repr=False)

    @property
    def remaining_credits(self) -> int:
        return self.remaining.to_limit()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "remainingCredits": self.remaining_credits,
            "subscriptionStatus": self.subscription_status.value,
            "usageCredits": self.ledger.usage_credits,
            "monthlyCredits": self.ledger.monthly_credits.to_limits(),
        }


@dataclass(frozen=True)
class ChargedResult(Generic[T]):
    """Value produced by a gated action together with the charge it cost."""
    value: T
    outcome: ChargeOutcome


@dataclass(frozen=True)
class PlanChange:
    previous_plan: SubscriptionPlan
    ledger: CreditLedger
    display_name: str
    changed_at: Optional[datetime] = None
