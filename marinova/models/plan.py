"""
marinova/models/plan.py

Subscription tiers, gated features and per-feature allowances.

Allowances replace the `-1 means unlimited` convention with an explicit
variant: `Unlimited()` or `Remaining(n)`. The `-1` form only exists at the
wire boundary (`to_limit` / `allowance_from_limit`).
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterator, Mapping, Tuple, Union

UNLIMITED = -1


class FeatureName(str, Enum):
    """Canonical identifiers for metered features."""
    WEATHER_BRIEF = "weatherBrief"
    RESEARCH_LAB = "researchLab"
    CHAT = "chat"
    INSIGHTS = "insights"


class SubscriptionPlan(str, Enum):
    """Subscription tiers, declared in order of increasing allowance."""
    FREE = "free"
    RETAIL_INDIA = "retail_india"
    INTERNATIONAL = "international"
    ENTERPRISE = "enterprise"

    @property
    def is_paid(self) -> bool:
        return self is not SubscriptionPlan.FREE

    @property
    def rank(self) -> int:
        return list(SubscriptionPlan).index(self)


@dataclass(frozen=True)
class Unlimited:
    """Allowance that is never decremented."""

    def is_available(self) -> bool:
        return True

    def consume(self) -> "Unlimited":
        return self

    def to_limit(self) -> int:
        return UNLIMITED


@dataclass(frozen=True)
class Remaining:
    """Finite allowance with `count` uses left in the current period."""
    count: int

    def __post_init__(self):
        if self.count < 0:
            raise ValueError(f"Remaining allowance cannot be negative (got {self.count})")

    def is_available(self) -> bool:
        return self.count > 0

    def consume(self) -> "Remaining":
        if self.count <= 0:
            raise ValueError("Cannot consume an exhausted allowance")
        return Remaining(self.count - 1)

    def to_limit(self) -> int:
        return self.count


Allowance = Union[Unlimited, Remaining]


def allowance_from_limit(limit: int) -> Allowance:
    """Convert a wire/catalog limit (`-1`, `0`, `n`) to an Allowance."""
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValueError(f"Limit must be an integer, got {limit!r}")
    if limit == UNLIMITED:
        return Unlimited()
    if limit < 0:
        raise ValueError(f"Invalid limit {limit}; use -1 for unlimited")
    return Remaining(limit)


_SLOTS: Dict[FeatureName, str] = {
    FeatureName.WEATHER_BRIEF: "weather_brief",
    FeatureName.RESEARCH_LAB: "research_lab",
    FeatureName.CHAT: "chat",
    FeatureName.INSIGHTS: "insights",
}


@dataclass(frozen=True)
class FeatureAllowances:
    """One allowance slot per feature. Used for catalog limits and monthly pools."""
    weather_brief: Allowance
    research_lab: Allowance
    chat: Allowance
    insights: Allowance

    def get(self, feature: FeatureName) -> Allowance:
        return getattr(self, _SLOTS[FeatureName(feature)])

    def with_allowance(self, feature: FeatureName, allowance: Allowance) -> "FeatureAllowances":
        return replace(self, **{_SLOTS[FeatureName(feature)]: allowance})

    def items(self) -> Iterator[Tuple[FeatureName, Allowance]]:
        for feature in FeatureName:
            yield feature, self.get(feature)

    def to_limits(self) -> Dict[str, int]:
        return {feature.value: allowance.to_limit() for feature, allowance in self.items()}

    @classmethod
    def from_limits(cls, limits: Mapping[Union[str, FeatureName], int]) -> "FeatureAllowances":
        """Build from a `{feature: limit}` mapping; every feature must be present."""
        normalized = {FeatureName(key): value for key, value in limits.items()}
        missing = [f.value for f in FeatureName if f not in normalized]
        if missing:
            raise ValueError(f"Missing limits for features: {', '.join(missing)}")
        return cls(**{_SLOTS[f]: allowance_from_limit(normalized[f]) for f in FeatureName})

    @classmethod
    def zero(cls) -> "FeatureAllowances":
        return cls(**{slot: Remaining(0) for slot in _SLOTS.values()})


@dataclass(frozen=True)
class PlanCatalogEntry:
    """
    Immutable catalog row for one subscription tier.

    For the free tier, `limits` doubles as the universal credit seed: every
    feature draws from one shared pool whose initial size is
    `universal_credits`.
    """
    name: SubscriptionPlan
    display_name: str
    price: int
    currency: str
    limits: FeatureAllowances
    universal_credits: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name.value,
            "displayName": self.display_name,
            "price": self.price,
            "currency": self.currency,
            "limits": self.limits.to_limits(),
        }
