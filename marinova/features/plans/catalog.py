"""
marinova/features/plans/catalog.py

Static subscription plan catalog.

Handles:
- Tier definitions (free, retail_india, international, enterprise)
- Per-feature monthly limits (-1 = unlimited)
- Feature name normalization for request-facing aliases
"""

from types import MappingProxyType
from typing import Dict, List, Mapping, Union

from marinova.core.errors import InvalidPlanError, ValidationError
from marinova.models.plan import (
    FeatureAllowances,
    FeatureName,
    PlanCatalogEntry,
    SubscriptionPlan,
    Unlimited,
)


# Catalog configuration. Limits are monthly, except on the free tier where
# they describe the one-off universal credit pool.
DEFAULT_PLANS = {
    "free": {
        "display_name": "Free Tier",
        "price": 0,
        "currency": "USD",
        "universal_credits": 5,
        "limits": {
            "weatherBrief": 5,
            "researchLab": 5,
            "chat": 5,
            "insights": 5,
        },
    },
    "retail_india": {
        "display_name": "Retail India",
        "price": 10,
        "currency": "USD",
        "limits": {
            "weatherBrief": 50,
            "researchLab": 10,
            "chat": 20,
            "insights": -1,  # unlimited
        },
    },
    "international": {
        "display_name": "International",
        "price": 30,
        "currency": "USD",
        "limits": {
            "weatherBrief": -1,  # unlimited
            "researchLab": 50,
            "chat": 100,
            "insights": -1,
        },
    },
    "enterprise": {
        "display_name": "Enterprise",
        "price": 50,
        "currency": "USD",
        "limits": {
            "weatherBrief": -1,
            "researchLab": 500,  # API-intensive customers
            "chat": 500,
            "insights": -1,
        },
    },
}

# Request-facing names accepted by the usage endpoints
FEATURE_ALIASES: Mapping[str, FeatureName] = MappingProxyType({
    "weather": FeatureName.WEATHER_BRIEF,
    "weatherBrief": FeatureName.WEATHER_BRIEF,
    "research": FeatureName.RESEARCH_LAB,
    "researchLab": FeatureName.RESEARCH_LAB,
    "report": FeatureName.RESEARCH_LAB,
    "chat": FeatureName.CHAT,
    "insights": FeatureName.INSIGHTS,
})


def _build_catalog() -> Mapping[SubscriptionPlan, PlanCatalogEntry]:
    entries: Dict[SubscriptionPlan, PlanCatalogEntry] = {}
    for plan_id, config in DEFAULT_PLANS.items():
        tier = SubscriptionPlan(plan_id)
        entries[tier] = PlanCatalogEntry(
            name=tier,
            display_name=config["display_name"],
            price=config["price"],
            currency=config["currency"],
            limits=FeatureAllowances.from_limits(config["limits"]),
            universal_credits=config.get("universal_credits", 0),
        )
    missing = set(SubscriptionPlan) - set(entries)
    assert not missing, f"Catalog missing tiers: {missing}"
    return MappingProxyType(entries)


PLAN_CATALOG: Mapping[SubscriptionPlan, PlanCatalogEntry] = _build_catalog()

FREE_TIER_CREDITS: int = PLAN_CATALOG[SubscriptionPlan.FREE].universal_credits


def get_plan(tier: SubscriptionPlan) -> PlanCatalogEntry:
    """Catalog entry for `tier`. Unknown tiers are a programming error (KeyError)."""
    return PLAN_CATALOG[SubscriptionPlan(tier)]


def get_limits(tier: SubscriptionPlan) -> FeatureAllowances:
    return get_plan(tier).limits


def is_unlimited(tier: SubscriptionPlan, feature: FeatureName) -> bool:
    return isinstance(get_limits(tier).get(feature), Unlimited)


def display_name(tier: SubscriptionPlan) -> str:
    return get_plan(tier).display_name


def list_plans() -> List[PlanCatalogEntry]:
    """All catalog entries ordered by increasing allowance."""
    return sorted(PLAN_CATALOG.values(), key=lambda entry: entry.name.rank)


def parse_plan(value: Union[str, SubscriptionPlan, None]) -> SubscriptionPlan:
    """Validate a user-supplied tier name.

    Raises:
        InvalidPlanError: If value is not one of the catalog tiers
    """
    if isinstance(value, SubscriptionPlan):
        return value
    try:
        return SubscriptionPlan((value or "").strip())
    except ValueError:
        raise InvalidPlanError("Invalid subscription plan", details={"plan": value})


def normalize_feature(value: Union[str, FeatureName, None]) -> FeatureName:
    """Map a request-facing feature name (or alias) to its canonical name.

    Raises:
        ValidationError: If the feature is missing or unknown
    """
    if isinstance(value, FeatureName):
        return value
    if not value:
        raise ValidationError("Feature name is required")
    feature = FEATURE_ALIASES.get(value.strip())
    if feature is None:
        raise ValidationError("Invalid feature name", details={"feature": value})
    return feature
