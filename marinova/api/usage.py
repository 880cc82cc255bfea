"""
Usage metering endpoints.

- POST /api/usage/track      bare feature gate, charges on authorization
- GET  /api/usage/credits    ledger view
- PUT  /api/usage/subscribe  plan change
"""
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator

from marinova.api.deps import get_credit_service, get_current_user_id, get_subscription_service
from marinova.features.credits.service import CreditService
from marinova.features.subscriptions.service import SubscriptionService

router = APIRouter(prefix="/api/usage", tags=["usage"])


class TrackUsageRequest(BaseModel):
    feature: Optional[str] = None

    @field_validator("feature")
    @classmethod
    def _trim(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class SubscribeRequest(BaseModel):
    plan: Optional[str] = None


@router.post("/track")
def track_usage(
    body: TrackUsageRequest,
    user_id: str = Depends(get_current_user_id),
    credits: CreditService = Depends(get_credit_service),
) -> Dict:
    outcome = credits.authorize_and_charge(user_id, body.feature)
    return {"success": True, "message": "Usage tracked", **outcome.to_dict()}


@router.get("/credits")
def get_credits(
    user_id: str = Depends(get_current_user_id),
    credits: CreditService = Depends(get_credit_service),
) -> Dict:
    return {"success": True, **credits.get_credits(user_id).to_dict()}


@router.put("/subscribe")
def subscribe(
    body: SubscribeRequest,
    user_id: str = Depends(get_current_user_id),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> Dict:
    change = subscriptions.change_plan(user_id, body.plan)
    ledger = change.ledger
    return {
        "success": True,
        "message": f"Subscription updated to {change.display_name}",
        "subscriptionStatus": ledger.subscription_status.value,
        "usageCredits": ledger.usage_credits,
        "monthlyCredits": ledger.monthly_credits.to_limits(),
        "creditResetDate": ledger.to_dict()["creditResetDate"],
    }
