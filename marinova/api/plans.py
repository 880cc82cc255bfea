"""Subscription plan catalog for the pricing page."""
from typing import Dict

from fastapi import APIRouter

from marinova.features.plans.catalog import list_plans

router = APIRouter(prefix="/api/plans", tags=["plans"])


@router.get("")
def get_plans() -> Dict:
    return {"success": True, "plans": [plan.to_dict() for plan in list_plans()]}
