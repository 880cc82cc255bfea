"""
marinova/features/charging/service.py

Charge-on-success wrapper for provider-backed features.

Flow:
1. Pre-check (verification, rollover, pool); rollover is persisted, nothing
   is deducted.
2. Run the action once, with no store lock held.
3. On success, charge atomically after re-validating against the latest
   ledger. On failure, leave the ledger untouched.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, TypeVar

from marinova.core.errors import (
    AppError,
    GenerationFailedError,
    InsufficientCreditsError,
    ServiceUnavailableError,
)
from marinova.core.logging import log_event
from marinova.core.metrics import generation_failures_total
from marinova.features.credits.service import CreditService
from marinova.features.generation.provider import (
    GenerationCapacityError,
    GenerationError,
    is_capacity_failure,
)
from marinova.features.plans.catalog import normalize_feature
from marinova.models.ledger import ChargedResult
from marinova.models.plan import FeatureName

T = TypeVar("T")

logger = logging.getLogger(__name__)

CAPACITY_MESSAGE = (
    "Our AI service is currently at capacity. Please try again in a few minutes. "
    "Your credits have NOT been deducted."
)
FAILURE_MESSAGE = "Unable to generate a response at this time. Please try again later. Your credits have NOT been deducted."


def classify_failure(exc: BaseException) -> AppError:
    """Map an action failure to the error returned to the caller.

    Provider errors are already classified; anything else goes through the
    capacity heuristic.
    """
    if isinstance(exc, GenerationCapacityError):
        return ServiceUnavailableError(CAPACITY_MESSAGE)
    if not isinstance(exc, GenerationError) and is_capacity_failure(exc):
        return ServiceUnavailableError(CAPACITY_MESSAGE)
    return GenerationFailedError(FAILURE_MESSAGE)


class ChargingService:
    def __init__(self, credits: CreditService):
        self.credits = credits

    def charge_if_successful(
        self,
        user_id: str,
        feature,
        action: Callable[[], T],
        now: Optional[datetime] = None,
    ) -> ChargedResult[T]:
        """
        Run `action` and charge `feature` only if it succeeds.

        Raises:
            NotFoundError, VerificationRequiredError, InsufficientCreditsError:
                From the pre-check (action not invoked) or the commit
            ServiceUnavailableError: Action failed for capacity reasons
            GenerationFailedError: Action failed for any other reason
        """
        feature = normalize_feature(feature)
        decision = self.credits.check(user_id, feature, now=now)
        if not decision.allowed:
            raise decision.rejection

        try:
            value = action()
        except Exception as e:
            error = classify_failure(e)
            self._record_failure(user_id, feature, error, e)
            raise error from e

        try:
            outcome = self.credits.authorize_and_charge(user_id, feature, now=now)
        except InsufficientCreditsError:
            logger.warning(
                "charging.exhausted_after_action",
                extra={"user_id": user_id, "feature": feature.value, "error_code": "insufficient_credits"},
            )
            raise
        return ChargedResult(value=value, outcome=outcome)

    def _record_failure(self, user_id: str, feature: FeatureName, error: AppError, cause: BaseException) -> None:
        generation_failures_total.inc({"feature": feature.value, "kind": error.code})
        log_event(
            "error",
            "charging.action_failed",
            user_id=user_id,
            feature=feature.value,
            event_type="generation_failure",
            error_code=error.code,
            extra={"cause": f"{type(cause).__name__}: {cause}"},
        )
