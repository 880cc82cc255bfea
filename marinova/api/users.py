"""
Account hooks called by the identity-provider integration.

These routes authenticate the integration (X-Identity-Key), not the end
user: a user can never change their own verification state.
"""
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from marinova.api.deps import get_user_service
from marinova.core.auth import require_identity_provider
from marinova.features.users.service import UserService

router = APIRouter(prefix="/api/users", tags=["users"])


class EmailVerificationRequest(BaseModel):
    verified: bool


@router.put("/{user_id}/email-verification", dependencies=[Depends(require_identity_provider)])
def set_email_verification(
    user_id: str,
    body: EmailVerificationRequest,
    users: UserService = Depends(get_user_service),
) -> Dict:
    ledger = users.set_email_verified(user_id, body.verified)
    return {"success": True, "userId": user_id, "isEmailVerified": ledger.is_email_verified}
