"""
Auth utilities for the MARINOVA API.

Validates identity-provider JWTs (HS256 by default) and extracts the user id
from the `sub` claim. Outside production, falls back to the X-User-Id header.
"""
from dataclasses import dataclass
from typing import Optional
import hmac
import logging

import jwt
from fastapi import Header, Request

from marinova.core.config import settings
from marinova.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    email_verified: bool = False


def verify_jwt(token: str, secret: Optional[str] = None, algorithm: Optional[str] = None) -> Identity:
    """
    Verify a bearer token and extract the identity.

    Raises:
        UnauthorizedError: Invalid, expired or subject-less token
    """
    try:
        payload = jwt.decode(
            token,
            secret or settings.JWT_SECRET,
            algorithms=[algorithm or settings.JWT_ALGORITHM],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise UnauthorizedError("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token")
    return Identity(user_id=str(user_id), email_verified=bool(payload.get("email_verified", False)))


def authenticate(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Development/test user id"),
) -> Identity:
    """
    Resolve the caller.

    Priority:
    1. Bearer JWT from the Authorization header (when JWT_SECRET is set)
    2. X-User-Id header (not in production)
    3. 401
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer ") and settings.JWT_SECRET:
        return verify_jwt(auth_header[7:].strip())

    if x_user_id and x_user_id.strip() and settings.ENV != "production":
        return Identity(user_id=x_user_id.strip())

    raise UnauthorizedError("Missing Authorization (Bearer JWT) or X-User-Id header")


def require_identity_provider(
    x_identity_key: Optional[str] = Header(None, description="Identity provider hook key"),
) -> str:
    """
    Guard for routes only the identity-provider integration may call.

    End-user credentials (bearer token, X-User-Id) are never accepted here.
    The route is closed when IDENTITY_HOOK_KEY is unset.
    """
    expected = settings.IDENTITY_HOOK_KEY
    presented = (x_identity_key or "").strip()
    if not expected or not presented or not hmac.compare_digest(presented, expected):
        logger.warning("auth.identity_hook_rejected", extra={"error_code": "unauthorized"})
        raise UnauthorizedError("Identity provider credentials required")
    return "identity-provider"
