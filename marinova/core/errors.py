"""Error normalization and handlers."""

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from marinova.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.details: Dict[str, Any] = dict(details or {})


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, LookupError):
    code = "not_found"
    status_code = 404


class UnauthorizedError(AppError):
    code = "unauthorized"
    status_code = 401


class InvalidPlanError(ValidationError):
    code = "invalid_plan"
    status_code = 400


class VerificationRequiredError(AppError):
    """The user's e-mail address has not been verified yet."""
    code = "verification_required"
    status_code = 403

    def __init__(self, message: str = "Please verify your email to use this feature", **kwargs):
        super().__init__(message, **kwargs)
        self.details.setdefault("requiresVerification", True)


class InsufficientCreditsError(AppError):
    """The active credit pool cannot cover one more use of the feature.

    Free-tier users are asked to subscribe (`requiresSubscription`), paid-tier
    users to upgrade or wait for the next month (`requiresUpgrade`).
    """
    code = "insufficient_credits"
    status_code = 403

    def __init__(
        self,
        message: str,
        *,
        requires_subscription: bool = False,
        requires_upgrade: bool = False,
        remaining_credits: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.requires_subscription = requires_subscription
        self.requires_upgrade = requires_upgrade
        self.remaining_credits = remaining_credits
        if requires_subscription:
            self.details["requiresSubscription"] = True
        if requires_upgrade:
            self.details["requiresUpgrade"] = True
        if remaining_credits is not None:
            self.details["remainingCredits"] = remaining_credits


class ServiceUnavailableError(AppError):
    """Generation provider is at capacity; safe to retry later, nothing was charged."""
    code = "service_unavailable"
    status_code = 503

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.details.setdefault("retryable", True)
        self.details.setdefault("creditsDeducted", False)

    @property
    def retryable(self) -> bool:
        return True


class GenerationFailedError(AppError):
    code = "generation_failed"
    status_code = 502

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.details.setdefault("creditsDeducted", False)


class LedgerConflictError(AppError):
    code = "ledger_conflict"
    status_code = 409


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str, details: Optional[Dict[str, Any]] = None) -> dict:
    error = {"code": code, "message": message, "request_id": request_id}
    if details:
        error.update(details)
    return {
        "success": False,
        "error": error,
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    payload = _error_payload(exc.code, exc.message, rid, exc.details)
    logger = logging.getLogger("marinova")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("marinova")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("marinova")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Server error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def request_validation_handler(request: Request, exc: RequestValidationError):
    rid = _extract_request_id(request)
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {field}" if field else "Invalid request"
    logger = logging.getLogger("marinova")
    logger.warning("request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 400})
    payload = _error_payload("validation_error", message, rid, {"fields": [".".join(map(str, e.get("loc", ()))) for e in errors]})
    response = JSONResponse(status_code=400, content=payload)
    response.headers["x-request-id"] = rid
    return response
