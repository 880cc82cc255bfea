"""
Health endpoints.

`/healthz` is a dependency-free liveness probe; `/api/health` reports which
ledger store is active and whether its database answers.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from marinova.core.database import check_connection, get_database_url

logger = logging.getLogger("marinova")

router = APIRouter(prefix="/api/health", tags=["health"])
root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("")
def health():
    computed_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    if not get_database_url():
        return {"status": "OK", "store": "memory", "computed_at": computed_at}

    if check_connection():
        return {"status": "OK", "store": "sql", "db": {"connected": True}, "computed_at": computed_at}

    logger.error("[health] database unreachable")
    return JSONResponse(
        status_code=503,
        content={"status": "error", "store": "sql", "db": {"connected": False}, "computed_at": computed_at},
    )
