import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from the project .env before settings are read
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(os.path.dirname(package_dir), ".env"))

from marinova.core.config import settings, validate_config  # noqa: E402
from marinova.core.logging import configure_logging  # noqa: E402
from marinova.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from marinova.core.middleware.metrics import MetricsMiddleware  # noqa: E402
from marinova.core.validation import validate_env  # noqa: E402
from marinova.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from marinova.api import ai, health, metrics, plans, usage, users  # noqa: E402
from marinova.features.ledger.store import get_ledger_store  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("marinova")
    store = get_ledger_store()
    logger.info(f"Starting MARINOVA backend (ledger store: {type(store).__name__})")
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logging.getLogger("marinova").info("Stopping MARINOVA backend...")


app = FastAPI(title="MARINOVA - Backend", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(MetricsMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(usage.router)
app.include_router(ai.router)
app.include_router(plans.router)
app.include_router(users.router)
app.include_router(health.router)
app.include_router(health.root_router)
app.include_router(metrics.router)
