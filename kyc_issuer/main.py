from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kyc_issuer.api.admin import router as admin_router
from kyc_issuer.api.credentials import router as credentials_router
from kyc_issuer.api.health import router as health_router
from kyc_issuer.api.metrics_endpoint import router as metrics_router
from kyc_issuer.core.config import SETTINGS
from kyc_issuer.core.errors import IssuanceError
from kyc_issuer.core.logging import setup_logging
from kyc_issuer.db.engine import lifespan_db
from kyc_issuer.middleware.metrics import MetricsMiddleware
from kyc_issuer.middleware.request_context import (
    RequestContextMiddleware,
    install_request_context_filter,
)
from kyc_issuer.services.issuance import lifespan_oracle

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_request_context_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Teardown runs in reverse order: oracle client first, then the DB pool.
    async with lifespan_db():
        async with lifespan_oracle():
            yield


app = FastAPI(
    title="kyc-issuer",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last-added runs first: RequestContext (outermost) → Metrics → route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(IssuanceError)
async def issuance_error_handler(_request: Request, exc: IssuanceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "error": exc.code},
    )


app.include_router(metrics_router)
app.include_router(admin_router)
app.include_router(credentials_router)
app.include_router(health_router)

logger.info(
    "kyc-issuer started  env=%s log_level=%s port=%d storage=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "postgres" if SETTINGS.database_url else "memory",
)
