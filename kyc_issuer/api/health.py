"""Health and readiness endpoints.

  /health  liveness plus per-dependency status.  Always 200; the
           "status" field says "ok" or "degraded".
  /ready   503 when the database is configured but unreachable, so the
           load balancer stops routing mints to an instance that could
           only fail them.  The oracle is not a readiness dependency:
           zero-duration mints and all lookups work without it.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from kyc_issuer.db.engine import engine
from kyc_issuer.services import issuance
from kyc_issuer.services.oracle import HermesPriceFeed

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_status() -> str:
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:
        logger.exception("Database health check failed")
        return "degraded"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _database_status(),
        "oracle": "hermes" if isinstance(issuance.price_feed, HermesPriceFeed) else "static",
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
