"""Liveness and readiness probes."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

OK = "ok"


async def _check_database() -> str:
    async with AsyncSessionLocal() as db:
        await db.execute(text("SELECT 1"))
    return OK


async def _check_storage(request: Request) -> str:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        return "not configured"
    await run_in_threadpool(storage.bucket_exists, settings.S3_BUCKET_UPLOADS)
    return OK


async def _check_ai_provider() -> str:
    return OK if settings.OPENAI_API_KEY else "not configured"


@router.get("/health")
def health_check():
    return {"status": OK}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Ready when the database, upload storage and AI key are usable.

    Temporal only backs batch analysis: without it the status reads
    ``degraded`` but the probe still answers 200.
    """
    probes = {
        "database": _check_database,
        "storage": lambda: _check_storage(request),
        "ai_provider": _check_ai_provider,
    }
    checks = {}
    for name, probe in probes.items():
        try:
            checks[name] = await probe()
        except Exception as e:
            logger.warning("Readiness: %s check failed: %s", name, e)
            checks[name] = f"error: {getattr(e, 'reason', e)}"

    ready = all(value == OK for value in checks.values())
    temporal_ok = getattr(request.app.state, "temporal", None) is not None
    checks["temporal"] = OK if temporal_ok else "not connected"

    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": OK if ready and temporal_ok else "degraded", "checks": checks},
    )
