"""
Health Check Endpoints

- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (database and object store reachable)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from typing import Dict, Any
import time

from digilib.core.backend import Backend, get_backend
from digilib.core.logging_config import logger
from digilib.services.storage_service import LocalObjectStore


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database(backend: Backend) -> Dict[str, Any]:
    """Check database connectivity"""
    start = time.time()
    try:
        async with backend.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return {"status": "healthy", "latency_ms": round((time.time() - start) * 1000, 2)}
    except Exception as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}


async def check_storage(backend: Backend) -> Dict[str, Any]:
    """Check that the object store answers"""
    store = backend.object_store
    try:
        if isinstance(store, LocalObjectStore):
            return {"status": "healthy" if store.root.is_dir() else "unhealthy", "mode": "local"}
        await store.exists("health-check")
        return {"status": "healthy", "mode": backend.settings.STORAGE_MODE}
    except Exception as e:
        logger.error(f"[HealthCheck] Storage check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}


@router.get("/live")
async def liveness():
    """Liveness probe"""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(backend: Backend = Depends(get_backend)):
    """Readiness probe - 503 until every dependency answers"""
    checks = {
        "database": await check_database(backend),
        "storage": await check_storage(backend),
    }
    ready = all(c["status"] == "healthy" for c in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "not_ready", "checks": checks},
    )
