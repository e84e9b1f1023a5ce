"""Health and readiness endpoints."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from riskgate.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    from riskgate.main import get_uptime

    return {
        "status": "healthy",
        "version": settings.app_version,
        "uptime_seconds": get_uptime(),
    }


@router.get("/ready")
async def ready() -> JSONResponse:
    from riskgate.db.database import check_db
    from riskgate.shared.redis import check_redis

    db_ok = await check_db()
    # The risk engine fails closed without Redis, so it gates readiness
    redis_ok = await check_redis()

    all_ready = db_ok and redis_ok
    return JSONResponse(
        status_code=200 if all_ready else 503,
        content={
            "status": "ready" if all_ready else "degraded",
            "database": db_ok,
            "redis": redis_ok,
            "kafka": settings.kafka_enabled,
        },
    )
