"""FastAPI application entry point for riskgate."""

import contextlib
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from riskgate.api.dependencies import fraud_screening, get_audit_logger
from riskgate.api.middleware.error_handler import (
    fraud_prevention_exception_handler,
    global_exception_handler,
)
from riskgate.api.middleware.logging import StructuredLoggingMiddleware
from riskgate.api.routes.admin import router as admin_router
from riskgate.api.routes.health import router as health_router
from riskgate.config import settings
from riskgate.domains.fraud.exceptions import FraudPreventionError
from riskgate.shared.logging import setup_logging
from riskgate.shared.redis import close_redis, get_redis

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown logic."""
    global APP_START_TIME
    APP_START_TIME = time.time()
    setup_logging(settings.log_level)

    logger.info(
        "riskgate_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    from riskgate.db.database import init_db

    try:
        await init_db()
    except Exception:
        # Audit persistence degrades to the Redis buffer; screening is unaffected
        logger.warning("database_init_failed", exc_info=True)

    get_redis()
    audit = get_audit_logger()

    producer = None
    if settings.kafka_enabled:
        try:
            from riskgate.shared.kafka_utils import create_producer

            producer = await create_producer(settings.kafka_bootstrap_servers)
            audit.set_kafka_producer(producer, settings.kafka_fraud_events_topic)
        except Exception:
            logger.warning("kafka_producer_failed_to_start", exc_info=True)

    yield

    await audit.drain()
    if producer is not None:
        with contextlib.suppress(Exception):
            await producer.stop()
    await close_redis()
    logger.info("riskgate_shutting_down")


app = FastAPI(
    title="riskgate",
    description="Real-time fraud screening for sensitive financial operations",
    version=settings.app_version,
    lifespan=lifespan,
    dependencies=[Depends(fraud_screening)],
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Structured logging middleware
app.add_middleware(StructuredLoggingMiddleware)

# Exception handlers
app.add_exception_handler(FraudPreventionError, fraud_prevention_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Register routers
app.include_router(health_router)
app.include_router(admin_router)


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)
