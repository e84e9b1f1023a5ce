"""Fraud administration: audit trail, analytics, reviews, config and velocity."""

from datetime import UTC, datetime, timedelta

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from riskgate.api.dependencies import get_audit_logger, get_config_store, get_velocity_tracker
from riskgate.db.database import get_session
from riskgate.domains.fraud.audit import (
    AuditLogger,
    get_event_by_assessment,
    load_events,
    load_history,
    summarize_events,
)
from riskgate.domains.fraud.config import ConfigStore, FraudConfig
from riskgate.domains.fraud.models import ReviewRequest, VelocityWindow
from riskgate.domains.fraud.review import list_reviews, record_review
from riskgate.domains.fraud.velocity import VelocityTracker

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/admin/fraud", tags=["fraud-admin"])


@router.get("/events/recent")
async def recent_events(
    limit: int = Query(50, ge=1, le=1000),
    audit: AuditLogger = Depends(get_audit_logger),  # noqa: B008
) -> dict:
    events = await audit.recent_events(limit=limit)
    return {
        "events": [e.model_dump(mode="json") for e in events],
        "count": len(events),
    }


@router.get("/events/system-errors")
async def recent_system_errors(
    limit: int = Query(50, ge=1, le=1000),
    audit: AuditLogger = Depends(get_audit_logger),  # noqa: B008
) -> dict:
    events = await audit.recent_events(limit=limit, system_errors=True)
    return {
        "events": [e.model_dump(mode="json") for e in events],
        "count": len(events),
    }


@router.get("/analytics")
async def analytics(
    hours: int = Query(24, ge=1, le=720),
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    now = datetime.now(UTC)
    events = await load_events(session, since=now - timedelta(hours=hours))
    summary = summarize_events(events, now=now, window_hours=hours)
    return summary.model_dump(mode="json")


@router.get("/history")
async def fraud_history(
    identity_id: str | None = Query(None, max_length=128),
    transaction_id: str | None = Query(None, max_length=128),
    limit: int = Query(100, ge=1, le=1000),
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    events = await load_history(
        session, identity_id=identity_id, transaction_id=transaction_id, limit=limit
    )
    return {
        "events": [e.model_dump(mode="json") for e in events],
        "count": len(events),
    }


@router.post("/reviews", status_code=201)
async def create_review(
    request: ReviewRequest,
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    try:
        record = await record_review(request, session)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return record.model_dump(mode="json")


@router.get("/assessments/{assessment_id}")
async def get_assessment(
    assessment_id: str,
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    event = await get_event_by_assessment(session, assessment_id)
    if event is None:
        raise HTTPException(status_code=404, detail=f"Assessment not found: {assessment_id}")

    reviews = await list_reviews(assessment_id, session)
    return {
        "event": event.model_dump(mode="json"),
        "reviews": [r.model_dump(mode="json") for r in reviews],
    }


@router.get("/config")
async def get_config(store: ConfigStore = Depends(get_config_store)) -> dict:  # noqa: B008
    return store.current.to_dict()


@router.put("/config")
async def reload_config(
    changes: dict = Body(...),  # noqa: B008
    store: ConfigStore = Depends(get_config_store),  # noqa: B008
) -> dict:
    try:
        config = FraudConfig.from_mapping(changes, base=store.current)
    except (ValueError, TypeError, AttributeError) as exc:
        raise HTTPException(status_code=422, detail=f"Invalid fraud config: {exc}") from exc

    store.reload(config)
    logger.info("fraud_config_reloaded", options=sorted(changes))
    return config.to_dict()


@router.get("/velocity/{identity_id}")
async def velocity(
    identity_id: str,
    window: VelocityWindow = Query(VelocityWindow.DAY),  # noqa: B008
    tracker: VelocityTracker = Depends(get_velocity_tracker),  # noqa: B008
) -> dict:
    try:
        counter = await tracker.snapshot(identity_id, window)
    except Exception as exc:
        logger.warning("velocity_snapshot_failed", identity_id=identity_id, exc_info=True)
        raise HTTPException(status_code=503, detail="Velocity store unavailable") from exc
    return counter.model_dump(mode="json")
