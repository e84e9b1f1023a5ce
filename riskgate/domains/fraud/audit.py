"""Fraud event audit trail: recent-events buffer, analytics stream, summaries.

``AuditLogger.record`` is the post-decision hook. It schedules persistence on
the running loop and returns immediately; nothing it does can fail or delay
the request that produced the assessment.
"""

import asyncio
from collections import Counter
from datetime import UTC, datetime, timedelta

import structlog
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from riskgate.db.models import FraudEventRow
from riskgate.shared.kafka_utils import publish_fraud_event

from .config import ConfigStore
from .models import (
    Action,
    BucketCount,
    FactorCount,
    FraudAnalytics,
    FraudEvent,
    RiskAssessment,
    RiskLevel,
)

logger = structlog.get_logger()

RECENT_EVENTS_KEY = "fraud:events:recent"
SYSTEM_ERRORS_KEY = "fraud:events:system_errors"
DEFAULT_CAPACITY = 1000


def fraud_event_to_row(event: FraudEvent) -> FraudEventRow:
    a = event.assessment
    return FraudEventRow(
        event_id=event.event_id,
        assessment_id=a.assessment_id,
        transaction_id=a.transaction_id,
        identity_id=a.identity_id,
        score=a.score,
        risk_level=a.risk_level.value,
        action=a.action.value,
        factors=list(a.factors),
        signal_scores=dict(a.signal_scores),
        requires_review=a.requires_review,
        system_error=a.system_error,
        assessed_at=a.timestamp,
        path=event.path,
        method=event.method,
        masked_ip=event.masked_ip,
        user_agent=event.user_agent,
        recorded_at=event.recorded_at,
    )


def row_to_fraud_event(row: FraudEventRow) -> FraudEvent:
    assessment = RiskAssessment(
        assessment_id=row.assessment_id,
        transaction_id=row.transaction_id,
        identity_id=row.identity_id,
        signal_scores=dict(row.signal_scores or {}),
        score=row.score,
        risk_level=RiskLevel(row.risk_level),
        action=Action(row.action),
        factors=list(row.factors or []),
        requires_review=row.requires_review,
        system_error=row.system_error,
        timestamp=row.assessed_at,
    )
    return FraudEvent(
        event_id=row.event_id,
        assessment=assessment,
        path=row.path,
        method=row.method,
        masked_ip=row.masked_ip,
        user_agent=row.user_agent,
        recorded_at=row.recorded_at,
    )


class AuditLogger:
    """Best-effort, non-blocking writer for fraud events."""

    def __init__(
        self,
        redis: Redis,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        capacity: int = DEFAULT_CAPACITY,
        kafka_producer=None,
        kafka_topic: str = "riskgate.fraud.events",
        config: ConfigStore | None = None,
    ) -> None:
        self._redis = redis
        self._session_factory = session_factory
        self._capacity = capacity
        self._config = config
        self._kafka_producer = kafka_producer
        self._kafka_topic = kafka_topic
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def capacity(self) -> int:
        """Buffer bound; follows config reloads when a store is attached."""
        if self._config is not None:
            return self._config.current.recent_events_capacity
        return self._capacity

    def set_kafka_producer(self, producer, topic: str | None = None) -> None:
        self._kafka_producer = producer
        if topic:
            self._kafka_topic = topic

    def record(self, event: FraudEvent) -> asyncio.Task | None:
        """Schedule persistence of ``event`` and return without waiting."""
        try:
            task = asyncio.get_running_loop().create_task(self._persist(event))
        except Exception:
            logger.warning("fraud_event_schedule_failed", event_id=event.event_id, exc_info=True)
            return None
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for scheduled writes; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _persist(self, event: FraudEvent) -> None:
        payload = event.model_dump_json()
        capacity = self.capacity

        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.lpush(RECENT_EVENTS_KEY, payload)
                pipe.ltrim(RECENT_EVENTS_KEY, 0, capacity - 1)
                if event.assessment.system_error:
                    pipe.lpush(SYSTEM_ERRORS_KEY, payload)
                    pipe.ltrim(SYSTEM_ERRORS_KEY, 0, capacity - 1)
                await pipe.execute()
        except Exception:
            logger.warning("fraud_event_buffer_failed", event_id=event.event_id, exc_info=True)

        if self._session_factory is not None:
            try:
                async with self._session_factory() as session:
                    session.add(fraud_event_to_row(event))
                    await session.commit()
            except Exception:
                logger.warning("fraud_event_persist_failed", event_id=event.event_id, exc_info=True)

        if self._kafka_producer is not None:
            try:
                await publish_fraud_event(
                    self._kafka_producer, self._kafka_topic, event.model_dump(mode="json")
                )
            except Exception:
                logger.warning("fraud_event_publish_failed", event_id=event.event_id, exc_info=True)

        logger.debug(
            "fraud_event_recorded",
            event_id=event.event_id,
            assessment_id=event.assessment.assessment_id,
            action=event.assessment.action.value,
            system_error=event.assessment.system_error,
        )

    async def recent_events(self, limit: int = 50, system_errors: bool = False) -> list[FraudEvent]:
        """Newest first, at most ``limit`` entries from the bounded buffer."""
        key = SYSTEM_ERRORS_KEY if system_errors else RECENT_EVENTS_KEY
        raw = await self._redis.lrange(key, 0, max(limit, 1) - 1)
        events: list[FraudEvent] = []
        for item in raw:
            try:
                events.append(FraudEvent.model_validate_json(item))
            except ValueError:
                logger.warning("fraud_event_buffer_entry_invalid", key=key)
        return events


async def load_events(session: AsyncSession, since: datetime) -> list[FraudEvent]:
    stmt = (
        select(FraudEventRow)
        .where(FraudEventRow.recorded_at >= since)
        .order_by(FraudEventRow.recorded_at.desc())
    )
    result = await session.execute(stmt)
    return [row_to_fraud_event(row) for row in result.scalars().all()]


async def get_event_by_assessment(session: AsyncSession, assessment_id: str) -> FraudEvent | None:
    stmt = select(FraudEventRow).where(FraudEventRow.assessment_id == assessment_id)
    result = await session.execute(stmt)
    row = result.scalar_one_or_none()
    return row_to_fraud_event(row) if row else None


def summarize_events(
    events: list[FraudEvent],
    now: datetime | None = None,
    window_hours: int = 24,
    top_n: int = 10,
) -> FraudAnalytics:
    """Counts by level/action, top factors and hourly/daily buckets."""
    now = now or datetime.now(UTC)
    since = now - timedelta(hours=window_hours)
    in_window = [e for e in events if e.recorded_at >= since]

    by_level = Counter(e.assessment.risk_level.value for e in in_window)
    by_action = Counter(e.assessment.action.value for e in in_window)
    # Outages are counted apart so they do not inflate the factor ranking
    factors = Counter(
        factor
        for e in in_window
        if not e.assessment.system_error
        for factor in e.assessment.factors
    )
    by_hour = Counter(
        e.recorded_at.astimezone(UTC).strftime("%Y-%m-%dT%H:00Z") for e in in_window
    )
    by_day = Counter(e.recorded_at.astimezone(UTC).strftime("%Y-%m-%d") for e in in_window)

    total = len(in_window)
    average = sum(e.assessment.score for e in in_window) / total if total else 0.0

    return FraudAnalytics(
        window_hours=window_hours,
        total_events=total,
        by_risk_level={level.value: by_level.get(level.value, 0) for level in RiskLevel},
        by_action={action.value: by_action.get(action.value, 0) for action in Action},
        system_errors=sum(1 for e in in_window if e.assessment.system_error),
        average_score=round(average, 4),
        top_factors=[
            FactorCount(factor=factor, count=count)
            for factor, count in sorted(factors.items(), key=lambda kv: (-kv[1], kv[0]))[:top_n]
        ],
        events_by_hour=[BucketCount(bucket=b, count=c) for b, c in sorted(by_hour.items())],
        events_by_day=[BucketCount(bucket=b, count=c) for b, c in sorted(by_day.items())],
    )


async def load_history(
    session: AsyncSession,
    identity_id: str | None = None,
    transaction_id: str | None = None,
    limit: int = 100,
) -> list[FraudEvent]:
    """Stored events for an identity and/or transaction, newest first."""
    stmt = select(FraudEventRow)
    if identity_id:
        stmt = stmt.where(FraudEventRow.identity_id == identity_id)
    if transaction_id:
        stmt = stmt.where(FraudEventRow.transaction_id == transaction_id)
    stmt = stmt.order_by(FraudEventRow.recorded_at.desc()).limit(limit)
    result = await session.execute(stmt)
    return [row_to_fraud_event(row) for row in result.scalars().all()]
