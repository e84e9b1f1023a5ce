"""Manual review outcomes for BLOCK and REVIEW assessments."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from riskgate.db.models import FraudEventRow, ReviewRow

from .models import Action, ReviewRecord, ReviewRequest

logger = structlog.get_logger()


def _to_record(row: ReviewRow) -> ReviewRecord:
    return ReviewRecord(
        review_id=row.review_id,
        assessment_id=row.assessment_id,
        action=Action(row.action),
        reviewer=row.reviewer,
        notes=row.notes or "",
        timestamp=row.reviewed_at,
    )


async def record_review(request: ReviewRequest, session: AsyncSession) -> ReviewRecord:
    """Append a review for an existing assessment.

    The original assessment row is left untouched. Raises ``LookupError`` if
    no assessment with that id was recorded.
    """
    stmt = select(FraudEventRow.assessment_id).where(
        FraudEventRow.assessment_id == request.assessment_id
    )
    result = await session.execute(stmt)
    if result.scalar_one_or_none() is None:
        raise LookupError(f"Assessment not found: {request.assessment_id}")

    record = ReviewRecord(
        assessment_id=request.assessment_id,
        action=request.action,
        reviewer=request.reviewer,
        notes=request.notes,
        timestamp=request.timestamp or datetime.now(UTC),
    )
    session.add(
        ReviewRow(
            review_id=record.review_id,
            assessment_id=record.assessment_id,
            action=record.action.value,
            reviewer=record.reviewer,
            notes=record.notes,
            reviewed_at=record.timestamp,
        )
    )
    await session.commit()

    logger.info(
        "fraud_review_recorded",
        review_id=record.review_id,
        assessment_id=record.assessment_id,
        action=record.action.value,
        reviewer=record.reviewer,
    )
    return record


async def list_reviews(assessment_id: str, session: AsyncSession) -> list[ReviewRecord]:
    stmt = (
        select(ReviewRow)
        .where(ReviewRow.assessment_id == assessment_id)
        .order_by(ReviewRow.reviewed_at.asc())
    )
    result = await session.execute(stmt)
    return [_to_record(row) for row in result.scalars().all()]
