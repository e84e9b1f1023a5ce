"""SQLAlchemy ORM models for persisted fraud events and manual reviews."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Float, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class FraudEventRow(Base):
    """Analytics stream: one row per assessment, never updated."""

    __tablename__ = "fraud_events"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    assessment_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    transaction_id: Mapped[str] = mapped_column(String, index=True)
    identity_id: Mapped[str] = mapped_column(String, index=True)
    score: Mapped[float] = mapped_column(Float)
    risk_level: Mapped[str] = mapped_column(String, index=True)
    action: Mapped[str] = mapped_column(String, index=True)
    factors: Mapped[list] = mapped_column(JSONB, default=list)
    signal_scores: Mapped[dict] = mapped_column(JSONB, default=dict)
    requires_review: Mapped[bool] = mapped_column(Boolean, default=False)
    system_error: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    assessed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    path: Mapped[str] = mapped_column(String)
    method: Mapped[str] = mapped_column(String)
    masked_ip: Mapped[str | None] = mapped_column(String, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


class ReviewRow(Base):
    """Manual review outcome. Appended next to the assessment, never merged into it."""

    __tablename__ = "fraud_reviews"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    review_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    assessment_id: Mapped[str] = mapped_column(String, index=True)
    action: Mapped[str] = mapped_column(String)
    reviewer: Mapped[str] = mapped_column(String)
    notes: Mapped[str] = mapped_column(Text, default="")
    reviewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
