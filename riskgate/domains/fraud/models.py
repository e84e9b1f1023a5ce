"""Pydantic models for the fraud prevention domain."""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Largest amount the velocity store can sum as a float without overflow
MAX_AMOUNT = Decimal("1e15")


class RiskLevel(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Action(StrEnum):
    APPROVE = "APPROVE"
    REVIEW = "REVIEW"
    BLOCK = "BLOCK"


class VelocityWindow(StrEnum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"

    @property
    def seconds(self) -> int:
        return _WINDOW_SECONDS[self]


_WINDOW_SECONDS = {
    VelocityWindow.HOUR: 3_600,
    VelocityWindow.DAY: 86_400,
    VelocityWindow.WEEK: 604_800,
}


class NetworkClass(StrEnum):
    GLOBAL = "global"
    NON_ROUTABLE = "non_routable"
    ANONYMIZING = "anonymizing"
    MISSING = "missing"


class RiskFactor(StrEnum):
    # Amount
    LARGE_AMOUNT = "large amount"
    APPROACHING_CEILING = "approaching amount ceiling"
    ROUND_AMOUNT = "round amount"
    SMALL_AMOUNT = "small amount"
    # Frequency
    DAILY_COUNT_EXCEEDED = "daily count limit exceeded"
    DAILY_COUNT_APPROACHING = "approaching daily count limit"
    DAILY_AMOUNT_EXCEEDED = "daily amount limit exceeded"
    DAILY_AMOUNT_APPROACHING = "approaching daily amount limit"
    TRANSACTION_BURST = "transaction burst"
    # Geographic
    UNSUPPORTED_COUNTRY = "unsupported country"
    HIGH_RISK_JURISDICTION = "high-risk jurisdiction"
    MISSING_COUNTRY = "missing recipient country"
    # Device
    SHARED_DEVICE = "shared device"
    TOO_MANY_DEVICES = "too many devices"
    NEW_DEVICE = "new device"
    MISSING_USER_AGENT = "missing user agent"
    AUTOMATED_USER_AGENT = "automated user agent"
    NON_ROUTABLE_ADDRESS = "non-routable network address"
    ANONYMIZING_NETWORK = "anonymizing network"
    MISSING_ADDRESS = "missing network address"
    # Behavioral
    NEW_ACCOUNT = "new account"
    RECENT_ACCOUNT = "recent account"
    UNKNOWN_ACCOUNT_AGE = "unknown account age"
    SUSPICIOUS_HOUR = "suspicious hour"
    LARGE_AMOUNT_WITHOUT_KYC = "large amount without kyc"
    # Fail-closed
    SYSTEM_ERROR = "system error"


class AuthenticatedIdentity(BaseModel):
    """Identity attached to the request by the upstream auth layer."""

    id: str
    email: str | None = None
    phone: str | None = None
    kyc_verified: bool = False
    created_at: datetime | None = None


class TransactionContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: str = Field(default_factory=lambda: f"tx_{uuid.uuid4().hex[:16]}")
    identity_id: str
    amount: Decimal = Decimal("0")
    currency: str = "ZAR"
    recipient_country: str | None = None
    recipient_id: str | None = None
    payment_method: str | None = None
    beneficiary_id: str | None = None
    description: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("amount")
    @classmethod
    def _non_negative(cls, v: Decimal) -> Decimal:
        if not v.is_finite() or v < 0:
            raise ValueError("amount must be a finite, non-negative number")
        if v > MAX_AMOUNT:
            raise ValueError(f"amount must not exceed {MAX_AMOUNT:f}")
        return v

    @field_validator("recipient_country")
    @classmethod
    def _country_code(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        v = v.strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError("recipient_country must be an ISO-3166 alpha-2 code")
        return v

    @field_validator("currency")
    @classmethod
    def _currency_code(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("currency must be an ISO-4217 code")
        return v

    @field_validator("timestamp")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return v if v.tzinfo else v.replace(tzinfo=UTC)

    @property
    def amount_float(self) -> float:
        return float(self.amount)


class UserContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity_id: str
    kyc_verified: bool = False
    created_at: datetime | None = None

    def account_age_days(self, now: datetime) -> float | None:
        if self.created_at is None:
            return None
        created = self.created_at if self.created_at.tzinfo else self.created_at.replace(tzinfo=UTC)
        return max((now - created).total_seconds() / 86_400, 0.0)


class DeviceFingerprint(BaseModel):
    """Non-reversible device summary. The raw client address is not kept."""

    model_config = ConfigDict(frozen=True)

    fingerprint: str
    user_agent: str = ""
    network: NetworkClass = NetworkClass.MISSING
    has_device_id: bool = False


class VelocityCounter(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity_id: str
    window: VelocityWindow
    count: int = 0
    amount: float = 0.0
    ttl_seconds: int | None = None


class DeviceAssociation(BaseModel):
    model_config = ConfigDict(frozen=True)

    identities_on_device: int = 0
    devices_for_identity: int = 0
    is_new_device: bool = False


class SignalSnapshot(BaseModel):
    """Shared-state reads an assessment is computed from."""

    model_config = ConfigDict(frozen=True)

    daily: VelocityCounter
    burst: VelocityCounter
    devices: DeviceAssociation


class SignalResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    score: float = Field(ge=0.0, le=1.0)
    factors: list[str] = []


class RiskAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    assessment_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    transaction_id: str
    identity_id: str
    signal_scores: dict[str, float] = Field(default_factory=dict)
    score: float = Field(ge=0.0, le=1.0)
    risk_level: RiskLevel
    action: Action
    factors: list[str] = []
    requires_review: bool = False
    system_error: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class FraudEvent(BaseModel):
    """Audit record: an assessment plus request metadata, no body fields."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    assessment: RiskAssessment
    path: str
    method: str
    masked_ip: str | None = None
    user_agent: str | None = None
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assessment_id: str = Field(alias="assessmentId")
    action: Action
    reviewer: str = Field(min_length=1)
    notes: str = ""
    timestamp: datetime | None = None


class ReviewRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    review_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    assessment_id: str
    action: Action
    reviewer: str
    notes: str = ""
    timestamp: datetime


class FactorCount(BaseModel):
    factor: str
    count: int


class BucketCount(BaseModel):
    bucket: str
    count: int


class FraudAnalytics(BaseModel):
    window_hours: int
    total_events: int = 0
    by_risk_level: dict[str, int] = Field(default_factory=dict)
    by_action: dict[str, int] = Field(default_factory=dict)
    system_errors: int = 0
    average_score: float = 0.0
    top_factors: list[FactorCount] = []
    events_by_hour: list[BucketCount] = []
    events_by_day: list[BucketCount] = []
