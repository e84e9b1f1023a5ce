"""Behavioral signal: account age, time of day and KYC status."""

from zoneinfo import ZoneInfo

from ..config import FraudConfig
from ..models import (
    DeviceFingerprint,
    RiskFactor,
    SignalResult,
    SignalSnapshot,
    TransactionContext,
    UserContext,
)
from .base import SignalExtractor


class BehavioralSignal(SignalExtractor):
    """Newer accounts and late-night activity score higher; KYC halves the total."""

    name = "behavioral"
    weight = 0.20

    def extract(
        self,
        transaction: TransactionContext,
        user: UserContext,
        device: DeviceFingerprint,
        snapshot: SignalSnapshot,
        config: FraudConfig,
    ) -> SignalResult:
        settings = config.behavior
        score = 0.0
        factors: list[str] = []

        age_days = user.account_age_days(transaction.timestamp)
        if age_days is None:
            score += 0.2
            factors.append(RiskFactor.UNKNOWN_ACCOUNT_AGE)
        elif age_days < settings.new_account_days:
            score += 0.6
            factors.append(RiskFactor.NEW_ACCOUNT)
        elif age_days < settings.recent_account_days:
            score += 0.3
            factors.append(RiskFactor.RECENT_ACCOUNT)

        local_time = transaction.timestamp.astimezone(ZoneInfo(settings.timezone)).time()
        if config.suspicious_time_window.contains(local_time):
            score += 0.3
            factors.append(RiskFactor.SUSPICIOUS_HOUR)

        if not user.kyc_verified and transaction.amount_float >= settings.kyc_required_amount:
            score += 0.4
            factors.append(RiskFactor.LARGE_AMOUNT_WITHOUT_KYC)

        if user.kyc_verified:
            score *= settings.kyc_discount

        return self._result(score, factors)
