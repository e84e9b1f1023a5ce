"""Frequency signal: daily velocity and short bursts."""

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


class FrequencySignal(SignalExtractor):
    """Proximity to the daily count/amount limits, plus hourly bursts.

    The counters in the snapshot already include the operation being screened.
    """

    name = "frequency"
    weight = 0.25

    def extract(
        self,
        transaction: TransactionContext,
        user: UserContext,
        device: DeviceFingerprint,
        snapshot: SignalSnapshot,
        config: FraudConfig,
    ) -> SignalResult:
        settings = config.frequency
        factors: list[str] = []

        count_score = _limit_score(
            snapshot.daily.count, config.daily_txn_count_limit, settings.approach_ratio
        )
        if snapshot.daily.count > config.daily_txn_count_limit:
            factors.append(RiskFactor.DAILY_COUNT_EXCEEDED)
        elif count_score > 0:
            factors.append(RiskFactor.DAILY_COUNT_APPROACHING)

        amount_score = _limit_score(
            snapshot.daily.amount, config.daily_amount_limit, settings.approach_ratio
        )
        if snapshot.daily.amount > config.daily_amount_limit:
            factors.append(RiskFactor.DAILY_AMOUNT_EXCEEDED)
        elif amount_score > 0:
            factors.append(RiskFactor.DAILY_AMOUNT_APPROACHING)

        score = max(count_score, amount_score)

        if snapshot.burst.count >= settings.burst_min_count:
            score += 0.5
            factors.append(RiskFactor.TRANSACTION_BURST)

        return self._result(score, factors)


def _limit_score(value: float, limit: float, approach_ratio: float) -> float:
    """1.0 past the limit, 0.5 x ratio once within ``approach_ratio`` of it."""
    ratio = value / limit
    if ratio > 1.0:
        return 1.0
    if ratio >= approach_ratio:
        return 0.5 * ratio
    return 0.0
