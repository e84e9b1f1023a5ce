"""Amount signal: size of the single operation."""

from decimal import Decimal

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


class AmountSignal(SignalExtractor):
    """Large, near-ceiling, round and very small amounts.

    An amount exactly equal to the single-transaction ceiling is allowed; only
    amounts strictly above it count as large.
    """

    name = "amount"
    weight = 0.20

    def extract(
        self,
        transaction: TransactionContext,
        user: UserContext,
        device: DeviceFingerprint,
        snapshot: SignalSnapshot,
        config: FraudConfig,
    ) -> SignalResult:
        amount = transaction.amount_float
        if amount <= 0:
            return self._result(0.0, [])

        settings = config.amount
        ceiling = config.single_txn_ceiling
        score = 0.0
        factors: list[str] = []

        if amount > ceiling:
            # 0.8 just over the ceiling, 1.0 from twice the ceiling
            ratio = min(amount / ceiling, 2.0)
            score += 0.8 + (ratio - 1.0) * 0.2
            factors.append(RiskFactor.LARGE_AMOUNT)
        elif amount >= ceiling * settings.approach_ratio:
            score += 0.3
            factors.append(RiskFactor.APPROACHING_CEILING)

        unit = settings.round_amount_unit
        if amount >= unit and transaction.amount % Decimal(str(unit)) == 0:
            score += 0.3
            factors.append(RiskFactor.ROUND_AMOUNT)

        if amount < settings.small_amount_threshold:
            score += 0.2
            factors.append(RiskFactor.SMALL_AMOUNT)

        return self._result(score, factors)
