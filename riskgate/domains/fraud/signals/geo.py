"""Geographic signal: recipient jurisdiction."""

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


class GeographicSignal(SignalExtractor):
    """Recipient country outside the corridor allow-list or in a high-risk list."""

    name = "geographic"
    weight = 0.15

    def extract(
        self,
        transaction: TransactionContext,
        user: UserContext,
        device: DeviceFingerprint,
        snapshot: SignalSnapshot,
        config: FraudConfig,
    ) -> SignalResult:
        country = transaction.recipient_country
        if country is None:
            # Beneficiary and KYC operations carry no money and no country
            if transaction.amount_float > 0:
                return self._result(0.3, [RiskFactor.MISSING_COUNTRY])
            return self._result(0.0, [])

        score = 0.0
        factors: list[str] = []

        if country not in config.allowed_countries:
            score += 0.8
            factors.append(RiskFactor.UNSUPPORTED_COUNTRY)

        if country in config.high_risk_countries:
            score += 0.4
            factors.append(RiskFactor.HIGH_RISK_JURISDICTION)

        return self._result(score, factors)
