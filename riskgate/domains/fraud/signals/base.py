"""Abstract base class for risk signal extractors."""

from abc import ABC, abstractmethod

from ..config import FraudConfig
from ..models import (
    DeviceFingerprint,
    SignalResult,
    SignalSnapshot,
    TransactionContext,
    UserContext,
)


class SignalExtractor(ABC):
    """Base class for the five risk signals.

    Extractors are pure: they see the request contexts plus a snapshot of
    shared state already read by the engine, and never do I/O themselves.
    """

    name: str
    weight: float

    @abstractmethod
    def extract(
        self,
        transaction: TransactionContext,
        user: UserContext,
        device: DeviceFingerprint,
        snapshot: SignalSnapshot,
        config: FraudConfig,
    ) -> SignalResult:
        """Score this signal in [0, 1] and name the factors that raised it."""
        ...

    def _result(self, score: float, factors: list[str]) -> SignalResult:
        return SignalResult(
            name=self.name,
            score=round(min(max(score, 0.0), 1.0), 4),
            factors=[str(f) for f in factors],
        )
