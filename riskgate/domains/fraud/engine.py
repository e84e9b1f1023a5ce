"""Risk aggregation and decision engine with fail-closed semantics."""

import asyncio

import structlog

from .config import ConfigStore, FraudConfig, RiskThresholds
from .exceptions import AggregationFailure, RiskEvaluationFailure, SignalExtractionFailure
from .models import (
    Action,
    DeviceFingerprint,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    SignalResult,
    SignalSnapshot,
    TransactionContext,
    UserContext,
    VelocityWindow,
)
from .signals import ALL_SIGNALS, SignalExtractor
from .velocity import VelocityTracker

logger = structlog.get_logger()

ACTION_BY_LEVEL: dict[RiskLevel, Action] = {
    RiskLevel.LOW: Action.APPROVE,
    RiskLevel.MEDIUM: Action.REVIEW,
    RiskLevel.HIGH: Action.BLOCK,
}


def classify_risk_level(score: float, thresholds: RiskThresholds) -> RiskLevel:
    if score >= thresholds.high:
        return RiskLevel.HIGH
    if score >= thresholds.medium:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def decide(score: float, thresholds: RiskThresholds) -> tuple[RiskLevel, Action]:
    """Pure mapping from (score, thresholds) to level and action."""
    level = classify_risk_level(score, thresholds)
    return level, ACTION_BY_LEVEL[level]


def aggregate(results: list[SignalResult], signals: list[SignalExtractor]) -> float:
    """Weighted sum of signal scores, clamped to [0, 1]."""
    weights = {signal.name: signal.weight for signal in signals}
    total = sum(weights[r.name] * r.score for r in results)
    return round(min(max(total, 0.0), 1.0), 4)


class RiskEngine:
    """Combines the five signals into one assessment.

    Pipeline:
    1. Read shared state (velocity update + device association) under a timeout
    2. Run every extractor on the contexts and that snapshot
    3. Weighted sum, clamp, classify, map to an action

    Any failure in steps 1-3 yields a HIGH/BLOCK "system error" assessment.
    There is no retry: an unreachable store is treated like an attack would be.
    """

    def __init__(
        self,
        tracker: VelocityTracker,
        config: ConfigStore | FraudConfig | None = None,
        signals: list[SignalExtractor] | None = None,
    ) -> None:
        if isinstance(config, FraudConfig):
            config = ConfigStore(config)
        self._config = config or ConfigStore()
        self._tracker = tracker
        self._signals = list(signals) if signals is not None else list(ALL_SIGNALS)
        logger.info("risk_engine_initialized", signal_count=len(self._signals))

    @property
    def config(self) -> FraudConfig:
        return self._config.current

    async def assess(
        self,
        transaction: TransactionContext,
        user: UserContext,
        device: DeviceFingerprint,
    ) -> RiskAssessment:
        cfg = self.config
        try:
            snapshot = await self._gather(transaction, device, cfg)
            results = self._extract(transaction, user, device, snapshot, cfg)
            assessment = self._decide(transaction, results, cfg)
        except RiskEvaluationFailure as exc:
            return self._fail_closed(transaction, exc)

        logger.info(
            "fraud_assessment",
            assessment_id=assessment.assessment_id,
            transaction_id=transaction.transaction_id,
            identity_id=transaction.identity_id,
            score=assessment.score,
            risk_level=assessment.risk_level.value,
            action=assessment.action.value,
            factor_count=len(assessment.factors),
        )
        return assessment

    async def _gather(
        self,
        transaction: TransactionContext,
        device: DeviceFingerprint,
        cfg: FraudConfig,
    ) -> SignalSnapshot:
        identity = transaction.identity_id
        amount = transaction.amount_float

        async def _read() -> SignalSnapshot:
            daily = await self._tracker.update(identity, VelocityWindow.DAY, amount)
            burst = await self._tracker.update(identity, VelocityWindow.HOUR, amount)
            devices = await self._tracker.associate_device(
                identity, device.fingerprint, cfg.device.association_ttl_seconds
            )
            return SignalSnapshot(daily=daily, burst=burst, devices=devices)

        try:
            return await asyncio.wait_for(_read(), timeout=cfg.velocity_timeout_seconds)
        except TimeoutError as exc:
            raise SignalExtractionFailure("velocity", "velocity store timed out") from exc
        except Exception as exc:
            raise SignalExtractionFailure("velocity", f"velocity store error: {exc}") from exc

    def _extract(
        self,
        transaction: TransactionContext,
        user: UserContext,
        device: DeviceFingerprint,
        snapshot: SignalSnapshot,
        cfg: FraudConfig,
    ) -> list[SignalResult]:
        results: list[SignalResult] = []
        for signal in self._signals:
            try:
                results.append(signal.extract(transaction, user, device, snapshot, cfg))
            except Exception as exc:
                raise SignalExtractionFailure(signal.name, str(exc)) from exc
        return results

    def _decide(
        self,
        transaction: TransactionContext,
        results: list[SignalResult],
        cfg: FraudConfig,
    ) -> RiskAssessment:
        try:
            score = aggregate(results, self._signals)
            level, action = decide(score, cfg.risk_thresholds)
            factors = sorted({factor for r in results for factor in r.factors})
            return RiskAssessment(
                transaction_id=transaction.transaction_id,
                identity_id=transaction.identity_id,
                signal_scores={r.name: r.score for r in results},
                score=score,
                risk_level=level,
                action=action,
                factors=factors,
                requires_review=action is Action.REVIEW,
            )
        except Exception as exc:
            raise AggregationFailure(str(exc)) from exc

    def _fail_closed(
        self,
        transaction: TransactionContext,
        exc: RiskEvaluationFailure,
    ) -> RiskAssessment:
        assessment = RiskAssessment(
            transaction_id=transaction.transaction_id,
            identity_id=transaction.identity_id,
            score=1.0,
            risk_level=RiskLevel.HIGH,
            action=Action.BLOCK,
            factors=[str(RiskFactor.SYSTEM_ERROR)],
            requires_review=False,
            system_error=True,
        )
        logger.error(
            "fraud_system_error",
            assessment_id=assessment.assessment_id,
            transaction_id=transaction.transaction_id,
            identity_id=transaction.identity_id,
            failure=type(exc).__name__,
            signal=getattr(exc, "signal", None),
            reason=str(exc),
        )
        return assessment
