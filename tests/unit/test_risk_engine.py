"""Tests for risk aggregation, decisions and fail-closed behaviour."""

import asyncio
from dataclasses import replace
from decimal import Decimal

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from structlog.testing import capture_logs

from riskgate.domains.fraud.config import ConfigStore, FraudConfig, RiskThresholds
from riskgate.domains.fraud.engine import ACTION_BY_LEVEL, RiskEngine, aggregate, decide
from riskgate.domains.fraud.models import Action, RiskFactor, RiskLevel, SignalResult
from riskgate.domains.fraud.signals import ALL_SIGNALS, SIGNAL_WEIGHTS, SignalExtractor
from riskgate.domains.fraud.velocity import VelocityTracker
from tests.conftest import make_device, make_transaction, make_user

CONFIG = FraudConfig()


class _HangingTracker:
    async def update(self, *args, **kwargs):
        await asyncio.sleep(10)

    async def associate_device(self, *args, **kwargs):
        await asyncio.sleep(10)


class _BrokenRedis:
    def pipeline(self, transaction=True):
        raise RedisConnectionError("connection refused")


class _ExplodingSignal(SignalExtractor):
    name = "amount"
    weight = 0.20

    def extract(self, transaction, user, device, snapshot, config):
        raise RuntimeError("bad input")


class TestDecision:
    def test_weights_sum_to_one(self):
        assert sum(SIGNAL_WEIGHTS.values()) == pytest.approx(1.0)
        assert SIGNAL_WEIGHTS == {
            "amount": 0.20,
            "frequency": 0.25,
            "geographic": 0.15,
            "device": 0.20,
            "behavioral": 0.20,
        }

    def test_action_mapping_is_total(self):
        assert set(ACTION_BY_LEVEL) == set(RiskLevel)
        assert ACTION_BY_LEVEL[RiskLevel.LOW] is Action.APPROVE
        assert ACTION_BY_LEVEL[RiskLevel.MEDIUM] is Action.REVIEW
        assert ACTION_BY_LEVEL[RiskLevel.HIGH] is Action.BLOCK

    @pytest.mark.parametrize(
        ("score", "level", "action"),
        [
            (0.0, RiskLevel.LOW, Action.APPROVE),
            (0.1999, RiskLevel.LOW, Action.APPROVE),
            (0.2, RiskLevel.MEDIUM, Action.REVIEW),
            (0.4999, RiskLevel.MEDIUM, Action.REVIEW),
            (0.5, RiskLevel.HIGH, Action.BLOCK),
            (1.0, RiskLevel.HIGH, Action.BLOCK),
        ],
    )
    def test_thresholds_are_inclusive_lower_bounds(self, score, level, action):
        assert decide(score, RiskThresholds()) == (level, action)

    def test_decision_is_pure(self):
        thresholds = RiskThresholds(low=0.0, medium=0.3, high=0.7)
        assert decide(0.5, thresholds) == decide(0.5, thresholds) == (
            RiskLevel.MEDIUM,
            Action.REVIEW,
        )

    def test_aggregate_is_weighted_and_clamped(self):
        results = [SignalResult(name=s.name, score=1.0) for s in ALL_SIGNALS]
        assert aggregate(results, ALL_SIGNALS) == 1.0
        results = [SignalResult(name="frequency", score=1.0)]
        assert aggregate(results, ALL_SIGNALS) == 0.25


class TestRiskEngine:
    @pytest.mark.asyncio
    async def test_clean_transaction_is_approved(self, redis_client):
        engine = RiskEngine(VelocityTracker(redis_client), CONFIG)
        assessment = await engine.assess(make_transaction(), make_user(), make_device())
        assert assessment.score == 0.0
        assert assessment.risk_level is RiskLevel.LOW
        assert assessment.action is Action.APPROVE
        assert assessment.factors == []
        assert not assessment.requires_review
        assert not assessment.system_error
        assert set(assessment.signal_scores) == set(SIGNAL_WEIGHTS)

    @pytest.mark.asyncio
    async def test_small_transfer_by_established_verified_user(self, redis_client):
        engine = RiskEngine(VelocityTracker(redis_client), CONFIG)
        assessment = await engine.assess(
            make_transaction(amount=Decimal("50")),
            make_user(age_days=400, kyc_verified=True),
            make_device(),
        )
        assert assessment.score < 0.2
        assert assessment.risk_level is RiskLevel.LOW
        assert assessment.action is Action.APPROVE
        assert not assessment.requires_review

    @pytest.mark.asyncio
    async def test_large_transfer_to_unsupported_country_is_blocked(self, redis_client):
        engine = RiskEngine(VelocityTracker(redis_client), CONFIG)
        transaction = make_transaction(amount=Decimal("100000"), recipient_country="US")
        user = make_user(age_days=0, kyc_verified=False)

        assessment = await engine.assess(transaction, user, make_device())

        assert assessment.score >= 0.77
        assert assessment.risk_level is RiskLevel.HIGH
        assert assessment.action is Action.BLOCK
        assert RiskFactor.LARGE_AMOUNT in assessment.factors
        assert RiskFactor.UNSUPPORTED_COUNTRY in assessment.factors
        assert not assessment.system_error

    @pytest.mark.asyncio
    async def test_eleventh_transaction_of_the_day_needs_review(self, redis_client):
        engine = RiskEngine(VelocityTracker(redis_client), CONFIG)
        user = make_user()
        device = make_device()
        for _ in range(10):
            await engine.assess(make_transaction(amount=Decimal("100")), user, device)

        assessment = await engine.assess(make_transaction(amount=Decimal("100")), user, device)

        assert assessment.signal_scores["frequency"] == 1.0
        assert RiskFactor.DAILY_COUNT_EXCEEDED in assessment.factors
        assert assessment.risk_level in (RiskLevel.MEDIUM, RiskLevel.HIGH)
        assert assessment.action in (Action.REVIEW, Action.BLOCK)

    @pytest.mark.asyncio
    async def test_store_timeout_fails_closed(self):
        config = replace(CONFIG, velocity_timeout_seconds=0.05)
        engine = RiskEngine(_HangingTracker(), config)

        with capture_logs() as logs:
            assessment = await engine.assess(make_transaction(), make_user(), make_device())

        assert assessment.score == 1.0
        assert assessment.risk_level is RiskLevel.HIGH
        assert assessment.action is Action.BLOCK
        assert assessment.factors == ["system error"]
        assert assessment.system_error
        events = [entry["event"] for entry in logs]
        assert "fraud_system_error" in events
        assert "fraud_assessment" not in events

    @pytest.mark.asyncio
    async def test_store_error_fails_closed(self):
        engine = RiskEngine(VelocityTracker(_BrokenRedis()), CONFIG)
        assessment = await engine.assess(make_transaction(), make_user(), make_device())
        assert assessment.system_error
        assert assessment.action is Action.BLOCK

    @pytest.mark.asyncio
    async def test_extractor_exception_fails_closed(self, redis_client):
        signals = [_ExplodingSignal(), *ALL_SIGNALS[1:]]
        engine = RiskEngine(VelocityTracker(redis_client), CONFIG, signals=signals)
        assessment = await engine.assess(make_transaction(), make_user(), make_device())
        assert assessment.system_error
        assert assessment.score == 1.0

    @pytest.mark.asyncio
    async def test_genuine_detection_is_logged_as_assessment(self, redis_client):
        engine = RiskEngine(VelocityTracker(redis_client), CONFIG)
        with capture_logs() as logs:
            await engine.assess(make_transaction(), make_user(), make_device())
        events = [entry["event"] for entry in logs]
        assert "fraud_assessment" in events
        assert "fraud_system_error" not in events

    @pytest.mark.asyncio
    async def test_config_reload_applies_to_next_assessment(self, redis_client):
        store = ConfigStore(CONFIG)
        engine = RiskEngine(VelocityTracker(redis_client), store)
        transaction = make_transaction(amount=Decimal("500"))

        first = await engine.assess(transaction, make_user(), make_device())
        store.reload(replace(CONFIG, single_txn_ceiling=400.0))
        second = await engine.assess(transaction, make_user(), make_device())

        assert RiskFactor.LARGE_AMOUNT not in first.factors
        assert RiskFactor.LARGE_AMOUNT in second.factors

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "5", "999.99", "3000", "12000", "250000"])
    @pytest.mark.parametrize("country", ["ZA", "US", "IR", None])
    async def test_score_bounds_and_action_consistency(self, redis_client, amount, country):
        engine = RiskEngine(VelocityTracker(redis_client), CONFIG)
        transaction = make_transaction(amount=Decimal(amount), recipient_country=country)
        assessment = await engine.assess(
            transaction, make_user(age_days=1, kyc_verified=False), make_device()
        )
        assert 0.0 <= assessment.score <= 1.0
        assert assessment.action is ACTION_BY_LEVEL[assessment.risk_level]
        assert assessment.factors == sorted(set(assessment.factors))
