"""Integration tests for the fraud administration API."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from riskgate.api.dependencies import (
    get_audit_logger,
    get_config_store,
    get_gateway,
    get_velocity_tracker,
)
from riskgate.db.database import get_session
from riskgate.db.models import ReviewRow
from riskgate.domains.fraud.audit import AuditLogger, fraud_event_to_row
from riskgate.domains.fraud.config import ConfigStore, FraudConfig
from riskgate.domains.fraud.engine import RiskEngine
from riskgate.domains.fraud.gateway import PreventionGateway
from riskgate.domains.fraud.models import (
    Action,
    FraudEvent,
    RiskAssessment,
    RiskLevel,
    VelocityWindow,
)
from riskgate.domains.fraud.rate_limit import GatewayRateLimiter
from riskgate.domains.fraud.velocity import VelocityTracker
from riskgate.main import app
from tests.conftest import override_get_session

pytestmark = pytest.mark.integration

PREFIX = "/api/v1/admin/fraud"


def _event(**assessment) -> FraudEvent:
    values = {
        "assessment_id": "assess-1",
        "transaction_id": "tx_1",
        "identity_id": "user-1",
        "score": 0.77,
        "risk_level": RiskLevel.HIGH,
        "action": Action.BLOCK,
        "factors": ["large amount", "unsupported country"],
    }
    values.update(assessment)
    return FraudEvent(
        assessment=RiskAssessment(**values),
        path="/api/transactions/create",
        method="POST",
        masked_ip="41.0.0.0/24",
        recorded_at=datetime.now(UTC),
    )


def _result(scalar=None, rows=None):
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value = MagicMock(all=MagicMock(return_value=rows or []))
    return result


def _mock_session(*results):
    session = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.execute = AsyncMock(side_effect=list(results))
    return session


@pytest.fixture
def components(redis_client):
    store = ConfigStore(FraudConfig())
    tracker = VelocityTracker(redis_client)
    audit = AuditLogger(redis_client)
    gateway = PreventionGateway(
        engine=RiskEngine(tracker, store),
        rate_limiter=GatewayRateLimiter(redis_client),
        audit=audit,
        config=store,
    )
    app.dependency_overrides[get_config_store] = lambda: store
    app.dependency_overrides[get_velocity_tracker] = lambda: tracker
    app.dependency_overrides[get_audit_logger] = lambda: audit
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield {"store": store, "tracker": tracker, "audit": audit}
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestRecentEvents:
    @pytest.mark.asyncio
    async def test_recent_events(self, components):
        audit = components["audit"]
        audit.record(_event())
        await audit.drain()

        async with _client() as client:
            response = await client.get(f"{PREFIX}/events/recent", params={"limit": 5})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["events"][0]["assessment"]["assessment_id"] == "assess-1"

    @pytest.mark.asyncio
    async def test_system_error_events(self, components):
        audit = components["audit"]
        audit.record(_event())
        audit.record(
            _event(
                assessment_id="assess-2",
                score=1.0,
                factors=["system error"],
                system_error=True,
            )
        )
        await audit.drain()

        async with _client() as client:
            response = await client.get(f"{PREFIX}/events/system-errors")

        data = response.json()
        assert data["count"] == 1
        assert data["events"][0]["assessment"]["assessment_id"] == "assess-2"

    @pytest.mark.asyncio
    async def test_limit_is_validated(self, components):
        async with _client() as client:
            response = await client.get(f"{PREFIX}/events/recent", params={"limit": 0})
        assert response.status_code == 422


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_analytics(self, components):
        rows = [
            fraud_event_to_row(_event()),
            fraud_event_to_row(
                _event(
                    assessment_id="assess-2",
                    score=0.25,
                    risk_level=RiskLevel.MEDIUM,
                    action=Action.REVIEW,
                    factors=["unsupported country"],
                    requires_review=True,
                )
            ),
        ]
        app.dependency_overrides[get_session] = override_get_session(
            _mock_session(_result(rows=rows))
        )

        async with _client() as client:
            response = await client.get(f"{PREFIX}/analytics", params={"hours": 24})

        assert response.status_code == 200
        data = response.json()
        assert data["window_hours"] == 24
        assert data["total_events"] == 2
        assert data["by_action"]["BLOCK"] == 1
        assert data["by_action"]["REVIEW"] == 1
        assert data["top_factors"][0] == {"factor": "unsupported country", "count": 2}


class TestHistory:
    @pytest.mark.asyncio
    async def test_history_by_identity(self, components):
        rows = [
            fraud_event_to_row(_event(assessment_id="assess-2", transaction_id="tx_2")),
            fraud_event_to_row(_event()),
        ]
        session = _mock_session(_result(rows=rows))
        app.dependency_overrides[get_session] = override_get_session(session)

        async with _client() as client:
            response = await client.get(f"{PREFIX}/history", params={"identity_id": "user-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert [e["assessment"]["transaction_id"] for e in data["events"]] == ["tx_2", "tx_1"]
        sql = str(session.execute.call_args[0][0])
        assert "fraud_events.identity_id =" in sql
        assert "ORDER BY fraud_events.recorded_at DESC" in sql

    @pytest.mark.asyncio
    async def test_history_by_transaction(self, components):
        session = _mock_session(_result(rows=[fraud_event_to_row(_event())]))
        app.dependency_overrides[get_session] = override_get_session(session)

        async with _client() as client:
            response = await client.get(f"{PREFIX}/history", params={"transaction_id": "tx_1"})

        assert response.status_code == 200
        assert response.json()["events"][0]["assessment"]["assessment_id"] == "assess-1"
        assert "fraud_events.transaction_id =" in str(session.execute.call_args[0][0])

    @pytest.mark.asyncio
    async def test_history_limit_is_validated(self, components):
        async with _client() as client:
            response = await client.get(f"{PREFIX}/history", params={"limit": 5000})
        assert response.status_code == 422


class TestReviews:
    @pytest.mark.asyncio
    async def test_create_review(self, components):
        session = _mock_session(_result(scalar="assess-1"))
        app.dependency_overrides[get_session] = override_get_session(session)

        async with _client() as client:
            response = await client.post(
                f"{PREFIX}/reviews",
                json={
                    "assessmentId": "assess-1",
                    "action": "APPROVE",
                    "reviewer": "analyst@example.com",
                    "notes": "verified with customer",
                },
            )

        assert response.status_code == 201
        data = response.json()
        assert data["assessment_id"] == "assess-1"
        assert data["action"] == "APPROVE"
        assert data["review_id"]
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_review_of_unknown_assessment(self, components):
        app.dependency_overrides[get_session] = override_get_session(
            _mock_session(_result(scalar=None))
        )

        async with _client() as client:
            response = await client.post(
                f"{PREFIX}/reviews",
                json={"assessmentId": "nope", "action": "BLOCK", "reviewer": "analyst"},
            )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_review_requires_known_action(self, components):
        async with _client() as client:
            response = await client.post(
                f"{PREFIX}/reviews",
                json={"assessmentId": "assess-1", "action": "ESCALATE", "reviewer": "analyst"},
            )
        assert response.status_code == 422


class TestAssessmentLookup:
    @pytest.mark.asyncio
    async def test_assessment_with_reviews(self, components):
        review = ReviewRow(
            review_id="r-1",
            assessment_id="assess-1",
            action="APPROVE",
            reviewer="analyst",
            notes="false positive",
            reviewed_at=datetime.now(UTC),
        )
        app.dependency_overrides[get_session] = override_get_session(
            _mock_session(
                _result(scalar=fraud_event_to_row(_event())),
                _result(rows=[review]),
            )
        )

        async with _client() as client:
            response = await client.get(f"{PREFIX}/assessments/assess-1")

        assert response.status_code == 200
        data = response.json()
        assert data["event"]["assessment"]["action"] == "BLOCK"
        assert data["reviews"][0]["action"] == "APPROVE"
        assert data["reviews"][0]["notes"] == "false positive"

    @pytest.mark.asyncio
    async def test_unknown_assessment(self, components):
        app.dependency_overrides[get_session] = override_get_session(
            _mock_session(_result(scalar=None))
        )

        async with _client() as client:
            response = await client.get(f"{PREFIX}/assessments/missing")

        assert response.status_code == 404


class TestConfig:
    @pytest.mark.asyncio
    async def test_get_config(self, components):
        async with _client() as client:
            response = await client.get(f"{PREFIX}/config")
        assert response.status_code == 200
        data = response.json()
        assert data["dailyTxnCountLimit"] == 10
        assert data["riskThresholds"] == {"low": 0.0, "medium": 0.2, "high": 0.5}
        assert data["gatewayRateLimit"] == {"windowMs": 900_000, "max": 100}

    @pytest.mark.asyncio
    async def test_reload_config(self, components):
        store = components["store"]
        previous = store.current

        async with _client() as client:
            response = await client.put(
                f"{PREFIX}/config",
                json={"dailyTxnCountLimit": 20, "riskThresholds": {"medium": 0.3}},
            )

        assert response.status_code == 200
        assert response.json()["dailyTxnCountLimit"] == 20
        assert store.current.daily_txn_count_limit == 20
        assert store.current.risk_thresholds.medium == 0.3
        assert previous.daily_txn_count_limit == 10

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "changes",
        [
            {"unknownOption": 1},
            {"riskThresholds": {"medium": 0.9}},
            {"dailyTxnCountLimit": 0},
            {"behavior": {"timezone": "Not/AZone"}},
            {"device": {"anonymizingNetworks": ["10.0.0.0/33"]}},
            {"screenedPaths": "/api/transactions/create"},
            {"allowedCountries": "ZA"},
        ],
    )
    async def test_invalid_reload_keeps_current_config(self, components, changes):
        store = components["store"]
        before = store.current

        async with _client() as client:
            response = await client.put(f"{PREFIX}/config", json=changes)

        assert response.status_code == 422
        assert store.current is before


class TestVelocity:
    @pytest.mark.asyncio
    async def test_velocity_snapshot(self, components):
        tracker = components["tracker"]
        await tracker.update("user-1", VelocityWindow.DAY, 120.0)
        await tracker.update("user-1", VelocityWindow.DAY, 80.0)

        async with _client() as client:
            response = await client.get(f"{PREFIX}/velocity/user-1", params={"window": "day"})
            again = await client.get(f"{PREFIX}/velocity/user-1", params={"window": "day"})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["amount"] == 200.0
        assert again.json()["count"] == 2

    @pytest.mark.asyncio
    async def test_unknown_window(self, components):
        async with _client() as client:
            response = await client.get(f"{PREFIX}/velocity/user-1", params={"window": "year"})
        assert response.status_code == 422
