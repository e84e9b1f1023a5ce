"""Fraud prevention components shared by the request pipeline and admin API.

Components are created lazily on first use from the process-wide Redis
client and session factory. Tests swap them with ``app.dependency_overrides``.
"""

from fastapi import Depends, Request, Response

from riskgate.config import settings
from riskgate.db.database import async_session_factory
from riskgate.domains.fraud.audit import AuditLogger
from riskgate.domains.fraud.config import ConfigStore, FraudConfig
from riskgate.domains.fraud.engine import RiskEngine
from riskgate.domains.fraud.gateway import PreventionGateway
from riskgate.domains.fraud.models import RiskAssessment
from riskgate.domains.fraud.rate_limit import GatewayRateLimiter
from riskgate.domains.fraud.velocity import VelocityTracker
from riskgate.shared.redis import get_redis

SCREENED_HEADER = "X-Fraud-Screened"

_config_store: ConfigStore | None = None
_tracker: VelocityTracker | None = None
_audit: AuditLogger | None = None
_gateway: PreventionGateway | None = None


def get_config_store() -> ConfigStore:
    global _config_store
    if _config_store is None:
        _config_store = ConfigStore(FraudConfig.from_env())
    return _config_store


def get_velocity_tracker() -> VelocityTracker:
    global _tracker
    if _tracker is None:
        _tracker = VelocityTracker(get_redis())
    return _tracker


def get_audit_logger() -> AuditLogger:
    global _audit
    if _audit is None:
        _audit = AuditLogger(
            get_redis(),
            session_factory=async_session_factory,
            kafka_topic=settings.kafka_fraud_events_topic,
            config=get_config_store(),
        )
    return _audit


def get_gateway() -> PreventionGateway:
    global _gateway
    if _gateway is None:
        store = get_config_store()
        _gateway = PreventionGateway(
            engine=RiskEngine(get_velocity_tracker(), store),
            rate_limiter=GatewayRateLimiter(get_redis()),
            audit=get_audit_logger(),
            config=store,
        )
    return _gateway


async def fraud_screening(
    request: Request,
    response: Response,
    gateway: PreventionGateway = Depends(get_gateway),  # noqa: B008
) -> RiskAssessment | None:
    """App-wide dependency: screens the request if its path is a screened one."""
    assessment = await gateway.screen(request)
    if assessment is not None:
        response.headers[SCREENED_HEADER] = "true"
    return assessment
