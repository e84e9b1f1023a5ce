"""Fraud prevention domain."""

from .audit import AuditLogger, summarize_events
from .config import ConfigStore, FraudConfig, default_config
from .engine import ACTION_BY_LEVEL, RiskEngine, decide
from .exceptions import (
    AuthenticationRequired,
    FraudDetected,
    FraudPreventionError,
    FraudSystemError,
    RateLimitExceeded,
    ValidationError,
)
from .gateway import PreventionGateway
from .models import (
    Action,
    AuthenticatedIdentity,
    FraudEvent,
    RiskAssessment,
    RiskLevel,
    TransactionContext,
    UserContext,
)
from .rate_limit import GatewayRateLimiter
from .signals import ALL_SIGNALS
from .velocity import VelocityTracker

__all__ = [
    "ACTION_BY_LEVEL",
    "ALL_SIGNALS",
    "Action",
    "AuditLogger",
    "AuthenticatedIdentity",
    "AuthenticationRequired",
    "ConfigStore",
    "FraudConfig",
    "FraudDetected",
    "FraudEvent",
    "FraudPreventionError",
    "FraudSystemError",
    "GatewayRateLimiter",
    "PreventionGateway",
    "RateLimitExceeded",
    "RiskAssessment",
    "RiskEngine",
    "RiskLevel",
    "TransactionContext",
    "UserContext",
    "ValidationError",
    "VelocityTracker",
    "decide",
    "default_config",
    "summarize_events",
]
