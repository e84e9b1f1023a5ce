"""Fraud prevention exceptions.

``FraudPreventionError`` subclasses surface to the caller as a structured
rejection (see ``riskgate.api.middleware.error_handler``). Evaluation
failures never reach the caller: the engine turns them into a fail-closed
HIGH/BLOCK assessment.
"""

from .models import RiskLevel


class FraudPreventionError(Exception):
    """Base of every error the gateway reports to the caller."""

    status_code: int = 500
    code: str = "FRAUD_SYSTEM_ERROR"
    message: str = "Security system error - transaction blocked"

    def __init__(
        self,
        message: str | None = None,
        risk_level: RiskLevel | None = None,
        requires_review: bool = False,
    ) -> None:
        self.message = message or self.__class__.message
        self.risk_level = risk_level
        self.requires_review = requires_review
        super().__init__(self.message)

    def to_response(self) -> dict:
        body = {"success": False, "message": self.message, "code": self.code}
        if self.risk_level is not None:
            body["riskLevel"] = self.risk_level.value
            body["requiresReview"] = self.requires_review
        return body


class ValidationError(FraudPreventionError):
    """The request could not be turned into a screening context."""

    status_code = 422
    code = "VALIDATION_ERROR"
    message = "Invalid request data for fraud screening"


class AuthenticationRequired(FraudPreventionError):
    status_code = 401
    code = "AUTHENTICATION_REQUIRED"
    message = "Authentication required for fraud screening"


class RateLimitExceeded(FraudPreventionError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    message = "Too many requests - please try again later"

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after

    def to_response(self) -> dict:
        body = super().to_response()
        body["retryAfter"] = self.retry_after
        return body


class FraudDetected(FraudPreventionError):
    """Operation blocked. Never carries the factors that triggered it."""

    status_code = 403
    code = "FRAUD_DETECTED"
    message = "Transaction blocked due to security concerns"


class FraudSystemError(FraudPreventionError):
    """Blocked because the screening itself could not complete."""

    status_code = 503
    code = "FRAUD_SYSTEM_ERROR"
    message = "Security system error - transaction blocked"


class RiskEvaluationFailure(Exception):
    """Internal: an assessment could not be computed. Absorbed by the engine."""


class SignalExtractionFailure(RiskEvaluationFailure):
    def __init__(self, signal: str, reason: str) -> None:
        self.signal = signal
        self.reason = reason
        super().__init__(f"{signal}: {reason}")


class AggregationFailure(RiskEvaluationFailure):
    pass
