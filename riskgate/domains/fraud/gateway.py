"""Prevention gateway: screens sensitive operations inside the request pipeline."""

from collections.abc import Mapping

import structlog
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile
from starlette.requests import Request

from .audit import AuditLogger
from .config import ConfigStore, FraudConfig
from .engine import RiskEngine
from .exceptions import (
    AuthenticationRequired,
    FraudDetected,
    FraudPreventionError,
    FraudSystemError,
    RateLimitExceeded,
    ValidationError,
)
from .fingerprint import build_fingerprint, client_address, mask_ip
from .models import (
    Action,
    AuthenticatedIdentity,
    DeviceFingerprint,
    FraudEvent,
    RiskAssessment,
    TransactionContext,
    UserContext,
)
from .rate_limit import GatewayRateLimiter

logger = structlog.get_logger()

_USER_AGENT_MAX = 512

# body key -> TransactionContext field; camelCase first, snake_case accepted
_BODY_FIELDS = {
    "transaction_id": ("transactionId", "transaction_id"),
    "amount": ("amount",),
    "currency": ("currency",),
    "recipient_country": ("recipientCountry", "recipient_country"),
    "recipient_id": ("recipientId", "recipient_id", "recipientEmail", "recipient_email"),
    "payment_method": ("paymentMethod", "payment_method"),
    "beneficiary_id": ("beneficiaryId", "beneficiary_id"),
    "description": ("description",),
}


def build_transaction_context(identity_id: str, body: Mapping) -> TransactionContext:
    """Map request body fields onto a TransactionContext.

    Raises ``ValidationError`` for malformed values. Missing fields take the
    context defaults (amount 0 for non-monetary operations).
    """
    values: dict = {"identity_id": identity_id}
    for field_name, keys in _BODY_FIELDS.items():
        for key in keys:
            value = body.get(key)
            if value is not None and value != "":
                values[field_name] = value
                break
    try:
        return TransactionContext(**values)
    except PydanticValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise ValidationError(
            f"Invalid request data for fraud screening: {', '.join(fields)}"
        ) from exc


def build_user_context(identity: AuthenticatedIdentity | None, subject: str) -> UserContext:
    if identity is None:
        return UserContext(identity_id=subject)
    return UserContext(
        identity_id=identity.id,
        kyc_verified=identity.kyc_verified,
        created_at=identity.created_at,
    )


def build_device_fingerprint(request: Request, config: FraudConfig) -> DeviceFingerprint:
    headers = request.headers
    peer = request.client.host if request.client else None
    return build_fingerprint(
        user_agent=headers.get("user-agent"),
        address=client_address(headers, peer),
        accept_language=headers.get("accept-language"),
        accept_encoding=headers.get("accept-encoding"),
        device_id=headers.get("x-device-id"),
        anonymizing_networks=config.device.anonymizing_networks,
    )


async def read_body(request: Request) -> Mapping:
    """JSON object or form fields of the request; empty for anything else."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        raw = await request.body()
        if not raw.strip():
            return {}
        try:
            body = await request.json()
        except ValueError as exc:
            raise ValidationError("Request body is not valid JSON") from exc
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return body
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        return {k: v for k, v in form.items() if not isinstance(v, UploadFile)}
    return {}


class PreventionGateway:
    """Entry point for screening.

    Order of checks: screened path, identity, gateway rate limit, context
    extraction, risk assessment. BLOCK raises; REVIEW and APPROVE attach the
    assessment to ``request.state.risk_assessment`` and let the request through.
    """

    def __init__(
        self,
        engine: RiskEngine,
        rate_limiter: GatewayRateLimiter,
        audit: AuditLogger,
        config: ConfigStore,
    ) -> None:
        self._engine = engine
        self._rate_limiter = rate_limiter
        self._audit = audit
        self._config = config

    def requires_screening(self, path: str) -> bool:
        return any(path.startswith(p) for p in self._config.current.screened_paths)

    def is_auth_exempt(self, path: str) -> bool:
        return any(path.startswith(p) for p in self._config.current.auth_exempt_paths)

    async def screen(self, request: Request) -> RiskAssessment | None:
        path = request.url.path
        if not self.requires_screening(path):
            return None

        try:
            return await self._screen(request, path)
        except FraudPreventionError:
            raise
        except Exception as exc:
            logger.exception("fraud_gateway_error", path=path, method=request.method)
            raise FraudPreventionError() from exc

    async def _screen(self, request: Request, path: str) -> RiskAssessment:
        cfg = self._config.current
        identity: AuthenticatedIdentity | None = getattr(request.state, "identity", None)
        peer = request.client.host if request.client else None
        address = client_address(request.headers, peer)

        if identity is None and not self.is_auth_exempt(path):
            logger.info("fraud_screening_unauthenticated", path=path, method=request.method)
            raise AuthenticationRequired()

        subject = identity.id if identity else f"anon:{address or 'unknown'}"

        try:
            await self._rate_limiter.hit(subject, cfg.gateway_rate_limit)
        except RateLimitExceeded:
            raise
        except Exception:
            # The engine reads the same store and fails closed if it is down
            logger.warning("fraud_rate_limit_unavailable", subject=subject, exc_info=True)

        logger.info("fraud_screening_started", path=path, identity_id=subject, method=request.method)

        body = await read_body(request)
        transaction = build_transaction_context(subject, body)
        user = build_user_context(identity, subject)
        device = build_device_fingerprint(request, cfg)

        assessment = await self._engine.assess(transaction, user, device)
        request.state.risk_assessment = assessment

        user_agent = request.headers.get("user-agent")
        self._audit.record(
            FraudEvent(
                assessment=assessment,
                path=path,
                method=request.method,
                masked_ip=mask_ip(address),
                user_agent=user_agent[:_USER_AGENT_MAX] if user_agent else None,
            )
        )

        if assessment.action is Action.BLOCK:
            if assessment.system_error:
                raise FraudSystemError(risk_level=assessment.risk_level, requires_review=False)
            logger.warning(
                "transaction_blocked",
                identity_id=subject,
                assessment_id=assessment.assessment_id,
                score=assessment.score,
                factors=assessment.factors,
            )
            raise FraudDetected(
                risk_level=assessment.risk_level,
                requires_review=assessment.requires_review,
            )

        if assessment.action is Action.REVIEW:
            logger.info(
                "transaction_flagged_for_review",
                identity_id=subject,
                assessment_id=assessment.assessment_id,
                score=assessment.score,
                factors=assessment.factors,
            )
        else:
            logger.info(
                "transaction_approved",
                identity_id=subject,
                assessment_id=assessment.assessment_id,
                score=assessment.score,
            )
        return assessment
