"""Request admission pipeline: validate, authenticate, rate-limit.

Every inbound request that targets an upstream service passes through
AdmissionPipeline.admit() before any external call is made. The stages run in
a fixed order and the first failure ends the request:

    GatewayRequest
        -> schema validation    (ValidationFailedError, 400)
        -> authentication       (AuthenticationRequiredError / InvalidCredentialError, 401)
        -> rate limiting        (RateLimitExceededError, 429)
        -> AdmittedRequest{validated=True, identity}

Error Policy:
    Stage rejections are raised as GatewayError subclasses. Any other
    exception escaping a stage is logged with full detail and re-raised as
    InternalGatewayError for that stage, so callers only ever see the
    GatewayError taxonomy. Nothing is retried.

Logging:
    Validation failures log the payload through redact_payload() with the
    configured sensitive-field set.

Used by:
    - src.service.dependencies: FastAPI admission dependency
"""

from typing import Literal, Optional

import structlog

from ..auth.auth import authenticate, authenticate_optional
from ..auth.models import Identity
from ..config import GatewayConfig
from ..models.requests import AdmittedRequest, GatewayRequest
from ..models.schema import Schema
from ..ratelimit.limiter import SlidingWindowRateLimiter
from ..security.redaction import redact_payload
from ..security.schema_validator import validate
from .errors import (
    GatewayError,
    InternalGatewayError,
    RateLimitExceededError,
    ValidationFailedError,
)

logger = structlog.get_logger()

AuthMode = Literal["required", "optional"]


class AdmissionPipeline:
    """Composes the validator, authenticator and rate limiter.

    Args:
        config: Gateway configuration (auth mode, sensitive fields)
        rate_limiter: Per-key limiter; None disables the rate-limit stage
    """

    def __init__(self, config: GatewayConfig, rate_limiter: Optional[SlidingWindowRateLimiter] = None):
        self.config = config
        self.rate_limiter = rate_limiter

    def _run_stage(self, stage: str, func, *args):
        try:
            return func(*args)
        except GatewayError:
            raise
        except Exception as e:
            logger.error(
                "Admission stage failed",
                stage=stage,
                error=str(e),
                exc_info=True,
            )
            raise InternalGatewayError(stage, e) from e

    def check_schema(self, request: GatewayRequest, schema: Schema) -> None:
        errors = validate(schema, request.body)
        if errors:
            logger.warning(
                "Validation failed",
                errors=[error.model_dump(mode="json") for error in errors],
                body=redact_payload(request.body, self.config.sensitive_fields),
                origin=request.origin,
                user_agent=request.user_agent,
                path=request.path,
            )
            raise ValidationFailedError(errors)

    def check_identity(self, request: GatewayRequest, auth_mode: AuthMode) -> Identity:
        if auth_mode == "optional":
            return authenticate_optional(request, self.config)
        return authenticate(request, self.config)

    def check_rate_limit(self, request: GatewayRequest, identity: Identity) -> None:
        if self.rate_limiter is None:
            return
        decision = self.rate_limiter.admit(identity.rate_limit_key(request.origin))
        if not decision.allowed:
            raise RateLimitExceededError(
                retry_after=decision.retry_after,
                limit=self.rate_limiter.max_requests,
                window_seconds=round(self.rate_limiter.window_ms / 1000),
            )

    def admit(
        self,
        request: GatewayRequest,
        schema: Optional[Schema] = None,
        auth_mode: AuthMode = "required",
    ) -> AdmittedRequest:
        """Run all admission stages for one request.

        Args:
            request: Inbound request
            schema: Route schema; None or empty skips validation checks
            auth_mode: "required" rejects unauthenticated callers, "optional"
                attaches whatever identity could be resolved

        Returns:
            AdmittedRequest: The request with validated=True and its identity

        Raises:
            ValidationFailedError, AuthenticationRequiredError,
            InvalidCredentialError, RateLimitExceededError, InternalGatewayError
        """
        self._run_stage("validation", self.check_schema, request, schema or {})
        identity = self._run_stage("authentication", self.check_identity, request, auth_mode)
        self._run_stage("rate_limit", self.check_rate_limit, request, identity)

        logger.debug(
            "Request admitted",
            path=request.path,
            authenticated=identity.authenticated,
        )
        return AdmittedRequest(request=request, validated=True, identity=identity)
