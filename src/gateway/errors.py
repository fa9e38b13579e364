"""Rejection taxonomy of the admission pipeline.

Every way a request can be turned away before reaching an upstream service is
one of the exceptions below. Each carries the HTTP status to answer with and
renders its own JSON body, so the HTTP layer needs a single exception handler.

Error Kinds:
    - ValidationFailedError (400): payload violates the route schema; the full
      error list is returned in ``details``
    - AuthenticationRequiredError (401): no credential supplied
    - InvalidCredentialError (401): credential rejected. The message never says
      why
    - RateLimitExceededError (429): caller must back off for ``retryAfter``
      seconds
    - InternalGatewayError (500): a stage failed unexpectedly. Full detail goes
      to the server log only; the stack is returned when debug output is on

Response Body:
    {"success": false, "error": str, "message": str,
     "details"?: [FieldError...], "retryAfter"?: int, "stack"?: str}
"""

import traceback
from typing import Any, Optional

from ..models.schema import FieldError


class GatewayError(Exception):
    """Base class for admission rejections."""

    status_code = 500
    error = "Gateway error"
    default_message = "Request could not be admitted"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str]:
        return {}

    def to_response(self, include_debug: bool = False) -> dict[str, Any]:
        """JSON body for this rejection."""
        return {
            "success": False,
            "error": self.error,
            "message": self.message,
        }


class ValidationFailedError(GatewayError):
    status_code = 400
    error = "Validation failed"
    default_message = "Request validation failed"

    def __init__(self, details: list[FieldError], message: Optional[str] = None):
        super().__init__(message)
        self.details = details

    def to_response(self, include_debug: bool = False) -> dict[str, Any]:
        body = super().to_response(include_debug)
        body["details"] = [detail.model_dump(mode="json") for detail in self.details]
        return body


class AuthenticationError(GatewayError):
    """Common base of the 401 rejections."""

    status_code = 401

    @property
    def headers(self) -> dict[str, str]:
        return {"WWW-Authenticate": "ApiKey"}


class AuthenticationRequiredError(AuthenticationError):
    error = "Authentication required"
    default_message = "API key is required for this endpoint"


class InvalidCredentialError(AuthenticationError):
    error = "Invalid API key"
    default_message = "The provided API key is invalid"


class RateLimitExceededError(GatewayError):
    status_code = 429
    error = "Rate limit exceeded"

    def __init__(self, retry_after: int, limit: int, window_seconds: int):
        super().__init__(f"Too many requests. Limit: {limit} per {window_seconds} seconds")
        self.retry_after = retry_after
        self.limit = limit
        self.window_seconds = window_seconds

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}

    def to_response(self, include_debug: bool = False) -> dict[str, Any]:
        body = super().to_response(include_debug)
        body["retryAfter"] = self.retry_after
        return body


class InternalGatewayError(GatewayError):
    """Unexpected failure inside a pipeline stage.

    Attributes:
        stage: "validation", "authentication" or "rate_limit"
        cause: The original exception (kept for server-side logging)
    """

    status_code = 500

    _STAGE_ERRORS = {
        "validation": ("Validation error", "Internal validation error"),
        "authentication": ("Authentication error", "Internal authentication error"),
        "rate_limit": ("Rate limit error", "Internal rate limit error"),
    }

    def __init__(self, stage: str, cause: BaseException):
        error, message = self._STAGE_ERRORS.get(stage, ("Gateway error", "Internal gateway error"))
        super().__init__(message)
        self.error = error
        self.stage = stage
        self.cause = cause

    def to_response(self, include_debug: bool = False) -> dict[str, Any]:
        body = super().to_response(include_debug)
        if include_debug:
            body["stack"] = "".join(
                traceback.format_exception(type(self.cause), self.cause, self.cause.__traceback__)
            )
        return body
