"""Admission pipeline and rejection types for the gateway.

The pipeline itself lives in src.gateway.pipeline; only the error types are
re-exported here because the auth and rate-limit stages raise them.
"""

from .errors import (
    AuthenticationError,
    AuthenticationRequiredError,
    GatewayError,
    InternalGatewayError,
    InvalidCredentialError,
    RateLimitExceededError,
    ValidationFailedError,
)

__all__ = [
    "GatewayError",
    "ValidationFailedError",
    "AuthenticationError",
    "AuthenticationRequiredError",
    "InvalidCredentialError",
    "RateLimitExceededError",
    "InternalGatewayError",
]
