"""API key authentication for the gateway.

This module decides whether a request carries an acceptable API key and
produces the per-request Identity attached to admitted requests.

Authentication Flow:
    1. Development bypass: in development mode with no configured key, the
       request is admitted unauthenticated
    2. Resolve a candidate key (see src.auth.key_resolver)
    3. No candidate -> AuthenticationRequiredError (401)
    4. Check the candidate:
       - configured key: exact match (constant-time comparison)
       - no configured key, development mode: any key of 8+ characters
       - no configured key, any other mode: always rejected
    5. Mismatch -> InvalidCredentialError (401); match -> authenticated Identity

Security Model:
    - Only the first 8 characters of a key ever reach the logs
    - Rejection messages are generic and never explain why a key failed
    - Failures are logged with extra={"security_event": True}

Dependencies:
    - hmac: Constant-time key comparison
    - structlog: Security event logging

Used by:
    - src.gateway.pipeline: Authentication stage
    - src.service.dependencies: Route-level admission

Complexity:
    - authenticate: O(k) where k = key length
"""

import hmac
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import structlog

from ..config import GatewayConfig
from ..gateway.errors import AuthenticationRequiredError, InvalidCredentialError
from ..security.redaction import mask_credential
from .key_resolver import resolve_key_with_source
from .models import Identity

if TYPE_CHECKING:
    from ..models.requests import GatewayRequest

logger = structlog.get_logger()

# Minimum key length accepted in development mode when no key is configured
DEVELOPMENT_MIN_KEY_LENGTH = 8


def is_valid_api_key(candidate: Optional[str], config: GatewayConfig) -> bool:
    """Check a candidate key against the configuration.

    Args:
        candidate: Resolved API key (already trimmed)
        config: Gateway configuration

    Returns:
        bool: True if the key is acceptable under the current mode

    Security Note:
        The development fallback is deliberately weak and only applies when no
        key is configured. A configured key always requires an exact match.
    """
    if not candidate or not isinstance(candidate, str):
        return False

    if config.has_api_key:
        return hmac.compare_digest(candidate.encode(), config.valid_api_key.encode())

    if config.development_mode:
        return len(candidate) >= DEVELOPMENT_MIN_KEY_LENGTH

    # Outside development a configured key is mandatory
    return False


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def authenticate(
    request: "GatewayRequest",
    config: GatewayConfig,
    now: Optional[datetime] = None,
) -> Identity:
    """Authenticate a request or reject it.

    Args:
        request: Inbound gateway request
        config: Gateway configuration
        now: Resolution time (defaults to the current UTC time)

    Returns:
        Identity: authenticated=True with the accepted key, or
        authenticated=False under the development bypass

    Raises:
        AuthenticationRequiredError: No usable key in the request
        InvalidCredentialError: Key present but not accepted
    """
    if config.development_mode and not config.has_api_key:
        logger.debug("Skipping authentication in development mode", path=request.path)
        return Identity(authenticated=False, resolved_at=_now(now))

    api_key, source = resolve_key_with_source(request)

    if api_key is None:
        logger.warning(
            "Authentication failed: No API key provided",
            origin=request.origin,
            user_agent=request.user_agent,
            path=request.path,
            extra={"security_event": True},
        )
        raise AuthenticationRequiredError()

    if not is_valid_api_key(api_key, config):
        logger.warning(
            "Authentication failed: Invalid API key",
            origin=request.origin,
            user_agent=request.user_agent,
            path=request.path,
            key_prefix=mask_credential(api_key),
            key_source=source,
            extra={"security_event": True},
        )
        raise InvalidCredentialError()

    logger.debug(
        "Authentication successful",
        origin=request.origin,
        path=request.path,
        key_prefix=mask_credential(api_key),
        key_source=source,
    )
    return Identity(key=api_key, authenticated=True, resolved_at=_now(now))


def authenticate_optional(
    request: "GatewayRequest",
    config: GatewayConfig,
    now: Optional[datetime] = None,
) -> Identity:
    """Identity-aware variant of authenticate() that never rejects.

    Same resolution and checks as authenticate(), but a missing or invalid
    key (or an unexpected failure while checking it) yields an
    unauthenticated Identity instead of an error.
    """
    try:
        api_key, source = resolve_key_with_source(request)
        if api_key is not None and is_valid_api_key(api_key, config):
            logger.debug(
                "Optional authentication successful",
                path=request.path,
                key_prefix=mask_credential(api_key),
                key_source=source,
            )
            return Identity(key=api_key, authenticated=True, resolved_at=_now(now))

        logger.debug(
            "Optional authentication: proceeding unauthenticated",
            path=request.path,
            key_present=api_key is not None,
            key_prefix=mask_credential(api_key) if api_key else None,
        )
    except Exception as e:
        logger.error("Optional authentication error", error=str(e), path=request.path)

    return Identity(authenticated=False, resolved_at=_now(now))
