"""Authentication models for the gateway.

Identity is the per-request record of which credential, if any, authenticated
the caller. It is created by the authenticator for every request, attached to
the admitted request and discarded with it; nothing here is persisted.

Dependencies:
    - pydantic: Typed, serializable identity records

Used by:
    - src.auth.auth: Produces Identity instances
    - src.ratelimit.limiter callers: Identity.rate_limit_key picks the bucket
    - src.models.requests: AdmittedRequest.identity
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..security.redaction import mask_credential


class Identity(BaseModel):
    """Resolved caller identity.

    Attributes:
        key: The accepted API key; None when the caller is not authenticated
        authenticated: True only when a credential was checked and accepted
        resolved_at: UTC timestamp of resolution

    Usage Example:
        identity = Identity(key="secret123", authenticated=True)
        identity.rate_limit_key("10.0.0.1")  # "secret123"
    """

    model_config = ConfigDict(frozen=True)

    key: Optional[str] = None
    authenticated: bool = False
    resolved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def rate_limit_key(self, origin: Optional[str]) -> str:
        """Bucket used by the rate limiter: the key when authenticated, else the origin."""
        if self.authenticated and self.key:
            return self.key
        return origin or "unknown"

    def to_public_dict(self) -> dict[str, Any]:
        """Serializable view with the credential reduced to a short prefix."""
        return {
            "authenticated": self.authenticated,
            "keyPrefix": mask_credential(self.key) if self.key else None,
            "resolvedAt": self.resolved_at.isoformat(),
        }
