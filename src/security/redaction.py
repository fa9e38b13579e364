"""Log-safe views of payloads and credentials.

Nothing that reaches a log sink should contain a full credential. Payloads are
copied with sensitive fields replaced by a placeholder, and API keys are cut
down to a short prefix.

The sensitive-field set is a required argument of redact_payload rather than a
module constant so every call site states which fields it hides.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Optional

REDACTED = "[REDACTED]"

# Default set used by GatewayConfig.sensitive_fields
DEFAULT_SENSITIVE_FIELDS = frozenset({"apiKey", "password", "token", "secret", "key"})

CREDENTIAL_PREFIX_LENGTH = 8


def redact_payload(payload: Any, sensitive_fields: Iterable[str]) -> Any:
    """Return a shallow copy of ``payload`` with sensitive values replaced.

    Only top-level fields are inspected, and only truthy values are replaced
    (an empty ``password`` field is left as-is so the log still shows it was
    blank). A list or tuple body has each of its mapping items redacted the
    same way. Any other payload is returned unchanged.

    Args:
        payload: Request body as decoded from JSON
        sensitive_fields: Field names whose values must not be logged

    Returns:
        A new dict for mapping payloads, a new list for list or tuple
        payloads, otherwise the payload itself
    """
    hidden = set(sensitive_fields)

    if isinstance(payload, (list, tuple)):
        return [_redact_mapping(item, hidden) if isinstance(item, Mapping) else item for item in payload]
    if not isinstance(payload, Mapping):
        return payload
    return _redact_mapping(payload, hidden)


def _redact_mapping(payload: Mapping, hidden: set) -> dict:
    sanitized = dict(payload)
    for field in hidden:
        if sanitized.get(field):
            sanitized[field] = REDACTED
    return sanitized


def mask_credential(credential: Optional[str]) -> str:
    """First eight characters of a credential followed by ``...``."""
    if not credential:
        return "***"
    return credential[:CREDENTIAL_PREFIX_LENGTH] + "..."
