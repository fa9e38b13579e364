"""API key extraction from the several places a client may put it.

Clients of the gateway (browser extension, scripts, curl) send their key in
different ways. The resolver checks each location in a fixed order and returns
the first usable candidate.

Lookup Order:
    1. X-API-Key header
    2. Authorization header, with a leading "Bearer " removed
    3. Api-Key header
    4. apiKey query parameter
    5. apiKey field of the JSON body

A candidate is usable when it is a string that is not blank once trimmed.
The trimmed form is returned.

Complexity: O(1) - at most five lookups
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from ..models.requests import GatewayRequest

BEARER_PREFIX = "Bearer "


def _authorization_candidate(request: "GatewayRequest") -> Optional[str]:
    value = request.header("authorization")
    if isinstance(value, str) and value.startswith(BEARER_PREFIX):
        return value[len(BEARER_PREFIX):]
    # Non-bearer authorization values are offered as-is
    return value


def _body_candidate(request: "GatewayRequest") -> Any:
    if isinstance(request.body, Mapping):
        return request.body.get("apiKey")
    return None


_LOCATIONS: tuple[tuple[str, Callable[["GatewayRequest"], Any]], ...] = (
    ("x-api-key", lambda request: request.header("x-api-key")),
    ("authorization", _authorization_candidate),
    ("api-key", lambda request: request.header("api-key")),
    ("query", lambda request: request.query.get("apiKey")),
    ("body", _body_candidate),
)


def _normalize(candidate: Any) -> Optional[str]:
    if not isinstance(candidate, str):
        return None
    trimmed = candidate.strip()
    return trimmed or None


def resolve_key_with_source(request: "GatewayRequest") -> tuple[Optional[str], Optional[str]]:
    """Resolve the key and report which location supplied it.

    Returns:
        Tuple of (key, source). Both are None when no location holds a usable key.
    """
    for source, lookup in _LOCATIONS:
        key = _normalize(lookup(request))
        if key is not None:
            return key, source
    return None, None


def resolve_key(request: "GatewayRequest") -> Optional[str]:
    """Return the first usable API key in the request, or None."""
    key, _ = resolve_key_with_source(request)
    return key
