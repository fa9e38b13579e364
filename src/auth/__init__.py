"""Authentication module for the AI assistant gateway."""

from .auth import authenticate, authenticate_optional, is_valid_api_key
from .key_resolver import resolve_key
from .models import Identity

__all__ = ["authenticate", "authenticate_optional", "is_valid_api_key", "resolve_key", "Identity"]
