"""Sliding-window rate limiting for the gateway."""

from .limiter import RateLimitDecision, SlidingWindowRateLimiter
from .store import InMemoryRateLimitStore, RateLimitStore

__all__ = ["SlidingWindowRateLimiter", "RateLimitDecision", "RateLimitStore", "InMemoryRateLimitStore"]
