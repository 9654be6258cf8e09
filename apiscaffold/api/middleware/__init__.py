"""Middleware and exception handlers for the main app."""
from .errors import register_exception_handlers
from .rate_limiter import RateLimiter, RateLimitExceeded, enforce_rate_limit

__all__ = [
    "register_exception_handlers",
    "RateLimiter",
    "RateLimitExceeded",
    "enforce_rate_limit",
]
