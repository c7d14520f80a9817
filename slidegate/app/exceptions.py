"""Custom exceptions for the rate limiter."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from slidegate.app.rate_limit.models import RateLimit


class SlideGateException(Exception):
    """Base class for rate limiter exceptions with HTTP status code.
    
    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500
    
    def __init__(self, message: str = "Rate limiter error"):
        self.message = message
        super().__init__(message)


class InvalidIntervalError(SlideGateException, ValueError):
    """Raised when a window interval is shorter than one second.
    
    This is a configuration error and is never recovered internally.
    """
    status_code = 500
    
    def __init__(self, interval_seconds: int):
        self.interval_seconds = interval_seconds
        super().__init__(
            f'The interval must be positive integer, "{interval_seconds}" given.'
        )


class StorageError(SlideGateException):
    """Raised when the storage backend or its lock cannot be reached.
    
    Distinct from a rejected decision: callers must not treat it as
    "rate limited". Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503
    
    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        message = f"Rate limit storage failed during {operation}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class RateLimitExceededError(SlideGateException):
    """Raised by RateLimit.ensure_accepted() for a rejected decision.
    
    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429
    
    def __init__(self, rate_limit: "RateLimit"):
        self.rate_limit = rate_limit
        super().__init__(
            f"Rate limit exceeded. Limit: {rate_limit.limit}. "
            f"Retry after {rate_limit.retry_after.isoformat()}."
        )

    @property
    def retry_after(self):
        return self.rate_limit.retry_after

    @property
    def limit(self) -> int:
        return self.rate_limit.limit

    @property
    def remaining_tokens(self) -> int:
        return self.rate_limit.remaining_tokens
