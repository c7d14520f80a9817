"""Middleware package for the rate limiter."""

from slidegate.app.middleware.rate_limit import RateLimitMiddleware

__all__ = ["RateLimitMiddleware"]
