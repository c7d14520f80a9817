"""Rate limiting middleware.

Applies a SlidingWindowLimiter to every request of a FastAPI/Starlette
application. The limiter is synchronous, so consume() runs in the
threadpool to keep blocking storage I/O off the event loop.
"""

import hashlib
import math
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from slidegate.app.core.clock import Clock, get_clock
from slidegate.app.core.logging import get_log_context, get_logger
from slidegate.app.exceptions import StorageError
from slidegate.app.rate_limit.limiter import SlidingWindowLimiter, create_limiter
from slidegate.app.rate_limit.models import RateLimit

logger = get_logger(__name__)

MAX_API_KEY_LENGTH = 512


class InvalidClientKeyError(ValueError):
    """Raised when a request carries an unusable API key."""


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limits on requests.

    Rate limits are applied per API key if available, otherwise per IP.
    """

    def __init__(
        self,
        app,
        limiter: Optional[SlidingWindowLimiter] = None,
        hits: int = 1,
        clock: Optional[Clock] = None,
    ):
        super().__init__(app)
        self.limiter = limiter or create_limiter()
        self.hits = hits
        self._clock = clock or get_clock()

    def _get_client_key(self, request: Request) -> str:
        """Get rate limit key for the request.

        Uses API key if available, otherwise falls back to IP address.
        Both are hashed with SHA-256 so raw keys never reach storage.

        Args:
            request: FastAPI request object

        Returns:
            Rate limit key string

        Raises:
            InvalidClientKeyError: If the API key is longer than 512 characters.
        """
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            api_key = auth[7:].strip()
            if len(api_key) > MAX_API_KEY_LENGTH:
                raise InvalidClientKeyError(
                    f"API key too long (max {MAX_API_KEY_LENGTH} characters)"
                )
            # 32 hex chars (128 bits)
            key_hash = hashlib.sha256(api_key.encode()).hexdigest()[:32]
            return f"ratelimit:apikey:{key_hash}"

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
        else:
            client_ip = request.client.host if request.client else "unknown"

        ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
        return f"ratelimit:ip:{ip_hash}"

    def _headers(self, result: RateLimit) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining_tokens),
            "X-RateLimit-Reset": str(math.ceil(result.retry_after.timestamp())),
        }

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        try:
            key = self._get_client_key(request)
        except InvalidClientKeyError as e:
            return JSONResponse(status_code=400, content={"error": "invalid_api_key", "message": str(e)})

        try:
            result = await run_in_threadpool(self.limiter.consume, key, self.hits)
        except StorageError as e:
            # Storage outage is not a rejection
            logger.error(
                f"Rate limit check unavailable: {e}",
                extra=get_log_context(identity=key),
            )
            return JSONResponse(
                status_code=e.status_code,
                content={
                    "error": "rate_limit_unavailable",
                    "message": "Rate limiting is temporarily unavailable.",
                },
            )

        if not result.accepted:
            retry_after = result.retry_after_seconds(self._clock.now())
            headers = self._headers(result)
            headers["Retry-After"] = str(retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Rate limit exceeded. Please try again later.",
                    "retry_after": retry_after,
                },
                headers=headers,
            )

        response = await call_next(request)
        for name, value in self._headers(result).items():
            response.headers[name] = value
        return response
