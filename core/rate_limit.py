"""
Rate Limiting

Fixed-window counters in Redis, shared by the HTTP middleware (per user or
IP, per minute) and the check-in submission gate (per user, per day).

Keys: rate_limit:{policy}:{key}:{window_id} where window_id = now // period.
A denied attempt is rolled back so it does not consume budget.
"""
import time
import logging
from dataclasses import dataclass
from typing import Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from core.config import settings
from core.cache import get_redis_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    rate: int
    period: int  # seconds


@dataclass(frozen=True)
class RateLimitResult:
    ok: bool
    retry_after: float = 0.0  # seconds; > 0 only when denied
    remaining: int = 0


class FixedWindowRateLimiter:
    """Fixed-window limiter over Redis INCR. Fails open when Redis is down."""

    def limit(self, key: str, policy: RateLimitPolicy, now: Optional[float] = None) -> RateLimitResult:
        now = time.time() if now is None else now
        window_id = int(now) // policy.period
        window_end = (window_id + 1) * policy.period

        redis_client = get_redis_client()
        if not redis_client:
            # If Redis unavailable, allow request (graceful degradation)
            logger.warning(f"Redis unavailable, skipping rate limit check for {policy.name}")
            return RateLimitResult(ok=True, remaining=policy.rate)

        redis_key = f"rate_limit:{policy.name}:{key}:{window_id}"
        try:
            count = int(redis_client.incr(redis_key))
            if count == 1:
                redis_client.expire(redis_key, policy.period + 60)

            if count > policy.rate:
                redis_client.decr(redis_key)
                retry_after = max(window_end - now, 1.0)
                logger.info(
                    f"Rate limit {policy.name} denied for {key}",
                    extra={"extra_fields": {"policy": policy.name, "retry_after": retry_after}},
                )
                return RateLimitResult(ok=False, retry_after=retry_after, remaining=0)

            return RateLimitResult(ok=True, remaining=policy.rate - count)
        except Exception as e:
            # On error, allow request (fail open)
            logger.error(f"Rate limit check error: {e}")
            return RateLimitResult(ok=True, remaining=policy.rate)


rate_limiter = FixedWindowRateLimiter()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-minute request limit per user (bearer token) or client IP."""

    def __init__(self, app, default_limit: int = 60, window: int = 60):
        super().__init__(app)
        self.policy = RateLimitPolicy(name="http", rate=default_limit, period=window)

    async def dispatch(self, request: Request, call_next):
        # Skip rate limiting if disabled
        if not settings.RATE_LIMIT_ENABLED:
            return await call_next(request)

        # Skip rate limiting for health checks
        if request.url.path in ["/health", "/ping", "/docs", "/openapi.json", "/redoc"]:
            return await call_next(request)

        user_id = self._get_user_id(request)
        result = rate_limiter.limit(user_id, self.policy)

        if not result.ok:
            retry_after = int(result.retry_after) or 1
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": "Rate limit exceeded",
                    "limit": self.policy.rate,
                    "window": self.policy.period,
                    "retry_after": retry_after,
                },
                headers={
                    "X-RateLimit-Limit": str(self.policy.rate),
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(retry_after),
                }
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.policy.rate)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        return response

    def _get_user_id(self, request: Request) -> str:
        """Bucket key: the token subject when present, else the client IP."""
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme == "Bearer" and token:
            from core.security import get_user_id_from_token
            user_id = get_user_id_from_token(token)
            if user_id:
                return f"user:{user_id}"
        return f"ip:{request.client.host if request.client else 'unknown'}"
