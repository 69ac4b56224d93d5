"""
Shared Redis client.

Used by the HTTP and check-in rate limiters, the work queue's global
in-flight counter and the partial plan text streams. Every caller treats a
None client as "Redis is down" and degrades instead of failing the request.
"""
import json
import logging
import time
from typing import Any, Optional

import redis
from redis.exceptions import RedisError

from core.config import settings

logger = logging.getLogger(__name__)

# Seconds to wait after a failed connect before trying Redis again.
RECONNECT_BACKOFF_S = 30

_client: Optional[redis.Redis] = None
_last_failure: Optional[float] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Connected client, or None while Redis is unreachable."""
    global _client, _last_failure

    if _client is not None:
        return _client
    if _last_failure is not None and time.monotonic() - _last_failure < RECONNECT_BACKOFF_S:
        return None

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        client.ping()
    except RedisError as e:
        _last_failure = time.monotonic()
        logger.warning(f"Redis unavailable at {settings.REDIS_URL}: {e}")
        return None

    _client = client
    _last_failure = None
    logger.info("Connected to Redis")
    return _client


def get_json(key: str) -> Optional[Any]:
    client = get_redis_client()
    if client is None:
        return None
    try:
        raw = client.get(key)
    except RedisError as e:
        logger.warning(f"Redis read failed for {key}: {e}")
        return None
    return json.loads(raw) if raw else None


def set_json(key: str, value: Any, ttl_s: int) -> bool:
    """Store value as JSON with an expiry. False when Redis is unavailable."""
    client = get_redis_client()
    if client is None:
        return False
    try:
        client.setex(key, ttl_s, json.dumps(value, default=str))
    except RedisError as e:
        logger.warning(f"Redis write failed for {key}: {e}")
        return False
    return True
