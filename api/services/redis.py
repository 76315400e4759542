# SPDX-License-Identifier: Apache-2.0

"""
Upstash Redis cache for the EcoBite API.

Holds the JWT logout blocklist, the cached EcoPoints leaderboard and the
fixed-window counters behind credential rate limiting. Redis is optional:
every operation degrades to a no-op when it is not configured or a call
fails, and callers fall back to MongoDB.
"""

import os
import json
import time
from typing import Optional, List, Dict, Any, Union, Callable
from upstash_redis import Redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

KEY_PREFIX = "ecobite:"
LEADERBOARD_KEY = f"{KEY_PREFIX}leaderboard:top"
BLOCKED_TOKEN_PREFIX = f"{KEY_PREFIX}jwt:blocked:"


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class RedisService:
    """Upstash HTTP client wrapper whose calls never raise."""

    def __init__(self, redis_url: Optional[str] = None, redis_token: Optional[str] = None):
        """
        Args:
            redis_url: Upstash Redis REST URL (``REDIS_URL``)
            redis_token: Upstash REST token (``REDIS_TOKEN``)
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL")
        self.redis_token = redis_token or os.getenv("REDIS_TOKEN")
        self.client: Optional[Redis] = None

        if not self.redis_url:
            logger.warning("No REDIS_URL configured, logout revocation and caching are disabled")
            return

        try:
            if self.redis_token:
                self.client = Redis(url=self.redis_url, token=self.redis_token)
            else:
                self.client = Redis.from_env()
            self._test_connection()
            logger.info("Redis service initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def _test_connection(self) -> None:
        if self.client.ping() != "PONG":
            raise RedisConnectionError("Redis ping failed")

    def is_available(self) -> bool:
        return self.client is not None

    def _execute(self, operation: str, key: str, call: Callable[[Redis], Any], default: Any = None) -> Any:
        """Run one client call in a span; failures are logged and yield ``default``."""
        if not self.is_available():
            return default

        with tracer.start_as_current_span(f"redis.{operation}") as span:
            span.set_attributes({"redis.operation": operation, "redis.key": key})
            try:
                return call(self.client)
            except Exception as e:
                span.set_attribute("redis.result", "error")
                span.record_exception(e)
                logger.error(f"Redis {operation.upper()} {key} failed: {str(e)}")
                return default

    def set_with_ttl(self, key: str, value: Union[str, Dict, List], ttl_seconds: int) -> bool:
        """Store ``value`` (JSON encoded unless a string) for ``ttl_seconds``."""
        if isinstance(value, (dict, list)):
            value = json.dumps(value, default=str)
        result = self._execute("setex", key, lambda client: client.setex(key, ttl_seconds, value))
        return result == "OK" or result is True

    def get(self, key: str) -> Optional[str]:
        return self._execute("get", key, lambda client: client.get(key))

    def get_json(self, key: str) -> Optional[Union[Dict, List]]:
        value = self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            logger.error(f"Discarding undecodable cache entry {key}: {str(e)}")
            return None

    def delete(self, key: str) -> bool:
        return (self._execute("delete", key, lambda client: client.delete(key), 0) or 0) > 0

    def increment_window(self, key: str, window_seconds: int) -> Optional[int]:
        """
        Count a hit in a fixed window; the first hit starts the window's TTL.

        Returns:
            Hits so far, or None when Redis is unavailable
        """
        def incr(client: Redis) -> int:
            count = client.incr(key)
            if count == 1:
                client.expire(key, window_seconds)
            return count

        return self._execute("incr", key, incr)

    # JWT logout blocklist

    def is_token_blocked(self, token_id: str) -> bool:
        """
        True when the token was revoked by logout.

        Without Redis nothing can be revoked, so every token is allowed.
        """
        if not self.is_available():
            logger.debug("Redis unavailable for token blocklist check - allowing token")
            return False

        blocked = self.get(f"{BLOCKED_TOKEN_PREFIX}{token_id}") is not None
        trace.get_current_span().set_attribute("auth.token_blocked", blocked)
        return blocked

    def block_token(self, token_id: str, ttl_seconds: int) -> bool:
        """
        Revoke a token until it would have expired anyway.

        Args:
            token_id: ``jti`` claim of the token
            ttl_seconds: Seconds left before the token expires

        Returns:
            True if the token was recorded as revoked
        """
        if not self.is_available():
            logger.warning("Redis unavailable - logout cannot revoke the token")
            return False

        blocked = self.set_with_ttl(f"{BLOCKED_TOKEN_PREFIX}{token_id}", "1", max(ttl_seconds, 1))
        if not blocked:
            logger.error(f"Failed to block token: {token_id}")
        return blocked

    # Leaderboard cache

    def cache_leaderboard(self, entries: List[Dict[str, Any]], ttl_seconds: int = 60) -> bool:
        return self.set_with_ttl(LEADERBOARD_KEY, entries, ttl_seconds)

    def get_cached_leaderboard(self) -> Optional[List[Dict[str, Any]]]:
        cached = self.get_json(LEADERBOARD_KEY)
        if cached is not None:
            logger.debug("Leaderboard cache hit")
        return cached

    def invalidate_leaderboard(self) -> bool:
        """Drop the cached leaderboard after EcoPoints change."""
        return self.delete(LEADERBOARD_KEY)

    def health_check(self) -> Dict[str, Any]:
        """Write, read back and delete a probe key."""
        if not self.is_available():
            return {
                "status": "unavailable",
                "message": "Redis client not initialized",
                "timestamp": time.time()
            }

        start_time = time.time()
        probe_key = f"{KEY_PREFIX}health:{int(start_time)}"
        self.set_with_ttl(probe_key, "ok", 10)
        value = self.get(probe_key)
        self.delete(probe_key)
        response_time_ms = round((time.time() - start_time) * 1000, 2)

        if value == "ok":
            return {"status": "healthy", "response_time_ms": response_time_ms, "timestamp": time.time()}
        return {
            "status": "degraded",
            "message": "Probe key could not be read back",
            "response_time_ms": response_time_ms,
            "timestamp": time.time()
        }
