# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Rate limiting for credential endpoints.

Fixed-window counters live in Redis under
``ecobite:rate_limit:{endpoint}:{client}:{window}``. Without Redis, or when
Redis errors, every request is allowed.
"""

from dataclasses import dataclass
from functools import wraps
from flask import request, jsonify, make_response, current_app
from typing import Optional, Callable
import time
import hashlib
import logging

from services.redis import KEY_PREFIX

logger = logging.getLogger(__name__)

AUTH_LIMIT = 10
AUTH_WINDOW_SECONDS = 15 * 60


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0

    def apply_headers(self, response):
        response.headers['X-RateLimit-Limit'] = str(self.limit)
        response.headers['X-RateLimit-Remaining'] = str(self.remaining)
        if self.retry_after > 0:
            response.headers['Retry-After'] = str(self.retry_after)
        return response


class RateLimiter:
    """Counts requests per client and endpoint in fixed windows."""

    def __init__(self, redis_service):
        self.redis_service = redis_service

    def get_client_identifier(self) -> str:
        """Client IP (first ``X-Forwarded-For`` hop) and user agent, hashed."""
        forwarded = request.headers.get('X-Forwarded-For', request.remote_addr or 'unknown')
        client = f"{forwarded.split(',')[0].strip()}:{request.headers.get('User-Agent', '')}"
        return "ip:" + hashlib.sha256(client.encode()).hexdigest()[:32]

    def check_rate_limit(self, identifier: str, endpoint: str, limit: int,
                         window_seconds: int) -> RateLimitDecision:
        now = int(time.time())
        window = now // window_seconds
        count = self.redis_service.increment_window(
            f"{KEY_PREFIX}rate_limit:{endpoint}:{identifier}:{window}", window_seconds
        )
        if count is None:
            return RateLimitDecision(True, limit, limit)

        if count <= limit:
            return RateLimitDecision(True, limit, limit - count)
        return RateLimitDecision(False, limit, 0, max(1, (window + 1) * window_seconds - now))


def _too_many_requests(decision: RateLimitDecision):
    problem = current_app.hal_formatter.format_problem(
        "rate-limit-exceeded", 429, "Too many requests, please try again later", request.path
    )
    response = jsonify(problem)
    response.status_code = 429
    return decision.apply_headers(response)


def rate_limit(limit: int, window_seconds: int = 3600, endpoint: Optional[str] = None):
    """
    Limit a view to ``limit`` calls per client per window.

    ``endpoint`` names the counter and defaults to the Flask endpoint.
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            redis_service = getattr(current_app, 'redis_service', None)
            if redis_service is None or not redis_service.is_available():
                return f(*args, **kwargs)

            limiter = RateLimiter(redis_service)
            identifier = limiter.get_client_identifier()
            counter = endpoint or request.endpoint or f.__name__
            decision = limiter.check_rate_limit(identifier, counter, limit, window_seconds)

            if not decision.allowed:
                logger.warning(
                    "Rate limit exceeded",
                    extra={'identifier': identifier, 'endpoint': counter, 'limit': limit,
                           'retry_after': decision.retry_after}
                )
                return _too_many_requests(decision)

            return decision.apply_headers(make_response(f(*args, **kwargs)))

        return decorated_function
    return decorator


def rate_limit_auth(f: Callable) -> Callable:
    """Credential endpoints: 10 requests per 15 minutes."""
    return rate_limit(AUTH_LIMIT, AUTH_WINDOW_SECONDS)(f)
