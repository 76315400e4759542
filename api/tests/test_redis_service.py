# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the Upstash-backed cache: logout blocklist, leaderboard cache and
rate limit counters.
"""

import json
import pytest
from unittest.mock import MagicMock, patch

from services.redis import RedisService, LEADERBOARD_KEY, BLOCKED_TOKEN_PREFIX


@pytest.fixture
def upstash():
    client = MagicMock()
    client.ping.return_value = "PONG"
    client.setex.return_value = "OK"
    client.get.return_value = None
    client.delete.return_value = 1
    return client


@pytest.fixture
def redis_service(upstash):
    with patch("services.redis.Redis", return_value=upstash):
        yield RedisService(redis_url="https://cache.upstash.io", redis_token="token")


class TestAvailability:

    def test_without_url_everything_degrades(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)

        service = RedisService()

        assert service.is_available() is False
        assert service.is_token_blocked("jti") is False
        assert service.block_token("jti", 60) is False
        assert service.get_cached_leaderboard() is None
        assert service.increment_window("k", 60) is None
        assert service.health_check()["status"] == "unavailable"

    def test_failed_ping_disables_client(self, upstash):
        upstash.ping.return_value = "NOPE"

        with patch("services.redis.Redis", return_value=upstash):
            service = RedisService(redis_url="https://cache.upstash.io", redis_token="token")

        assert service.is_available() is False


class TestTokenBlocklist:

    def test_block_token(self, redis_service, upstash):
        assert redis_service.block_token("abc", 3600) is True
        upstash.setex.assert_called_once_with(f"{BLOCKED_TOKEN_PREFIX}abc", 3600, "1")

    def test_expired_token_still_blocked_briefly(self, redis_service, upstash):
        redis_service.block_token("abc", 0)
        assert upstash.setex.call_args[0][1] == 1

    def test_is_token_blocked(self, redis_service, upstash):
        upstash.get.side_effect = lambda key: "1" if key == f"{BLOCKED_TOKEN_PREFIX}revoked" else None

        assert redis_service.is_token_blocked("revoked") is True
        assert redis_service.is_token_blocked("fresh") is False

    def test_read_errors_allow_token(self, redis_service, upstash):
        upstash.get.side_effect = ConnectionError("timeout")
        assert redis_service.is_token_blocked("abc") is False


class TestLeaderboardCache:

    def test_round_trip(self, redis_service, upstash):
        entries = [{"id": "u1", "name": "Ayesha", "ecoPoints": 900}]

        redis_service.cache_leaderboard(entries, 60)
        key, ttl, payload = upstash.setex.call_args[0]
        assert (key, ttl) == (LEADERBOARD_KEY, 60)

        upstash.get.return_value = payload
        assert redis_service.get_cached_leaderboard() == entries

    def test_corrupt_cache_is_a_miss(self, redis_service, upstash):
        upstash.get.return_value = "{not json"
        assert redis_service.get_cached_leaderboard() is None

    def test_invalidate(self, redis_service, upstash):
        assert redis_service.invalidate_leaderboard() is True
        upstash.delete.assert_called_once_with(LEADERBOARD_KEY)


class TestCounters:

    def test_first_hit_starts_window(self, redis_service, upstash):
        upstash.incr.return_value = 1

        assert redis_service.increment_window("ecobite:rate_limit:login", 900) == 1
        upstash.expire.assert_called_once_with("ecobite:rate_limit:login", 900)

    def test_later_hits_keep_window(self, redis_service, upstash):
        upstash.incr.return_value = 4

        assert redis_service.increment_window("ecobite:rate_limit:login", 900) == 4
        upstash.expire.assert_not_called()


class TestHealth:

    def test_healthy(self, redis_service, upstash):
        upstash.get.return_value = "ok"
        assert redis_service.health_check()["status"] == "healthy"

    def test_degraded(self, redis_service, upstash):
        upstash.get.return_value = None
        assert redis_service.health_check()["status"] == "degraded"

    def test_cached_json_is_serialized(self, redis_service, upstash):
        redis_service.set_with_ttl("ecobite:test", {"balance": 10}, 5)
        assert json.loads(upstash.setex.call_args[0][2]) == {"balance": 10}
