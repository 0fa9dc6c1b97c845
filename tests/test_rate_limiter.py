"""Tests for request rate limiting."""

from unittest.mock import MagicMock

import redis

from parcels.rate_limiter import InMemoryRateLimiter, RedisRateLimiter


def test_in_memory_window():
    limiter = InMemoryRateLimiter()
    results = [limiter.hit("k", 3, 60) for _ in range(4)]
    assert [allowed for allowed, _, _ in results] == [True, True, True, False]
    assert results[-1][1] == 3
    assert 0 < results[-1][2] <= 60

    # Other keys have their own counter
    assert limiter.hit("other", 3, 60)[0] is True


def test_redis_failure_fails_open():
    limiter = RedisRateLimiter.__new__(RedisRateLimiter)
    limiter.client = MagicMock()
    limiter.client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
    assert limiter.hit("k", 1, 60) == (True, 0, 0)


def test_forgot_password_is_limited(client):
    for _ in range(5):
        assert client.post("/auth/forgot", json={"email": "a@example.com"}).status_code == 200

    response = client.post("/auth/forgot", json={"email": "a@example.com"})
    assert response.status_code == 429
    assert response.json()["error"] == "rate_limited"
    assert int(response.headers["retry-after"]) > 0


def test_limit_is_per_client_ip(client):
    for _ in range(5):
        client.post("/auth/forgot", json={"email": "a@example.com"})

    response = client.post(
        "/auth/forgot", json={"email": "a@example.com"}, headers={"X-Forwarded-For": "203.0.113.9"}
    )
    assert response.status_code == 200


def test_login_code_guessing_is_limited(client):
    codes = [client.post("/auth/verify-code", json={"email": "a@example.com", "code": "000000"}) for _ in range(11)]
    assert [r.status_code for r in codes[:10]] == [400] * 10
    assert codes[10].status_code == 429
    assert codes[10].json()["error"] == "rate_limited"
