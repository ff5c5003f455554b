"""Tests for the Redis-backed breaker storage against a dict-backed Redis double."""
from datetime import datetime, timezone
from unittest.mock import patch

import pybreaker
import pytest

from marketplace.services.circuit_breaker import CircuitBreakerListener, RedisCircuitBreakerStorage


class DictRedis:
    """Just the string commands the storage uses."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = str(value)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)

    def expire(self, key, seconds):
        pass

    def delete(self, key):
        self.data.pop(key, None)


@pytest.fixture
def storage():
    fake = DictRedis()
    with patch("marketplace.services.circuit_breaker.redis.Redis.from_url", return_value=fake):
        yield RedisCircuitBreakerStorage("print_partner_test")


class TestRedisStorage:
    def test_defaults(self, storage):
        assert storage.state == pybreaker.STATE_CLOSED
        assert storage.counter == 0
        assert storage.success_counter == 0
        assert storage.opened_at is None

    def test_counters(self, storage):
        storage.increment_counter()
        storage.increment_counter()
        storage.increment_success_counter()
        assert storage.counter == 2
        assert storage.success_counter == 1

        storage.reset_counter()
        storage.reset_success_counter()
        assert storage.counter == 0
        assert storage.success_counter == 0

    def test_opened_at_round_trip(self, storage):
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        storage.opened_at = now
        assert storage.opened_at == now

    def test_breaker_opens_after_threshold(self, storage):
        breaker = pybreaker.CircuitBreaker(fail_max=2, reset_timeout=60, state_storage=storage)

        def boom():
            raise ConnectionError("partner down")

        with pytest.raises(ConnectionError):
            breaker.call(boom)
        with pytest.raises(pybreaker.CircuitBreakerError):
            breaker.call(boom)

        assert storage.state == pybreaker.STATE_OPEN
        with pytest.raises(pybreaker.CircuitBreakerError):
            breaker.call(lambda: "ok")

    def test_listener_logs_state_change(self, storage, caplog):
        listener = CircuitBreakerListener("print_partner_test")
        breaker = pybreaker.CircuitBreaker(
            fail_max=1, reset_timeout=60, state_storage=storage, listeners=[listener]
        )

        with pytest.raises(pybreaker.CircuitBreakerError):
            breaker.call(lambda: 1 / 0)

        assert any(r.getMessage() == "circuit_breaker_state_change" for r in caplog.records)
