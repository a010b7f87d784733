"""Unit tests for mediaflow.engine.cache — RequestCache, CircuitBreaker, RedisCache."""

from unittest.mock import MagicMock, patch

from mediaflow.engine.cache import CircuitBreaker, RedisCache, RequestCache, create_transient_cache


class TestRequestCache:

    def test_miss_returns_none(self):
        cache = RequestCache()
        assert cache.get(("a", 1)) is None
        assert cache.misses == 1

    def test_false_is_a_value(self):
        cache = RequestCache()
        cache.set((3, "view", 7), False)
        assert cache.get((3, "view", 7)) is False
        assert (3, "view", 7) in cache
        assert cache.hits == 1

    def test_clear(self):
        cache = RequestCache()
        cache.set("a", 1)
        cache.set("b", 2)
        assert len(cache) == 2
        cache.clear()
        assert len(cache) == 0
        assert "a" not in cache


class TestCircuitBreaker:

    def test_opens_at_threshold_within_window(self):
        breaker = CircuitBreaker(threshold=3, window=30)
        assert breaker.record_failure(now=100.0) is False
        assert breaker.record_failure(now=101.0) is False
        assert breaker.record_failure(now=102.0) is True
        assert breaker.is_open is True

    def test_failures_outside_window_start_over(self):
        breaker = CircuitBreaker(threshold=2, window=10)
        breaker.record_failure(now=100.0)
        breaker.record_failure(now=200.0)
        assert breaker.is_open is False
        assert breaker.failures == 1

    def test_retry_after_window(self):
        breaker = CircuitBreaker(threshold=1, window=10)
        breaker.record_failure(now=100.0)
        assert breaker.can_retry(now=105.0) is False
        assert breaker.can_retry(now=111.0) is True

    def test_reset(self):
        breaker = CircuitBreaker(threshold=1)
        breaker.record_failure()
        breaker.reset()
        assert breaker.is_open is False
        assert breaker.failures == 0


class TestRedisCacheDisconnected:
    """Without a client every operation is a miss."""

    def test_initial_state(self):
        cache = RedisCache(redis_url="redis://localhost:6379/0", db=3)
        assert cache.connected is False
        assert cache.breaker.is_open is False

    def test_operations_miss(self):
        cache = RedisCache()
        assert cache.get("review_count") is None
        assert cache.get_int("review_count") is None
        assert cache.set("review_count", 1) is False
        assert cache.delete("review_count") is False


class TestRedisCacheWithMock:

    def setup_method(self):
        self.client = MagicMock()
        self.cache = RedisCache(prefix="test:", default_ttl=60, db=3, breaker=CircuitBreaker(threshold=3))
        self.cache._client = self.client

    def test_get_uses_prefix(self):
        self.client.get.return_value = "4"
        assert self.cache.get("review_count") == "4"
        self.client.get.assert_called_once_with("test:review_count")

    def test_get_int(self):
        self.client.get.return_value = "4"
        assert self.cache.get_int("review_count") == 4

    def test_get_int_malformed_is_miss(self):
        self.client.get.return_value = "many"
        assert self.cache.get_int("review_count") is None

    def test_set_stringifies_and_uses_ttl(self):
        assert self.cache.set("review_count", 7, ttl=120) is True
        self.client.set.assert_called_once_with("test:review_count", "7", ex=120)

    def test_set_uses_default_ttl(self):
        self.cache.set("review_count", 7)
        self.client.set.assert_called_once_with("test:review_count", "7", ex=60)

    def test_delete(self):
        assert self.cache.delete("review_count") is True
        self.client.delete.assert_called_once_with("test:review_count")

    def test_failure_is_a_miss(self):
        self.client.get.side_effect = Exception("connection lost")
        assert self.cache.get("review_count") is None
        assert self.cache.breaker.failures == 1

    def test_open_circuit_skips_client(self):
        self.client.set.side_effect = Exception("fail")
        for _ in range(3):
            assert self.cache.set("review_count", 1) is False
        assert self.cache.breaker.is_open is True

        self.client.get.reset_mock()
        assert self.cache.get("review_count") is None
        self.client.get.assert_not_called()

    def test_failed_reconnect_restarts_wait(self):
        self.cache.breaker.record_failure(now=0.0)
        self.cache.breaker.record_failure(now=0.0)
        self.cache.breaker.record_failure(now=0.0)
        with patch("redis.Redis.from_url", side_effect=ConnectionError("refused")) as from_url:
            assert self.cache.get("review_count") is None
            assert self.cache.get("review_count") is None
        assert from_url.call_count == 1
        assert self.cache.breaker.can_retry() is False

    def test_close(self):
        self.cache.close()
        self.client.close.assert_called_once()
        assert self.cache.connected is False
        assert self.cache.get("review_count") is None


class TestTransientFactory:

    def test_connects_with_config(self, mock_redis):
        with patch("redis.Redis.from_url", return_value=mock_redis) as from_url:
            cache = create_transient_cache("redis://cache:6379/0", db=5, prefix="mf:", ttl=90)

        assert from_url.call_args.kwargs["db"] == 5
        assert cache.connected is True
        cache.set("review_count", 2)
        mock_redis.set.assert_called_with("mf:review_count", "2", ex=90)

    def test_connection_failure_degrades(self):
        with patch("redis.Redis.from_url", side_effect=ConnectionError("refused")):
            cache = create_transient_cache("redis://nowhere:6379/0")
        assert cache.connected is False
        assert cache.get("review_count") is None
