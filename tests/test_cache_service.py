"""
Tests for Cache Service and the cached Xtream wrapper
"""

from unittest.mock import Mock, patch

import pytest

from conftest import make_response
from services.cache_service import CacheService, CachedXtreamService
from services.xtream_service import FromRawConfig, initialize


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheService(default_ttl=60, clock=clock)


class TestCacheService:
    """Test suite for CacheService"""

    def test_put_and_get(self, cache):
        """Test a stored value is returned"""
        cache.put("key", {"a": 1})

        assert cache.get("key") == {"a": 1}

    def test_get_missing(self, cache):
        """Test default for unknown keys"""
        assert cache.get("missing") is None
        assert cache.get("missing", []) == []

    def test_expiry(self, cache, clock):
        """Test entries expire after their ttl"""
        cache.put("key", "value", ttl=10)
        clock.now += 11

        assert cache.get("key") is None
        assert "key" not in cache.cache

    def test_remember_calls_producer_once(self, cache):
        """Test remember caches the producer result"""
        producer = Mock(return_value=[1, 2])

        assert cache.remember("key", 60, producer) == [1, 2]
        assert cache.remember("key", 60, producer) == [1, 2]
        producer.assert_called_once()

    def test_remember_refreshes_after_expiry(self, cache, clock):
        """Test remember calls producer again once expired"""
        producer = Mock(side_effect=["old", "new"])

        cache.remember("key", 5, producer)
        clock.now += 6

        assert cache.remember("key", 5, producer) == "new"

    def test_remember_does_not_cache_none(self, cache):
        """Test None results are retried next time"""
        producer = Mock(side_effect=[None, "ip"])

        assert cache.remember("key", 60, producer) is None
        assert cache.remember("key", 60, producer) == "ip"

    def test_forget(self, cache):
        """Test forget drops a key"""
        cache.put("key", 1)

        assert cache.forget("key") is True
        assert cache.forget("key") is False
        assert cache.get("key") is None

    def test_forget_prefix(self, cache):
        """Test prefix removal leaves other keys"""
        cache.put("a_1", 1)
        cache.put("a_2", 2)
        cache.put("b_1", 3)

        assert cache.forget_prefix("a_") == 2
        assert list(cache.cache) == ["b_1"]

    def test_clear_all(self, cache):
        """Test clearing all entries"""
        cache.put("a", 1)
        cache.put("b", 2)
        cache.clear_all()

        assert cache.cache == {}


class TestCachedXtreamService:
    """Test suite for CachedXtreamService"""

    @pytest.fixture
    def cached(self, cache):
        service = initialize(FromRawConfig({"url": "example.com", "username": "user", "password": "secret"}))
        return CachedXtreamService(service, cache, ttl=60)

    @patch("requests.get")
    def test_listing_cached(self, mock_get, cached):
        """Test repeated listings hit the provider once"""
        mock_get.return_value = make_response(200, [{"category_id": "1"}])

        first = cached.get_vod_categories()
        second = cached.get_vod_categories()

        assert first == second == [{"category_id": "1"}]
        assert mock_get.call_count == 1

    @patch("requests.get")
    def test_category_listings_cached_separately(self, mock_get, cached):
        """Test different categories use different keys"""
        mock_get.side_effect = [make_response(200, [{"id": 1}]), make_response(200, [{"id": 2}])]

        assert cached.get_series("1") == [{"id": 1}]
        assert cached.get_series("2") == [{"id": 2}]
        assert cached.get_series("1") == [{"id": 1}]
        assert mock_get.call_count == 2

    @patch("requests.get")
    def test_keys_hide_credentials(self, mock_get, cached, cache):
        """Test cache keys do not contain the password"""
        mock_get.return_value = make_response(200, [])

        cached.get_live_categories()

        assert cache.cache
        assert all("secret" not in key for key in cache.cache)

    @patch("requests.get")
    def test_forget_listings(self, mock_get, cached, cache):
        """Test forgetting listings forces a refetch"""
        mock_get.return_value = make_response(200, [])
        cache.put("external_ip", "1.2.3.4")

        cached.get_vod_categories()
        cached.forget_listings()
        cached.get_vod_categories()

        assert mock_get.call_count == 2
        assert cache.get("external_ip") == "1.2.3.4"

    @patch("requests.get")
    def test_info_not_cached(self, mock_get, cached):
        """Test non-listing calls delegate straight through"""
        mock_get.return_value = make_response(200, {"info": {}})

        cached.get_series_info("5")
        cached.get_series_info("5")

        assert mock_get.call_count == 2

    def test_delegates_url_builders(self, cached):
        """Test builders are reached through the wrapper"""
        assert cached.build_movie_url("1", "mp4") == "http://example.com/movie/user/secret/1.mp4"
