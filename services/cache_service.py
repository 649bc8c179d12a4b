"""
Cache service for storing API responses
"""

import hashlib
import logging
import time

logger = logging.getLogger(__name__)


class CacheService:
    """Simple in-memory cache with TTL"""

    def __init__(self, default_ttl=3600, clock=time.time):
        self.cache = {}
        self.default_ttl = default_ttl
        self._clock = clock

    def _is_expired(self, entry):
        """Check if cache entry is expired"""
        return self._clock() > entry["expires_at"]

    def get(self, key, default=None):
        """Get a cached value, or default when missing or expired"""
        entry = self.cache.get(key)
        if entry is None:
            return default
        if self._is_expired(entry):
            del self.cache[key]
            return default
        logger.debug(f"Cache hit: {key}")
        return entry["data"]

    def put(self, key, value, ttl=None):
        """Cache a value for ttl seconds (default_ttl when not given)"""
        ttl = ttl or self.default_ttl
        self.cache[key] = {"data": value, "expires_at": self._clock() + ttl}

    def remember(self, key, ttl, producer):
        """Return the cached value for key, or call producer and cache its result.

        None results are not cached so the next call tries again.
        """
        entry = self.cache.get(key)
        if entry is not None and not self._is_expired(entry):
            logger.debug(f"Cache hit: {key}")
            return entry["data"]

        value = producer()
        if value is not None:
            self.put(key, value, ttl)
            logger.debug(f"Cached {key}")
        return value

    def forget(self, key):
        """Drop a single key"""
        return self.cache.pop(key, None) is not None

    def forget_prefix(self, prefix):
        """Drop every key starting with prefix"""
        keys_to_remove = [k for k in self.cache.keys() if k.startswith(prefix)]
        for key in keys_to_remove:
            del self.cache[key]
        logger.info(f"Cleared {len(keys_to_remove)} cache entries for {prefix}")
        return len(keys_to_remove)

    def clear_all(self):
        """Clear all cache"""
        self.cache.clear()
        logger.info("Cleared all cache")


class CachedXtreamService:
    """
    Caches an XtreamService's listings.

    Categories, stream lists and series lists change rarely, so they go
    through CacheService.remember keyed by a hash of the request URL.
    Everything else is delegated to the wrapped client untouched.
    """

    def __init__(self, service, cache, ttl=None):
        self.service = service
        self.cache = cache
        self.ttl = ttl
        session = service.session
        server_hash = hashlib.sha1(f"{session.base_url}|{session.username}".encode()).hexdigest()[:12]
        self.key_prefix = f"xtream_{server_hash}_"

    def _cache_key(self, action, params):
        """Key from the built URL; hashed so credentials never sit in key names"""
        url = self.service.build_url(action, params)
        return self.key_prefix + hashlib.sha1(url.encode()).hexdigest()

    def _listing(self, action, category_id=None):
        params = {"category_id": category_id} if category_id is not None else {}
        key = self._cache_key(action, params)
        fetch = getattr(self.service, action)
        if category_id is None:
            return self.cache.remember(key, self.ttl, fetch)
        return self.cache.remember(key, self.ttl, lambda: fetch(category_id))

    def get_live_categories(self):
        return self._listing("get_live_categories")

    def get_live_streams(self, category_id=None):
        return self._listing("get_live_streams", category_id)

    def get_vod_categories(self):
        return self._listing("get_vod_categories")

    def get_vod_streams(self, category_id=None):
        return self._listing("get_vod_streams", category_id)

    def get_series_categories(self):
        return self._listing("get_series_categories")

    def get_series(self, category_id=None):
        return self._listing("get_series", category_id)

    def forget_listings(self):
        """Drop every cached listing for this provider account"""
        return self.cache.forget_prefix(self.key_prefix)

    def __getattr__(self, name):
        return getattr(self.service, name)
