"""
Proxy caching package.

Upstream responses are cached by request identity (see ``cache_key``), never
by scoped key, and only when the upstream answered 200.
"""

from .cache_key import cache_key
from .response_cache import CacheEntry, ResponseCache

__all__ = ["CacheEntry", "ResponseCache", "cache_key"]
