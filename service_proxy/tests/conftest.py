"""
Shared fixtures for proxy tests.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import httpx
import pytest

from mocks.analytics.server import MockAnalyticsServer
from service_proxy.app.adapters.upstream_client import UpstreamClient
from service_proxy.app.caching.response_cache import CacheEntry
from service_proxy.app.main import ProxyService
from shared.config import get_config

PUBLIC_KEY = "0f6e1c3b9a8d47e2b5c4a3f2e1d0c9b8"
MASTER_KEY = "a1b2c3d4e5f60718293a4b5c6d7e8f90"
ALLOWED_ORIGIN = "http://localhost"
UPSTREAM_URL = "http://analytics.test"


class InMemoryResponseCache:
    """Response cache stand-in keeping entries in a list."""

    def __init__(self):
        self.entries: List[CacheEntry] = []
        self.lookups: List[str] = []
        self.started = False
        self.stopped = False

    async def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True

    async def ping(self) -> bool:
        return True

    async def lookup(self, key: str) -> Optional[CacheEntry]:
        self.lookups.append(key)
        matches = [entry for entry in self.entries if entry.key == key]
        return matches[-1] if matches else None

    async def store(self, key: str, response_body: bytes, content_type: Optional[str] = None) -> bool:
        self.entries.append(CacheEntry(
            key=key,
            response_body=response_body,
            cached_at=datetime.now(timezone.utc),
            content_type=content_type,
        ))
        return True


@pytest.fixture
def public_key():
    return PUBLIC_KEY


@pytest.fixture
def master_key():
    return MASTER_KEY


@pytest.fixture
def origin_headers() -> Dict[str, str]:
    return {"Origin": ALLOWED_ORIGIN}


@pytest.fixture
def proxy_config():
    return get_config(
        "proxy",
        public_key=PUBLIC_KEY,
        master_key=MASTER_KEY,
        allowed_origins=[ALLOWED_ORIGIN],
        upstream_url=UPSTREAM_URL,
        log_level="warning",
    )


@pytest.fixture
def analytics_server():
    return MockAnalyticsServer(master_key=MASTER_KEY)


@pytest.fixture
def memory_cache():
    return InMemoryResponseCache()


@pytest.fixture
def proxy_service(proxy_config, memory_cache, analytics_server):
    upstream = UpstreamClient(
        UPSTREAM_URL,
        transport=httpx.ASGITransport(app=analytics_server.app),
    )
    return ProxyService(proxy_config, cache=memory_cache, upstream=upstream)
