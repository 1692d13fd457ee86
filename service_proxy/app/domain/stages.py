"""
Pipeline stages behind the origin gate: authorize, cache lookup, forward.
"""

from typing import Optional, TYPE_CHECKING

from shared.errors import AccessLayerException
from shared.logging import get_logger
from ..caching.cache_key import cache_key
from .authorizer import RequestAuthorizer
from .pipeline import CONTINUE, NextAction, ProxyContext, Respond

if TYPE_CHECKING:
    from shared.metrics import MetricsCollector
    from ..adapters.upstream_client import UpstreamClient
    from ..caching.response_cache import ResponseCache


class AuthorizeStage:
    """Rewrites the query from its scoped key; any failure is a 403."""

    def __init__(self, authorizer: RequestAuthorizer, metrics: Optional["MetricsCollector"] = None):
        self.authorizer = authorizer
        self.metrics = metrics
        self.logger = get_logger("proxy.authorize")

    def __call__(self, context: ProxyContext) -> NextAction:
        try:
            context.rewritten = self.authorizer.authorize(context.path, context.params)
        except AccessLayerException as e:
            self.logger.warning(
                "Rejecting request with unusable scoped key",
                path=context.path,
                code=e.code,
                reason=e.message,
            )
            if self.metrics:
                self.metrics.increment_counter("proxy_rejections_total", reason=e.code.lower())
            return Respond(status_code=403)

        context.cache_key = cache_key(context.rewritten.path, context.rewritten.query_string)
        return CONTINUE


class CacheLookupStage:
    """Serves the most recent cached response for the request, if any."""

    def __init__(self, cache: "ResponseCache"):
        self.cache = cache

    async def __call__(self, context: ProxyContext) -> NextAction:
        entry = await self.cache.lookup(context.cache_key)
        if entry is None:
            return CONTINUE
        return Respond(
            status_code=200,
            body=entry.response_body,
            content_type=entry.content_type,
        )


class ForwardStage:
    """Forwards the rewritten query and caches a 200 answer."""

    def __init__(self, upstream: "UpstreamClient", cache: "ResponseCache"):
        self.upstream = upstream
        self.cache = cache

    async def __call__(self, context: ProxyContext) -> NextAction:
        response = await self.upstream.forward(context.rewritten)
        if response.status_code == 200:
            await self.cache.store(context.cache_key, response.body, response.content_type)
        return Respond(
            status_code=response.status_code,
            body=response.body,
            content_type=response.content_type,
        )
