"""
Analytics query proxy service.
"""

from typing import Dict, Optional

from fastapi import Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from .adapters.upstream_client import UpstreamClient
from .caching.response_cache import ResponseCache
from .domain.authorizer import RequestAuthorizer
from .domain.origin_gate import OriginGate
from .domain.pipeline import ProxyContext, ProxyPipeline
from .domain.stages import AuthorizeStage, CacheLookupStage, ForwardStage


class ProxyService(BaseService):
    """Caching, scoped-key enforcing proxy in front of the analytics API."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        cache: Optional[ResponseCache] = None,
        upstream: Optional[UpstreamClient] = None,
    ):
        super().__init__("proxy", config or get_config("proxy"))

        if not self.config.public_key or not self.config.master_key:
            raise ValueError("PROXY_PUBLIC_KEY and PROXY_MASTER_KEY must be set")

        self.cache = cache or ResponseCache(
            self.config.mongo_uri,
            self.config.mongo_database,
            self.config.cache_collection,
            ttl_seconds=self.config.cache_ttl_seconds,
            timeout_ms=self.config.mongo_timeout_ms,
            metrics=self.metrics,
        )
        self.upstream = upstream or UpstreamClient(
            self.config.upstream_url,
            timeout=self.config.upstream_timeout_seconds,
            metrics=self.metrics,
        )
        self.authorizer = RequestAuthorizer(self.config.public_key, self.config.master_key)

        self.pipeline = ProxyPipeline([
            OriginGate(self.config.allowed_origins, metrics=self.metrics),
            AuthorizeStage(self.authorizer, metrics=self.metrics),
            CacheLookupStage(self.cache),
            ForwardStage(self.upstream, self.cache),
        ])

        self._setup_proxy_routes()

        self.app.state.proxy_service = self

    async def on_startup(self):
        await self.cache.start()
        self.logger.info(
            "Proxy started",
            upstream=self.config.upstream_url,
            allowed_origins=len(self.config.allowed_origins),
        )

    async def on_shutdown(self):
        await self.upstream.close()
        await self.cache.stop()

    def _setup_proxy_routes(self):
        """Catch-all route; must be registered after the operational routes."""

        @self.app.api_route("/{path:path}", methods=["GET", "OPTIONS"], include_in_schema=False)
        async def proxy(request: Request) -> Response:
            context = ProxyContext(
                method=request.method,
                path=request.url.path,
                query_string=request.url.query,
                query_items=request.query_params.multi_items(),
                headers={name.lower(): value for name, value in request.headers.items()},
            )
            result = await self.pipeline.run(context)
            return Response(
                content=result.body,
                status_code=result.status_code,
                media_type=result.content_type,
                headers=context.response_headers,
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"cache": "ok" if await self.cache.ping() else "unavailable"}


def create_app():
    """Create proxy service application."""
    service = ProxyService()
    return service.app


def main():
    """Run the proxy with configuration from the environment."""
    service = ProxyService()
    service.run()


if __name__ == "__main__":
    main()
