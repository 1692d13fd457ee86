"""
Client for the upstream analytics query API.
"""

import json
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import httpx

from shared.logging import get_logger
from ..domain.authorizer import RewrittenRequest

if TYPE_CHECKING:
    from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class UpstreamResponse:
    """A fully buffered upstream response."""

    status_code: int
    body: bytes
    content_type: Optional[str] = None


class UpstreamClient:
    """Forwards rewritten queries upstream.

    Responses are read into memory in full before they are returned; analytics
    results are small and a complete body is what gets cached.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        metrics: Optional["MetricsCollector"] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.metrics = metrics
        self.logger = get_logger("proxy.upstream_client")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def forward(self, request: RewrittenRequest) -> UpstreamResponse:
        """Issue the GET upstream. Transport failures become a 500 response."""
        url = self.base_url + request.url
        self.logger.debug("Sending request upstream", path=request.path)

        try:
            response = await self._client.get(url)
        except httpx.TransportError as e:
            self.logger.warning("Upstream request failed", path=request.path, error=str(e))
            self._record(500)
            return UpstreamResponse(
                status_code=500,
                body=json.dumps({"error": str(e) or e.__class__.__name__}).encode("utf-8"),
                content_type="application/json",
            )

        self._record(response.status_code)
        if response.status_code != 200:
            self.logger.info(
                "Upstream returned an error",
                path=request.path,
                status_code=response.status_code,
            )

        return UpstreamResponse(
            status_code=response.status_code,
            body=response.content,
            content_type=response.headers.get("content-type"),
        )

    def _record(self, status_code: int) -> None:
        if self.metrics:
            self.metrics.increment_counter(
                "proxy_upstream_requests_total", status_code=str(status_code)
            )
