"""
Unit tests for UpstreamClient.
"""

import json

import httpx
import pytest

from service_proxy.app.adapters.upstream_client import UpstreamClient
from service_proxy.app.domain.authorizer import RewrittenRequest


class TestUpstreamClient:
    """Test cases for UpstreamClient."""

    @pytest.fixture
    def rewritten(self):
        return RewrittenRequest(
            path="/3.0/projects/P/queries/count",
            params={"api_key": "upstream-key", "event_collection": "pageviews"},
        )

    def make_client(self, handler):
        return UpstreamClient("http://analytics.test/", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_forward_success(self, rewritten):
        """Test the rewritten path and query are sent and the body is buffered."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"result": 42})

        client = self.make_client(handler)
        response = await client.forward(rewritten)
        await client.close()

        assert response.status_code == 200
        assert json.loads(response.body) == {"result": 42}
        assert response.content_type == "application/json"
        assert seen[0].method == "GET"
        assert str(seen[0].url) == (
            "http://analytics.test/3.0/projects/P/queries/count"
            "?api_key=upstream-key&event_collection=pageviews"
        )

    @pytest.mark.asyncio
    async def test_forward_error_status_passed_through(self, rewritten):
        """Test upstream error statuses and bodies are returned unchanged."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, content=b'{"message": "not found"}')

        client = self.make_client(handler)
        response = await client.forward(rewritten)

        assert response.status_code == 404
        assert response.body == b'{"message": "not found"}'

    @pytest.mark.asyncio
    async def test_forward_transport_error(self, rewritten):
        """Test connection failures become a 500 carrying the error."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = self.make_client(handler)
        response = await client.forward(rewritten)

        assert response.status_code == 500
        assert json.loads(response.body) == {"error": "connection refused"}
        assert response.content_type == "application/json"
