"""
Mock analytics query API used for local runs and end-to-end tests.

Records every query it receives and answers with a configurable JSON body.
When a master key is configured, queries whose ``api_key`` does not decrypt
under it are refused, as the real service would.
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.errors import InvalidTokenError
from shared.logging import get_logger
from service_proxy.app.scoped_keys import codec


class MockAnalyticsServer:
    """Mock analytics API implementation."""

    def __init__(self, master_key: Optional[str] = None, port: int = 5001):
        self.port = port
        self.master_key = master_key
        self.logger = get_logger("mock.analytics")
        self.app = FastAPI(title="Mock Analytics API", version="1.0.0")

        self.requests: List[Dict[str, Any]] = []
        self.next_status: int = 200
        self.next_body: Any = None

        self._setup_routes()

    def set_next_response(self, body: Any, status_code: int = 200) -> None:
        """Answer the next query with ``body``; later queries get the default."""
        self.next_body = body
        self.next_status = status_code

    def last_request(self) -> Optional[Dict[str, Any]]:
        return self.requests[-1] if self.requests else None

    def clear(self) -> None:
        self.requests = []
        self.next_status = 200
        self.next_body = None

    def _setup_routes(self):
        """Set up mock analytics routes."""

        @self.app.get("/_mock/requests")
        async def recorded_requests():
            return {"requests": self.requests}

        @self.app.delete("/_mock/requests")
        async def clear_requests():
            self.clear()
            return {"status": "cleared"}

        @self.app.get("/{path:path}")
        async def query(path: str, request: Request):
            record = {
                "path": request.url.path,
                "query": dict(request.query_params),
            }
            self.requests.append(record)

            if self.master_key is not None:
                try:
                    codec.decode(self.master_key, request.query_params.get("api_key", ""))
                except InvalidTokenError:
                    self.logger.warning("Rejected query with invalid api_key", path=record["path"])
                    return JSONResponse(
                        status_code=401,
                        content={"message": "Invalid api key", "error_code": "InvalidApiKeyError"},
                    )

            status_code, body = self.next_status, self.next_body
            self.next_status, self.next_body = 200, None
            return JSONResponse(status_code=status_code, content={"result": body})


def create_app():
    """Create mock analytics application."""
    server = MockAnalyticsServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=5001)
