"""
Cross-origin gate for browser queries.
"""

from typing import Iterable

from shared.logging import get_logger, set_origin
from .pipeline import CONTINUE, NextAction, ProxyContext, Respond

PREFLIGHT_MAX_AGE = 60 * 60


class OriginGate:
    """Only lets through requests whose ``Origin`` is allow-listed.

    Requests without an origin, or from any other origin, are refused. A
    preflight from an allowed origin is answered here with the CORS headers.
    """

    def __init__(self, allowed_origins: Iterable[str], metrics=None):
        self.allowed_origins = frozenset(allowed_origins)
        self.metrics = metrics
        self.logger = get_logger("proxy.origin_gate")

    def __call__(self, context: ProxyContext) -> NextAction:
        origin = context.header("origin")
        set_origin(origin)

        if not origin or origin not in self.allowed_origins:
            self.logger.warning("Origin server not authorized", origin=origin)
            if self.metrics:
                self.metrics.increment_counter("proxy_rejections_total", reason="origin")
            return Respond(status_code=403)

        headers = context.response_headers
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
        requested_method = context.header("access-control-request-method")
        if requested_method:
            headers["Access-Control-Allow-Methods"] = requested_method
        requested_headers = context.header("access-control-request-headers")
        if requested_headers:
            headers["Access-Control-Allow-Headers"] = requested_headers
        headers["Access-Control-Max-Age"] = str(PREFLIGHT_MAX_AGE)

        if context.method == "OPTIONS":
            return Respond(status_code=200, body=b"OK", content_type="text/plain")
        return CONTINUE
