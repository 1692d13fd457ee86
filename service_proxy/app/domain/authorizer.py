"""
Scoped key enforcement.

An inbound query carries a scoped key encrypted under the proxy's public key.
The authorizer decrypts it, forces every parameter the key defines onto the
query, narrows the request filters to what the key allows and re-encrypts the
key under the master key so that the upstream accepts it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlencode

from shared.errors import AuthenticationError, AuthorizationError
from shared.logging import get_logger, mask_secret
from ..caching.cache_key import TOKEN_PARAM
from ..scoped_keys import codec
from ..scoped_keys.filters import merge_filters, parse_filters, serialize_filters
from ..scoped_keys.models import ScopedKeyParams

QueryValue = Union[str, List[str]]
FILTERS_PARAM = "filters"


@dataclass(frozen=True)
class RewrittenRequest:
    """The query that is sent upstream in place of the inbound one."""

    path: str
    params: Dict[str, QueryValue] = field(default_factory=dict)

    @property
    def query_string(self) -> str:
        return urlencode(self.params, doseq=True)

    @property
    def url(self) -> str:
        query = self.query_string
        return f"{self.path}?{query}" if query else self.path

    def param(self, name: str) -> Optional[str]:
        """Last value of a parameter, the way a single-valued reader sees it."""
        value = self.params.get(name)
        if isinstance(value, list):
            return value[-1] if value else None
        return value


def _query_value(value: Any) -> QueryValue:
    """Render a scoped key value as a query parameter value."""
    if isinstance(value, list):
        return [_scalar(item) for item in value]
    return _scalar(value)


def _scalar(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"))


def group_params(items: Iterable[Tuple[str, str]]) -> Dict[str, QueryValue]:
    """Collect query pairs, keeping first-seen order and repeated names as lists."""
    params: Dict[str, QueryValue] = {}
    for name, value in items:
        if name in params:
            existing = params[name]
            params[name] = (existing if isinstance(existing, list) else [existing]) + [value]
        else:
            params[name] = value
    return params


def last_path_segment(path: str) -> str:
    segments = [segment for segment in path.split("/") if segment]
    return segments[-1] if segments else ""


class RequestAuthorizer:
    """Turns an inbound analytics query into one the upstream will accept."""

    def __init__(self, public_key: str, master_key: str):
        codec.check_secret(public_key)
        codec.check_secret(master_key)
        self.public_key = public_key
        self.master_key = master_key
        self.logger = get_logger("proxy.authorizer")

    def decode(self, token: Optional[str]) -> ScopedKeyParams:
        """Decrypt an inbound scoped key with the public key."""
        if not token:
            raise AuthenticationError("Scoped key is required")
        return codec.decode(self.public_key, token)

    def check_analysis_type(self, scoped: ScopedKeyParams, path: str) -> None:
        """A key issued for one analysis type may only query that analysis."""
        if scoped.analysis_type is None:
            return
        requested = last_path_segment(path)
        if requested != scoped.analysis_type:
            raise AuthorizationError(
                "Analysis type not allowed by scoped key",
                details={"requested": requested, "allowed": scoped.analysis_type},
            )

    def authorize(self, path: str, params: Dict[str, QueryValue]) -> RewrittenRequest:
        """Rewrite a query according to its scoped key.

        Raises:
            AuthenticationError: the scoped key is missing or cannot be decrypted.
            AuthorizationError: the key does not allow the requested analysis.
            ValidationError: the request filters are malformed.
        """
        request = RewrittenRequest(path=path, params=dict(params))
        scoped = self.decode(request.param(TOKEN_PARAM))

        self.logger.debug(
            "Decrypted scoped key",
            path=path,
            allowed_operations=scoped.allowed_operations,
            analysis_type=scoped.analysis_type,
            has_filters=scoped.has_filters,
        )

        self.check_analysis_type(scoped, path)

        rewritten: Dict[str, QueryValue] = dict(params)
        for name, value in scoped.query_overrides().items():
            rewritten[name] = _query_value(value)

        if scoped.has_filters:
            merged = merge_filters(scoped.filters, parse_filters(request.param(FILTERS_PARAM)))
            rewritten[FILTERS_PARAM] = serialize_filters(merged)

        rewritten[TOKEN_PARAM] = codec.encode(self.master_key, scoped)

        self.logger.debug(
            "Rewrote scoped key",
            path=path,
            api_key=mask_secret(rewritten[TOKEN_PARAM]),
        )
        return RewrittenRequest(path=path, params=rewritten)
