"""
Request pipeline driver.

A proxied request runs through an ordered list of stages. Each stage looks at
the shared ``ProxyContext`` and either lets the request continue or answers it,
which ends the pipeline.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .authorizer import RewrittenRequest, group_params


@dataclass
class ProxyContext:
    """State of one proxied request as it moves through the stages."""

    method: str
    path: str
    query_string: str
    query_items: List[Tuple[str, str]]
    headers: Dict[str, str]
    response_headers: Dict[str, str] = field(default_factory=dict)
    rewritten: Optional[RewrittenRequest] = None
    cache_key: Optional[str] = None

    @property
    def params(self) -> Dict[str, Any]:
        return group_params(self.query_items)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


@dataclass(frozen=True)
class Continue:
    """Hand the request to the next stage."""


@dataclass(frozen=True)
class Respond:
    """Answer the request now."""

    status_code: int
    body: bytes = b""
    content_type: Optional[str] = None


NextAction = Union[Continue, Respond]
Stage = Callable[[ProxyContext], Union[NextAction, Awaitable[NextAction]]]

CONTINUE = Continue()


class PipelineExhausted(RuntimeError):
    """Every stage let the request through and none answered it."""


class ProxyPipeline:
    """Runs stages in order until one of them responds."""

    def __init__(self, stages: Sequence[Stage]):
        self.stages = list(stages)

    async def run(self, context: ProxyContext) -> Respond:
        for stage in self.stages:
            action = stage(context)
            if inspect.isawaitable(action):
                action = await action
            if isinstance(action, Respond):
                return action
        raise PipelineExhausted(f"No stage answered {context.method} {context.path}")
