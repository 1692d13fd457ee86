"""
Scoped key data models.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FilterOperator(str, Enum):
    """Filter operators with dedicated restriction rules."""
    EQ = "eq"
    IN = "in"


class Filter(BaseModel):
    """A single property/operator/value restriction on an analytics query."""

    model_config = ConfigDict(frozen=True, extra="allow")

    property_name: str
    operator: str
    property_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ScopedKeyParams(BaseModel):
    """Decrypted contents of a scoped key.

    Every key besides ``filters`` is a query parameter that overrides whatever
    the client sent. ``filters`` is a restriction the request filters are
    merged against (see ``scoped_keys.filters``).
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    allowed_operations: List[str]
    analysis_type: Optional[str] = Field(default=None, alias="analysisType")
    filters: Optional[List[Filter]] = None

    @property
    def has_filters(self) -> bool:
        """Whether the key was issued with a filter restriction at all."""
        return "filters" in self.model_fields_set

    def to_dict(self) -> Dict[str, Any]:
        """Return the parameters exactly as they were encoded."""
        params = self.model_dump(mode="json", by_alias=True)
        if "analysis_type" not in self.model_fields_set:
            params.pop("analysisType", None)
        if not self.has_filters:
            params.pop("filters", None)
        return params

    def query_overrides(self) -> Dict[str, Any]:
        """Parameters that replace the request's own, i.e. all but ``filters``."""
        params = self.to_dict()
        params.pop("filters", None)
        return params
