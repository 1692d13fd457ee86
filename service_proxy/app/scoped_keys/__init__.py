"""
Scoped key handling: encryption and filter restriction.
"""

from .models import Filter, FilterOperator, ScopedKeyParams
from .filters import merge_filters, parse_filters, serialize_filters

__all__ = [
    "Filter",
    "FilterOperator",
    "ScopedKeyParams",
    "merge_filters",
    "parse_filters",
    "serialize_filters",
]
