"""
Reconcile request filters against the filters baked into a scoped key.

The merge is narrow-only: a request may restrict a scoped filter further but
can never widen it. Request filters on properties the key does not restrict,
or using operator combinations we do not know how to compare, are dropped.
"""

import json
from typing import Any, List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from shared.errors import ValidationError
from .models import Filter, FilterOperator

_filter_list = TypeAdapter(List[Filter])


def parse_filters(raw: Optional[str]) -> Optional[List[Filter]]:
    """Parse the JSON ``filters`` query parameter.

    Returns None when the parameter is absent.

    Raises:
        ValidationError: the value is not a JSON list of filter objects.
    """
    if raw is None:
        return None
    try:
        return _filter_list.validate_python(json.loads(raw))
    except (ValueError, PydanticValidationError):
        raise ValidationError("filters must be a JSON list of filter objects")


def serialize_filters(filters: Sequence[Filter]) -> str:
    """Render filters the way the upstream API expects them in a query string."""
    return json.dumps([f.to_dict() for f in filters], separators=(",", ":"))


def _same(left: Any, right: Any) -> bool:
    """Strict equality: ``True``, ``1`` and ``1.0`` are different values."""
    if type(left) is not type(right):
        return False
    if isinstance(left, list):
        return len(left) == len(right) and all(_same(a, b) for a, b in zip(left, right))
    if isinstance(left, dict):
        return left.keys() == right.keys() and all(_same(v, right[k]) for k, v in left.items())
    return left == right


def _contains(values: Any, value: Any) -> bool:
    return isinstance(values, list) and any(_same(value, v) for v in values)


def is_allowed(request_filter: Filter, scoped_filter: Filter) -> bool:
    """Whether ``request_filter`` stays within what ``scoped_filter`` grants."""
    if scoped_filter.operator == FilterOperator.EQ.value:
        return (
            request_filter.operator == FilterOperator.EQ.value
            and _same(request_filter.property_value, scoped_filter.property_value)
        )

    if scoped_filter.operator == FilterOperator.IN.value:
        if request_filter.operator == FilterOperator.EQ.value:
            return _contains(scoped_filter.property_value, request_filter.property_value)
        if request_filter.operator == FilterOperator.IN.value:
            return isinstance(request_filter.property_value, list) and all(
                _contains(scoped_filter.property_value, value)
                for value in request_filter.property_value
            )
        return False

    return (
        request_filter.operator == scoped_filter.operator
        and _same(request_filter.property_value, scoped_filter.property_value)
    )


def restrict_filters(
    scoped_filters: Sequence[Filter],
    request_filters: Optional[Sequence[Filter]],
) -> List[Filter]:
    """Keep the allowed request filters, then add every untouched scoped filter."""
    scoped_by_name = {}
    for scoped in scoped_filters:
        scoped_by_name.setdefault(scoped.property_name, scoped)

    allowed = [
        f for f in (request_filters or [])
        if f.property_name in scoped_by_name and is_allowed(f, scoped_by_name[f.property_name])
    ]

    requested = {f.property_name for f in allowed}
    allowed.extend(s for s in scoped_filters if s.property_name not in requested)
    return allowed


def merge_filters(
    scoped_filters: Optional[Sequence[Filter]],
    request_filters: Optional[Sequence[Filter]],
    has_restriction: bool = True,
) -> Optional[List[Filter]]:
    """Produce the filter list that is actually sent upstream.

    ``has_restriction`` is False when the scoped key carries no ``filters``
    key at all, in which case the request filters pass through untouched.
    """
    if not has_restriction:
        return list(request_filters) if request_filters is not None else None
    return restrict_filters(scoped_filters or [], request_filters)
