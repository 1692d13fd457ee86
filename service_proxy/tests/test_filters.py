"""
Unit tests for filter restriction.
"""

import json

import pytest

from service_proxy.app.scoped_keys.filters import (
    is_allowed,
    merge_filters,
    parse_filters,
    serialize_filters,
)
from service_proxy.app.scoped_keys.models import Filter
from shared.errors import ValidationError


def f(name, operator, value):
    return Filter(property_name=name, operator=operator, property_value=value)


class TestFilterRestriction:
    """Test cases for merging request filters into scoped filters."""

    @pytest.fixture
    def scoped_in(self):
        return [f("p", "in", ["a", "b"])]

    def test_in_restriction_keeps_member_eq(self, scoped_in):
        """Test an eq filter on an allowed value narrows the restriction."""
        assert merge_filters(scoped_in, [f("p", "eq", "a")]) == [f("p", "eq", "a")]

    def test_in_restriction_drops_non_member_eq(self, scoped_in):
        """Test an eq filter outside the allowed set falls back to the key's filter."""
        assert merge_filters(scoped_in, [f("p", "eq", "c")]) == scoped_in

    def test_in_restriction_drops_partially_allowed_in(self, scoped_in):
        """Test an in filter is dropped entirely if any value is not allowed."""
        assert merge_filters(scoped_in, [f("p", "in", ["a", "c"])]) == scoped_in

    def test_in_restriction_keeps_subset_in(self, scoped_in):
        """Test an in filter within the allowed set is kept."""
        assert merge_filters(scoped_in, [f("p", "in", ["b"])]) == [f("p", "in", ["b"])]

    def test_in_restriction_drops_other_operators(self, scoped_in):
        """Test operators other than eq/in cannot narrow an in restriction."""
        assert merge_filters(scoped_in, [f("p", "ne", "a")]) == scoped_in

    def test_in_restriction_drops_scalar_in(self, scoped_in):
        """Test an in filter with a non-list value is dropped."""
        assert merge_filters(scoped_in, [f("p", "in", "a")]) == scoped_in

    def test_eq_restriction_overrides_request(self):
        """Test a key restricting x to 1 wins over a request asking for 2."""
        scoped = [f("x", "eq", "1")]

        assert merge_filters(scoped, [f("x", "eq", "2")]) == [f("x", "eq", "1")]

    def test_eq_restriction_keeps_exact_match(self):
        """Test an identical eq filter is kept once."""
        scoped = [f("x", "eq", "1")]

        assert merge_filters(scoped, [f("x", "eq", "1")]) == [f("x", "eq", "1")]

    def test_eq_restriction_rejects_in(self):
        """Test an eq restriction cannot be replaced by an in filter."""
        scoped = [f("x", "eq", "1")]

        assert merge_filters(scoped, [f("x", "in", ["1"])]) == scoped

    def test_other_operator_requires_exact_match(self):
        """Test other scoped operators only accept the identical filter."""
        scoped = [f("age", "gt", 18)]

        assert is_allowed(f("age", "gt", 18), scoped[0])
        assert not is_allowed(f("age", "gt", 21), scoped[0])
        assert not is_allowed(f("age", "gte", 18), scoped[0])

    def test_unrestricted_property_dropped(self):
        """Test request filters on properties the key does not cover are dropped."""
        scoped = [f("x", "eq", "1")]

        assert merge_filters(scoped, [f("y", "eq", "2")]) == scoped

    def test_untouched_scoped_filters_are_appended(self):
        """Test scoped filters the request did not narrow are still applied."""
        scoped = [f("x", "eq", "1"), f("p", "in", ["a", "b"])]

        merged = merge_filters(scoped, [f("p", "eq", "b")])

        assert merged == [f("p", "eq", "b"), f("x", "eq", "1")]

    def test_absent_request_filters_use_scoped(self):
        """Test a request without filters gets the key's filters."""
        scoped = [f("x", "eq", "1")]

        assert merge_filters(scoped, None) == scoped

    def test_no_restriction_passes_request_through(self):
        """Test a key without filters leaves the request filters untouched."""
        requested = [f("y", "eq", "2")]

        assert merge_filters(None, requested, has_restriction=False) == requested
        assert merge_filters(None, None, has_restriction=False) is None

    def test_empty_restriction_drops_everything(self):
        """Test an empty filter list in the key allows no request filters."""
        assert merge_filters([], [f("y", "eq", "2")]) == []

    @pytest.mark.parametrize("requested", [True, 1.0, "1"])
    def test_eq_restriction_compares_types_strictly(self, requested):
        """Test values equal only under loose comparison do not match an eq restriction."""
        scoped = [f("user_id", "eq", 1)]

        merged = merge_filters(scoped, [f("user_id", "eq", requested)])

        assert serialize_filters(merged) == '[{"property_name":"user_id","operator":"eq","property_value":1}]'

    @pytest.mark.parametrize("requested", [True, 1.0, "1"])
    def test_in_restriction_compares_types_strictly(self, requested):
        """Test membership in an in restriction is type strict."""
        scoped = [f("org", "in", [1, 2])]

        assert not is_allowed(f("org", "eq", requested), scoped[0])
        assert not is_allowed(f("org", "in", [2, requested]), scoped[0])
        assert serialize_filters(merge_filters(scoped, [f("org", "eq", requested)])) == serialize_filters(scoped)

    def test_in_restriction_keeps_same_typed_member(self):
        """Test a member of the same type is still accepted."""
        scoped = [f("org", "in", [1, 2])]

        assert is_allowed(f("org", "eq", 2), scoped[0])
        assert is_allowed(f("org", "in", [2, 1]), scoped[0])

    def test_other_operator_compares_types_strictly(self):
        """Test exact-match operators do not accept loosely equal values."""
        scoped = f("flag", "ne", False)

        assert is_allowed(f("flag", "ne", False), scoped)
        assert not is_allowed(f("flag", "ne", 0), scoped)


class TestFilterParsing:
    """Test cases for the filters query parameter."""

    def test_parse_round_trip(self):
        """Test filters parse from and render to compact JSON."""
        raw = '[{"property_name":"x","operator":"eq","property_value":"1"}]'

        filters = parse_filters(raw)

        assert filters == [f("x", "eq", "1")]
        assert serialize_filters(filters) == raw

    def test_parse_absent(self):
        assert parse_filters(None) is None

    @pytest.mark.parametrize("raw", ["not json", '{"property_name": "x"}', '[{"foo": "bar"}]', "[1]"])
    def test_parse_malformed(self, raw):
        """Test anything but a list of filter objects is a validation error."""
        with pytest.raises(ValidationError):
            parse_filters(raw)

    def test_extra_filter_fields_survive(self):
        """Test vendor-specific filter fields are passed through."""
        raw = json.dumps([{"property_name": "x", "operator": "eq", "property_value": 1, "coordinates": [1, 2]}])

        rendered = json.loads(serialize_filters(parse_filters(raw)))

        assert rendered[0]["coordinates"] == [1, 2]
