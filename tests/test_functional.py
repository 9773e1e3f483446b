import pytest
from functional import INVALID, OptionalValue, compare, parse_int, with_default
from lazy import Pipeline


class TestOptionalValue:
    """Test the present/absent result wrapper"""

    def test_present_value(self):
        value = OptionalValue.of(3)
        assert value.is_present() and not value.is_empty()
        assert value.get() == 3
        assert value.or_else(0) == 3
        assert value.map(lambda x: x + 1) == OptionalValue.of(4)
        assert value.filter(lambda x: x > 5).is_empty()

    def test_absent_value(self):
        value = OptionalValue.empty()
        assert not value
        assert value.or_else("default") == "default"
        assert value.or_else_get(lambda: "supplied") == "supplied"
        assert value.map(lambda x: x + 1).is_empty()
        with pytest.raises(ValueError, match="No value present"):
            value.get()

    def test_none_can_be_present(self):
        """Test that a None element is distinguishable from absence"""
        assert Pipeline([None, 1]).find_first() == OptionalValue.of(None)
        assert OptionalValue.of_nullable(None).is_empty()

    def test_if_present(self):
        seen = []
        OptionalValue.of("a1").if_present(seen.append)
        OptionalValue.empty().if_present(seen.append)
        assert seen == ["a1"]

    def test_repr(self):
        assert repr(OptionalValue.of(1)) == "OptionalValue(1)"
        assert repr(OptionalValue.empty()) == "OptionalValue.empty"


class TestFallbackMapping:
    """Test map-with-fallback for conversions that may fail"""

    def test_parse_int_sentinel(self):
        assert parse_int("12") == 12
        assert parse_int("hey") == INVALID == -1
        assert parse_int(None, default=0) == 0

    def test_map_or_default_in_pipeline(self):
        result = Pipeline.of("1", "2", "3", "hey").map_or_default(int, -1).to_list()
        assert result == [1, 2, 3, -1], f"Unexpected result: {result}"

    def test_map_with_parse_int(self):
        assert Pipeline.of("1", "2", "3", "hey").map(parse_int).to_list() == [1, 2, 3, -1]

    def test_unlisted_errors_still_propagate(self):
        pipeline = Pipeline([1, 0]).map_or_default(lambda x: 1 / x, None, errors=(ValueError,))
        with pytest.raises(ZeroDivisionError):
            pipeline.to_list()

    def test_with_default_wraps_function(self):
        safe_int = with_default(int, default=0)
        assert safe_int("7") == 7
        assert safe_int("seven") == 0
        assert safe_int.__name__ == "int"


class TestCapabilities:
    """Test that plain functions satisfy single-method capabilities"""

    @pytest.mark.parametrize("x, y, expected", [(5, 10, -1), (10, 5, 1), (7, 7, 0)])
    def test_compare(self, x, y, expected):
        assert compare(x, y) == expected

    def test_sorted_with_comparator(self):
        from functools import cmp_to_key
        result = Pipeline([3, 1, 2]).sorted(key=cmp_to_key(lambda a, b: compare(b, a))).to_list()
        assert result == [3, 2, 1]
