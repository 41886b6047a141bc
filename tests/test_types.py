"""Tests for value types, column descriptors and text conversion."""

from __future__ import annotations

import datetime as dt
import math

import pytest

from data_tables.errors import FormatError
from data_tables.types import (
    OverflowValue,
    TableField,
    ValueType,
    convert_text,
    field_format,
    format_temporal,
    is_assignable,
    is_float_text,
    is_integer_text,
    lookup_value_type,
    parse_array_type,
    parse_datetime,
)


class TestValueType:
    """Test value type classification and lookup by name."""

    def test_classification(self):
        """Integer and floating types are numeric; dates are temporal."""
        assert ValueType.INT16.is_integer and ValueType.INT64.is_numeric
        assert ValueType.FLOAT32.is_floating and not ValueType.FLOAT32.is_integer
        assert ValueType.DATE.is_temporal and ValueType.DATETIME.is_temporal
        assert not ValueType.STRING.is_numeric

    def test_lookup_names(self):
        """Type names are matched case-insensitively."""
        assert lookup_value_type("Double") is ValueType.FLOAT64
        assert lookup_value_type("int") is ValueType.INT32
        assert lookup_value_type("long") is ValueType.INT64
        assert lookup_value_type("array<int>") is ValueType.ARRAY

    def test_lookup_unknown(self):
        """An unknown name raises FormatError."""
        with pytest.raises(FormatError):
            lookup_value_type("decimal")

    def test_array_element(self):
        """The element type of an array name is parsed separately."""
        assert parse_array_type("array<double>") is ValueType.FLOAT64
        with pytest.raises(FormatError):
            parse_array_type("double")


class TestTableField:
    """Test column descriptors and their formats."""

    def test_defaults(self):
        """A default field is a 10-wide string."""
        f = TableField()
        assert f.value_type is ValueType.STRING
        assert f.width == 10
        assert f.format == "%-10.10s"

    def test_formats(self):
        """Formats follow width and precision; -1 means unconstrained."""
        assert field_format(ValueType.STRING, -1, 0) == "%-s"
        assert field_format(ValueType.FLOAT64, 10, 4) == "%10.4f"
        assert field_format(ValueType.FLOAT64, -1, 2) == "%.2f"
        assert field_format(ValueType.FLOAT64, -1, -1) == "%f"
        assert field_format(ValueType.INT32, 5, 0) == "%5d"
        assert field_format(ValueType.INT32, -1, -1) == "%d"

    def test_format_value(self):
        """Cells format with the column format; None is blank and NaN is 'NaN'."""
        f = TableField(ValueType.FLOAT64, "x", width=-1, precision=2)
        assert f.format_value(2.5) == "2.50"
        assert f.format_value(None) == ""
        assert f.format_value(math.nan) == "NaN"

    def test_array_needs_element_type(self):
        """An array column without an element type is rejected."""
        with pytest.raises(FormatError):
            TableField(ValueType.ARRAY, "a")
        f = TableField.array_of(ValueType.INT32, "a", width=-1)
        assert f.type_name == "array<int>"
        assert f.format_value([1, 2]) == "[1,2]"

    def test_copy_is_independent(self):
        """Copies do not share state with the original."""
        f = TableField(ValueType.INT32, "n", width=4)
        g = f.copy()
        g.name = "m"
        assert f.name == "n"
        assert g == TableField(ValueType.INT32, "m", width=4)


class TestConversion:
    """Test text classification and conversion to cell values."""

    def test_integer_text(self):
        assert is_integer_text(" -12 ")
        assert not is_integer_text("1.5")
        assert not is_integer_text("1_000")
        assert not is_integer_text("")

    def test_float_text(self):
        assert is_float_text("1.5e3")
        assert is_float_text("7")
        assert not is_float_text("abc")
        assert not is_float_text("1_0.5")

    def test_convert_blank_and_null(self):
        """Blank text and NULL are missing for non-string types."""
        assert convert_text(ValueType.INT32, "  ") is None
        assert convert_text(ValueType.FLOAT64, "NULL") is None
        assert convert_text(ValueType.STRING, "") == ""

    def test_convert_values(self):
        assert convert_text(ValueType.INT32, " 42 ") == 42
        assert convert_text(ValueType.FLOAT64, "2.5") == 2.5
        assert convert_text(ValueType.BOOLEAN, "Yes") is True
        assert convert_text(ValueType.DATE, "2020-03-04") == dt.date(2020, 3, 4)

    def test_convert_error(self):
        """Unparseable text raises FormatError."""
        with pytest.raises(FormatError):
            convert_text(ValueType.INT32, "abc")
        with pytest.raises(FormatError):
            convert_text(ValueType.BOOLEAN, "maybe")

    def test_parse_datetime_layouts(self):
        """ISO and US layouts are accepted."""
        assert parse_datetime("2021-01-02 03:04:05") == dt.datetime(2021, 1, 2, 3, 4, 5)
        assert parse_datetime("01/02/2021") == dt.datetime(2021, 1, 2)
        with pytest.raises(FormatError):
            parse_datetime("not a date")

    def test_format_temporal(self):
        """Midnight datetimes print as dates."""
        assert format_temporal(dt.datetime(2021, 1, 2)) == "2021-01-02"
        assert format_temporal(dt.datetime(2021, 1, 2, 3, 4)) == "2021-01-02 03:04"
        assert format_temporal(dt.date(2021, 1, 2)) == "2021-01-02"


class TestAssignable:
    """Test which values may be stored in which columns."""

    def test_none_always_assignable(self):
        for vt in (ValueType.INT32, ValueType.STRING, ValueType.DATE):
            assert is_assignable(TableField(vt), None)

    def test_integer_columns(self):
        """Integer columns take ints, NaN and overflow markers but not bools."""
        f = TableField(ValueType.INT32)
        assert is_assignable(f, 3)
        assert is_assignable(f, math.nan)
        assert is_assignable(f, OverflowValue("****"))
        assert not is_assignable(f, True)
        assert not is_assignable(f, 2.5)
        assert not is_assignable(f, "3")

    def test_other_columns(self):
        assert is_assignable(TableField(ValueType.FLOAT64), 3)
        assert not is_assignable(TableField(ValueType.STRING), 3)
        assert is_assignable(TableField(ValueType.DATETIME), dt.datetime(2020, 1, 1))
        assert is_assignable(TableField.array_of(ValueType.INT32, "a"), [1, 2])
        assert not is_assignable(TableField.array_of(ValueType.INT32, "a"), [1, "x"])


class TestOverflowValue:
    """Test the unparseable numeric marker."""

    def test_equals_zero_and_keeps_text(self):
        value = OverflowValue("******")
        assert value == 0.0
        assert value.raw_text == "******"
        assert isinstance(value, float)
        assert str(value) == "******"
