"""Tests for hierarchical multi-column sorting."""

from __future__ import annotations

import datetime as dt
import math

import pytest

from data_tables.errors import FormatError, SchemaMismatchError
from data_tables.operators.sort import ASCENDING, DESCENDING, sort_order, sort_table
from data_tables.table import DataTable
from data_tables.types import TableField, ValueType


def _table() -> DataTable:
    table = DataTable(
        [
            TableField(ValueType.STRING, "state"),
            TableField(ValueType.INT32, "pop"),
            TableField(ValueType.STRING, "city"),
        ]
    )
    for row in (
        ["NE", 10, "a"],
        ["CO", 30, "b"],
        ["NE", 20, "c"],
        ["CO", 30, "d"],
        [None, 5, "e"],
        ["CO", None, "f"],
    ):
        table.add_record(row)
    return table


class TestSort:
    """Test sort orders and stability."""

    def test_single_column(self):
        """Missing values sort lowest."""
        table = _table()
        order = sort_table(table, ["state"])
        assert table.get_field_values("state") == [None, "CO", "CO", "CO", "NE", "NE"]
        assert order == [4, 1, 3, 5, 0, 2]

    def test_hierarchical(self):
        """Later columns only reorder rows that tie on earlier columns."""
        table = _table()
        sort_table(table, ["state", "pop"], [ASCENDING, DESCENDING])
        assert table.get_field_values("city") == ["e", "b", "d", "f", "c", "a"]

    def test_stability(self):
        """Rows with equal keys keep their original relative order."""
        table = _table()
        sort_table(table, ["pop"])
        assert table.get_field_values("city") == ["f", "e", "a", "c", "b", "d"]

    def test_descending_single(self):
        table = _table()
        sort_table(table, ["pop"], [DESCENDING])
        assert table.get_field_values("pop")[:3] == [30, 30, 20]

    def test_sort_order_does_not_move_rows(self):
        table = _table()
        order = sort_order(table, ["city"], [-1])
        assert order == [5, 4, 3, 2, 1, 0]
        assert table.get_field_value(0, "city") == "a"

    def test_nan_sorts_lowest(self):
        table = DataTable([TableField(ValueType.FLOAT64, "x")])
        for value in (2.0, math.nan, -1.0):
            table.add_record([value])
        assert sort_order(table, ["x"]) == [1, 2, 0]

    def test_dates(self):
        table = DataTable([TableField(ValueType.DATETIME, "when")])
        for day in (3, 1, 2):
            table.add_record([dt.datetime(2020, 1, day)])
        assert sort_order(table, ["when"]) == [1, 2, 0]

    def test_strings_ignore_case(self):
        """Strings differing only in case tie and keep their input order."""
        table = DataTable([TableField(ValueType.STRING, "s"), TableField(ValueType.INT32, "n")])
        for i, value in enumerate(["b", "B", "a", "A", "c"]):
            table.add_record([value, i])
        sort_table(table, ["s"])
        assert table.get_field_values("s") == ["a", "A", "b", "B", "c"]
        sort_table(table, ["s", "n"], [ASCENDING, DESCENDING])
        assert table.get_field_values("s") == ["A", "a", "B", "b", "c"]

    def test_dates_mixed_with_datetimes(self):
        """A plain date sorts as midnight of that day."""
        table = DataTable([TableField(ValueType.DATETIME, "when")])
        table.add_record([dt.datetime(2020, 1, 2, 6)])
        table.add_record([dt.date(2020, 1, 2)])
        table.add_record([dt.datetime(2020, 1, 1, 23)])
        assert sort_order(table, ["when"]) == [2, 1, 0]

    def test_missing_column(self):
        with pytest.raises(SchemaMismatchError):
            sort_table(_table(), ["county"])

    def test_order_count_mismatch(self):
        with pytest.raises(SchemaMismatchError):
            sort_table(_table(), ["state", "pop"], [ASCENDING])

    def test_unsupported_type(self):
        table = DataTable([TableField(ValueType.BOOLEAN, "flag")])
        table.add_record([True])
        with pytest.raises(FormatError):
            sort_table(table, ["flag"])

    def test_no_columns(self):
        assert sort_order(_table(), []) == [0, 1, 2, 3, 4, 5]
