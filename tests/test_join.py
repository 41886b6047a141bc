"""Tests for joining columns of one table into another."""

from __future__ import annotations

import pytest

from data_tables.errors import OperatorError, SchemaMismatchError
from data_tables.operators.join import JoinMethod, MultipleMatch, join_tables
from data_tables.table import DataTable
from data_tables.types import TableField, ValueType


def _stations() -> DataTable:
    table = DataTable(
        [TableField(ValueType.STRING, "id"), TableField(ValueType.STRING, "name")],
        identifier="stations",
    )
    table.add_record(["a1", "Alpha"])
    table.add_record(["B2", "Bravo"])
    table.add_record(["c3", "Charlie"])
    table.add_record([None, "Nobody"])
    return table


def _readings() -> DataTable:
    table = DataTable(
        [
            TableField(ValueType.STRING, "station"),
            TableField(ValueType.FLOAT64, "flow", width=8, precision=2),
            TableField(ValueType.STRING, "flag"),
        ],
        identifier="readings",
    )
    table.add_record(["A1", 1.5, "ok"])
    table.add_record(["b2", 2.5, "ok"])
    table.add_record(["b2", 3.5, "est"])
    table.add_record(["D4", 4.5, "ok"])
    table.add_record([None, 9.5, "ok"])
    return table


class TestJoin:
    """Test key matching and copy columns."""

    def test_self_join_is_identity(self):
        """Joining a table with a copy of itself on its unique key changes nothing."""
        table = _stations()
        before = [r.values for r in table]
        count = join_tables(table, table.duplicate(), {"id": "id"})
        assert [r.values for r in table] == before
        assert count == 3

    def test_last_match_wins(self):
        """Keys compare case-insensitively and later matches overwrite earlier ones."""
        table = _stations()
        count = join_tables(table, _readings(), {"id": "station"})
        assert count == 2
        assert table.field_names == ["id", "name", "flow", "flag"]
        assert table.get_field_values("flow") == [1.5, 3.5, None, None]
        assert table.get_field_values("flag") == ["ok", "est", None, None]
        flow = table.get_field("flow")
        assert (flow.value_type, flow.width, flow.precision) == (ValueType.FLOAT64, 8, 2)

    def test_number_columns(self):
        """Second and later matches go into numbered columns."""
        table = _stations()
        join_tables(
            table, _readings(), {"id": "station"}, include_columns=["flow"],
            multiple_match=MultipleMatch.NUMBER_COLUMNS,
        )
        assert table.field_names == ["id", "name", "flow", "flow_2"]
        assert table.get_field_values("flow") == [1.5, 2.5, None, None]
        assert table.get_field_values("flow_2") == [None, 3.5, None, None]

    def test_column_map_and_filter(self):
        table = _stations()
        join_tables(
            table, _readings(), {"id": "station"}, include_columns=["flow"],
            column_map={"flow": "q"}, column_filters={"flag": "ok"},
        )
        assert table.get_field_values("q") == [1.5, 2.5, None, None]

    def test_join_always_appends_unmatched(self):
        """Unmatched rows of the joined table are appended with keys filled in."""
        table = _stations()
        count = join_tables(
            table, _readings(), {"id": "station"}, include_columns=["flow"],
            join_method=JoinMethod.JOIN_ALWAYS,
        )
        assert table.record_count == 6
        assert table.get_record(4).values == ["D4", None, 4.5]
        assert table.get_record(5).values == [None, None, 9.5]
        assert count == 4

    def test_join_always_with_number_columns(self):
        """The unsupported combination is reported after the join completes."""
        table = _stations()
        with pytest.raises(OperatorError) as excinfo:
            join_tables(
                table, _readings(), {"id": "station"}, include_columns=["flow"],
                join_method=JoinMethod.JOIN_ALWAYS, multiple_match=MultipleMatch.NUMBER_COLUMNS,
            )
        assert excinfo.value.result == 4
        assert table.record_count == 6

    def test_missing_key_column(self):
        """Missing key columns fail before the table is modified."""
        table = _stations()
        with pytest.raises(SchemaMismatchError):
            join_tables(table, _readings(), {"id": "site"})
        with pytest.raises(SchemaMismatchError):
            join_tables(table, _readings(), {"code": "station"})
        assert table.field_names == ["id", "name"]

    def test_missing_copy_column(self):
        table = _stations()
        with pytest.raises(OperatorError) as excinfo:
            join_tables(table, _readings(), {"id": "station"}, include_columns=["flow", "depth"])
        assert len(excinfo.value.problems) == 1
        assert table.get_field_values("flow") == [1.5, 3.5, None, None]

    def test_multiple_keys(self):
        left = DataTable([TableField(ValueType.STRING, "a"), TableField(ValueType.INT32, "b")])
        left.add_record(["x", 1])
        left.add_record(["x", 2])
        right = DataTable(
            [
                TableField(ValueType.STRING, "a"),
                TableField(ValueType.INT32, "b"),
                TableField(ValueType.STRING, "v"),
            ]
        )
        right.add_record(["X", 2, "two"])
        assert join_tables(left, right, {"a": "a", "b": "b"}) == 1
        assert left.get_field_values("v") == [None, "two"]
