"""Hierarchical multi-key sort of table rows."""

from __future__ import annotations

import datetime as dt
import math
from collections.abc import Sequence
from typing import Any

from data_tables.errors import FormatError, SchemaMismatchError
from data_tables.table import DataTable
from data_tables.types import ValueType

ASCENDING = 1
DESCENDING = -1


def _sortable(value_type: ValueType) -> bool:
    return (
        value_type is ValueType.STRING
        or value_type.is_temporal
        or value_type.is_numeric
    )


def _sort_key(value: Any) -> tuple:
    # Missing values (and NaN) order before everything else
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return (0,)
    if isinstance(value, str):
        return (1, value.lower())
    # Date-time columns may also hold plain dates
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return (1, dt.datetime.combine(value, dt.time()))
    return (1, value)


def _runs(order: list[int], keys: list[list[Any]], depth: int) -> list[tuple[int, int]]:
    """Return [start, end) ranges of ``order`` whose first ``depth`` keys tie."""
    runs = []
    start = 0
    n = len(order)
    for i in range(1, n + 1):
        if i == n or any(
            _sort_key(keys[k][order[i]]) != _sort_key(keys[k][order[start]]) for k in range(depth)
        ):
            if i - start > 1:
                runs.append((start, i))
            start = i
    return runs


def sort_order(table: DataTable, columns: Sequence[str], orders: Sequence[int] | None = None) -> list[int]:
    """Compute the sorted order of the rows without moving them.

    The rows are sorted on the first column; then for each further column
    only the runs of rows that tie on all previous columns are re-sorted,
    so later columns never disturb the order set by earlier ones. Sorting
    is stable.

    Args:
        table: Table to sort.
        columns: Sort column names, most significant first.
        orders: Per-column direction; a negative value sorts descending.
            Defaults to ascending for every column.

    Returns:
        ``order`` such that output row ``i`` is original row ``order[i]``.

    Raises:
        SchemaMismatchError: If any sort column does not exist.
        FormatError: If a sort column type cannot be sorted.
    """
    if not columns:
        return list(range(table.record_count))
    orders = list(orders) if orders else [ASCENDING] * len(columns)
    if len(orders) != len(columns):
        raise SchemaMismatchError(f"{len(columns)} sort columns but {len(orders)} sort orders")
    missing = [name for name in columns if not table.has_field(name)]
    if missing:
        raise SchemaMismatchError(
            f'Sort column(s) not found in table "{table.identifier}": {", ".join(missing)}'
        )
    indices = [table.get_field_index(name) for name in columns]
    for index in indices:
        f = table.get_field(index)
        if not _sortable(f.value_type):
            raise FormatError(
                "Sorting table only implemented for string, integer, double, float and "
                f'date/time columns; "{f.name}" is {f.type_name}.'
            )

    keys = [table.get_field_values(i) for i in indices]
    order = list(range(table.record_count))
    order.sort(key=lambda r: _sort_key(keys[0][r]), reverse=orders[0] < 0)
    for depth in range(1, len(indices)):
        for start, end in _runs(order, keys, depth):
            order[start:end] = sorted(
                order[start:end],
                key=lambda r: _sort_key(keys[depth][r]),
                reverse=orders[depth] < 0,
            )
    return order


def sort_table(table: DataTable, columns: Sequence[str], orders: Sequence[int] | None = None) -> list[int]:
    """Sort the rows of ``table`` in place; see ``sort_order``.

    Returns:
        The permutation applied, so callers can reorder parallel data.
    """
    order = sort_order(table, columns, orders)
    table.reorder_records(order)
    return order
