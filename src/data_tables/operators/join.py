"""Join columns of a second table into a table by matching key columns."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from data_tables.errors import NotFoundError, SchemaMismatchError, raise_problems
from data_tables.operators.copy import lookup_mapped
from data_tables.operators.filter import DataTableFilter
from data_tables.table import DataTable
from data_tables.types import TableField, ValueType


class JoinMethod(Enum):
    """What to do with rows of the joined table that match no row."""

    JOIN_IF_IN_BOTH = "JoinIfInBoth"
    JOIN_ALWAYS = "JoinAlways"


class MultipleMatch(Enum):
    """How to store values when several joined rows match one row."""

    USE_LAST_MATCH = "UseLastMatch"
    NUMBER_COLUMNS = "NumberColumns"


def _key_part(value_type: ValueType, value: Any) -> Any:
    if isinstance(value, str) and value_type is ValueType.STRING:
        return value.lower()
    if isinstance(value, list):
        return tuple(value)
    return value


def join_tables(
    table: DataTable,
    other: DataTable,
    join_columns_map: Mapping[str, str],
    include_columns: Sequence[str] | None = None,
    column_map: Mapping[str, str] | None = None,
    column_filters: Mapping[str, str] | None = None,
    join_method: JoinMethod = JoinMethod.JOIN_IF_IN_BOTH,
    multiple_match: MultipleMatch = MultipleMatch.USE_LAST_MATCH,
) -> int:
    """Copy columns from ``other`` into ``table`` for rows with equal keys.

    Every row of ``other`` (that passes ``column_filters``) whose key
    columns equal those of a row in ``table`` has its copy columns written
    into that row, in order. With ``USE_LAST_MATCH`` later matches
    overwrite earlier ones; with ``NUMBER_COLUMNS`` the second and later
    matches go into ``<name>_2``, ``<name>_3``, ... columns created on
    demand. Strings keys compare case-insensitively and a missing key
    never matches. Values are only copied between columns of equal type.

    Args:
        table: Table receiving the values; modified in place.
        other: Table providing the values.
        join_columns_map: Key columns, ``table`` name to ``other`` name.
        include_columns: Columns of ``other`` to copy; all non-key columns
            by default.
        column_map: Renames from ``other`` column names to ``table`` names.
            Columns missing from ``table`` are created with the type, width
            and precision of the source column.
        column_filters: Include globs on columns of ``other``.
        join_method: ``JOIN_ALWAYS`` appends rows of ``other`` that matched
            nothing, with keys and copy columns filled in.
        multiple_match: Policy for several matches per row.

    Returns:
        The number of rows of ``table`` that received values, plus appended rows.

    Raises:
        SchemaMismatchError: If a key column is missing from either table.
        NotFoundError: If a filter column is missing from ``other``.
        OperatorError: After the pass, if problems were recorded.
    """
    routine = "join_tables"
    problems: list[str] = []

    # Key columns are required before anything is modified
    keys1: list[int] = []
    keys2: list[int] = []
    for name1, name2 in join_columns_map.items():
        try:
            keys1.append(table.get_field_index(name1))
        except NotFoundError:
            raise SchemaMismatchError(
                f'Join column "{name1}" not found in table "{table.identifier}".'
            ) from None
        try:
            keys2.append(other.get_field_index(name2))
        except NotFoundError:
            raise SchemaMismatchError(
                f'Join column "{name2}" not found in table "{other.identifier}".'
            ) from None
    key_types = [table.get_field(i).value_type for i in keys1]
    row_filter = DataTableFilter(other, column_filters)

    join_names = {n.lower() for n in join_columns_map.values()}
    requested = [
        n for n in (include_columns or other.field_names) if n.lower() not in join_names
    ]
    # (column in other, column in table, name in table)
    copies: list[tuple[int, int, str]] = []
    for name in requested:
        try:
            col2 = other.get_field_index(name)
        except NotFoundError:
            problems.append(f'Cannot determine table2 copy column number for "{name}".')
            continue
        name1 = lookup_mapped(column_map, name)
        if table.has_field(name1):
            col1 = table.get_field_index(name1)
        else:
            source = other.get_field(col2)
            col1 = table.add_field(
                TableField(
                    source.value_type, name1, width=source.width, precision=source.precision,
                    element_type=source.element_type,
                )
            )
        if table.get_field(col1).value_type != other.get_field(col2).value_type:
            table.log(
                logging.WARNING,
                routine,
                f'Column "{name1}" type differs from "{name}"; values will not be copied.',
            )
            continue
        copies.append((col2, col1, name1))

    # Index the rows of other that pass the filter by normalised key
    index: dict[tuple[Any, ...], list[int]] = {}
    for row2 in range(other.record_count):
        if not row_filter.include_row(row2):
            continue
        values = [other.get_field_value(row2, c) for c in keys2]
        if any(v is None for v in values):
            continue
        key = tuple(_key_part(t, v) for t, v in zip(key_types, values))
        index.setdefault(key, []).append(row2)

    matched2: set[int] = set()
    rows_joined = 0
    for row in range(table.record_count):
        values = [table.get_field_value(row, c) for c in keys1]
        if any(v is None for v in values):
            continue
        key = tuple(_key_part(t, v) for t, v in zip(key_types, values))
        matches = index.get(key, [])
        for match_number, row2 in enumerate(matches, start=1):
            matched2.add(row2)
            for col2, col1, name1 in copies:
                target = col1
                if multiple_match is MultipleMatch.NUMBER_COLUMNS and match_number > 1:
                    target = _numbered_column(table, other, col2, f"{name1}_{match_number}")
                table.set_field_value(row, target, other.get_field_value(row2, col2))
        if matches:
            rows_joined += 1

    if join_method is JoinMethod.JOIN_ALWAYS:
        if multiple_match is MultipleMatch.NUMBER_COLUMNS:
            problems.append(
                "Requested NumberColumns for multiple join matches but not supported "
                "with JoinMethod=JoinAlways - multiple matches will be in extra rows."
            )
        for row2 in range(other.record_count):
            if row2 in matched2 or not row_filter.include_row(row2):
                continue
            row = table.record_count
            table.add_record(table.empty_record())
            for col1, col2 in zip(keys1, keys2):
                if table.get_field(col1).value_type == other.get_field(col2).value_type:
                    table.set_field_value(row, col1, other.get_field_value(row2, col2))
            for col2, col1, _ in copies:
                table.set_field_value(row, col1, other.get_field_value(row2, col2))
            rows_joined += 1

    for problem in problems:
        table.log(logging.WARNING, routine, problem)
    raise_problems("joining tables", problems, rows_joined)
    return rows_joined


def _numbered_column(table: DataTable, other: DataTable, col2: int, name: str) -> int:
    if table.has_field(name):
        return table.get_field_index(name)
    source = other.get_field(col2)
    return table.add_field(
        TableField(
            source.value_type, name, width=source.width, precision=source.precision,
            element_type=source.element_type,
        )
    )
