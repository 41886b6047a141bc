"""Copy a filtered projection of a table, and append one table to another."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from data_tables.errors import NotFoundError, raise_problems
from data_tables.operators.filter import DataTableFilter
from data_tables.table import DataTable, TableRecord
from data_tables.types import TableField, ValueType


def lookup_mapped(column_map: Mapping[str, str] | None, name: str) -> str:
    """Return the new name for a column, matching map keys case-insensitively."""
    if not column_map:
        return name
    if name in column_map:
        return column_map[name]
    lowered = name.lower()
    for key, value in column_map.items():
        if key.lower() == lowered:
            return value
    return name


def _hashable(value: Any) -> Any:
    return tuple(value) if isinstance(value, list) else value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def copy_table(
    table: DataTable,
    new_table_id: str,
    include_columns: Sequence[str] | None = None,
    distinct_columns: Sequence[str] | None = None,
    column_map: Mapping[str, str] | None = None,
    column_filters: Mapping[str, str] | None = None,
    column_exclude_filters: Mapping[str, str] | None = None,
) -> DataTable:
    """Create a new table from selected columns and rows of ``table``.

    Args:
        table: Source table.
        new_table_id: Identifier of the new table.
        include_columns: Columns to copy, in order; all columns if empty.
        distinct_columns: Keep only the first row for each combination of
            values in these columns. Rows with a missing or blank value in
            any of them are always kept.
        column_map: Renames applied to copied columns.
        column_filters: Include globs keyed by column name.
        column_exclude_filters: Exclude globs keyed by column name.

    Returns:
        The new table.

    Raises:
        NotFoundError: If a filter or distinct column does not exist.
        OperatorError: If requested columns were missing; they are added as
            empty string columns and the new table is attached to the error.
    """
    routine = "copy_table"
    problems: list[str] = []
    requested = list(include_columns) if include_columns else table.field_names
    row_filter = DataTableFilter(table, column_filters, column_exclude_filters)
    distinct = table.get_field_indices(distinct_columns or [])

    source_columns: list[int | None] = []
    fields: list[TableField] = []
    for name in requested:
        try:
            index = table.get_field_index(name)
        except NotFoundError:
            problems.append(f'Column "{name}" not found in table "{table.identifier}".')
            table.log(logging.WARNING, routine, problems[-1])
            source_columns.append(None)
            fields.append(TableField(ValueType.STRING, lookup_mapped(column_map, name)))
            continue
        new_field = table.get_field(index).copy()
        new_field.name = lookup_mapped(column_map, new_field.name)
        source_columns.append(index)
        fields.append(new_field)

    new_table = DataTable(fields, identifier=new_table_id, logger=table.logger)
    seen: set[tuple[Any, ...]] = set()
    for row in range(table.record_count):
        if not row_filter.include_row(row):
            continue
        if distinct:
            key = tuple(_hashable(table.get_field_value(row, c)) for c in distinct)
            if not any(_is_blank(v) for v in key):
                if key in seen:
                    continue
                seen.add(key)
        new_table.add_record(
            TableRecord(
                None if c is None else table.get_field_value(row, c) for c in source_columns
            )
        )
    raise_problems("copying table", problems, new_table)
    return new_table


def append_table(
    table: DataTable,
    other: DataTable,
    include_columns: Sequence[str] | None = None,
    column_map: Mapping[str, str] | None = None,
    column_filters: Mapping[str, str] | None = None,
) -> int:
    """Append rows of ``other`` to ``table``.

    Columns of ``other`` are matched to columns of ``table`` by name
    (case-insensitively) after renaming through ``column_map``. Columns of
    ``table`` with no match, or whose type differs from the matched column,
    receive missing values.

    Args:
        table: Table receiving the rows.
        other: Table providing the rows.
        include_columns: Names of columns in ``other`` to append; all by default.
        column_map: Renames from ``other`` column names to ``table`` names.
        column_filters: Include globs on columns of ``other``.

    Returns:
        The number of rows appended.
    """
    routine = "append_table"
    requested = {n.lower() for n in (include_columns or other.field_names)}
    row_filter = DataTableFilter(other, column_filters)

    other_names = other.field_names
    mapped_names = [lookup_mapped(column_map, n).lower() for n in other_names]
    source_columns: list[int | None] = []
    for f in table.fields:
        match = None
        for i, original in enumerate(other_names):
            if original.lower() in requested and mapped_names[i] == f.name.lower():
                match = i
                break
        if match is not None and other.get_field(match).value_type != f.value_type:
            table.log(
                logging.WARNING,
                routine,
                f'Column "{other_names[match]}" ({other.get_field(match).type_name}) does not '
                f'match type of "{f.name}" ({f.type_name}); appending missing values',
            )
            match = None
        source_columns.append(match)

    appended = 0
    for row in range(other.record_count):
        if not row_filter.include_row(row):
            continue
        table.add_record(
            TableRecord(
                None if c is None else other.get_field_value(row, c) for c in source_columns
            )
        )
        appended += 1
    return appended
