"""String manipulation and multi-column string formatting."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from data_tables.errors import FormatError, SchemaMismatchError, raise_problems
from data_tables.operators.filter import DataTableFilter
from data_tables.table import DataTable
from data_tables.types import TableField, ValueType, format_temporal, parse_date, parse_datetime


class StringOperator(Enum):
    """Operators supported by ``DataTableStringManipulator``."""

    APPEND = "Append"
    PREPEND = "Prepend"
    REPLACE = "Replace"
    REMOVE = "Remove"
    SPLIT = "Split"
    SUBSTRING = "Substring"
    TO_DATE = "ToDate"
    TO_DATE_TIME = "ToDateTime"
    TO_DOUBLE = "ToDouble"
    TO_INTEGER = "ToInteger"

    @classmethod
    def from_text(cls, text: str) -> StringOperator:
        for op in cls:
            if op.value.lower() == text.strip().lower():
                return op
        raise ValueError(f'Unknown string operator "{text}"')


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "isoformat"):
        return format_temporal(value)
    return str(value)


def _position(text: str | None) -> int:
    """Parse a 1-based position; anything unparseable is -1."""
    if text is None:
        return -1
    try:
        return int(str(text).strip())
    except ValueError:
        return -1


def _output_field(operator: StringOperator, name: str) -> TableField:
    if operator is StringOperator.TO_INTEGER:
        return TableField(ValueType.INT32, name, width=-1, precision=-1)
    if operator is StringOperator.TO_DATE:
        return TableField(ValueType.DATE, name, width=-1, precision=-1)
    if operator is StringOperator.TO_DATE_TIME:
        return TableField(ValueType.DATETIME, name, width=-1, precision=-1)
    if operator is StringOperator.TO_DOUBLE:
        return TableField(ValueType.FLOAT64, name, width=-1, precision=6)
    return TableField(ValueType.STRING, name, width=-1, precision=-1)


class DataTableStringManipulator:
    """Apply a string operation to one column of each (filtered) row.

    Args:
        table: Table to modify.
        include_filters: Include globs; only matching rows are processed.
        exclude_filters: Exclude globs; rows matching all are skipped.
    """

    def __init__(
        self,
        table: DataTable,
        include_filters: Mapping[str, str] | None = None,
        exclude_filters: Mapping[str, str] | None = None,
    ) -> None:
        self.table = table
        self.include_filters = include_filters
        self.exclude_filters = exclude_filters

    def manipulate(
        self,
        input_column1: str,
        operator: StringOperator | str,
        input_column2: str | None = None,
        input_value2: str | None = None,
        input_value3: str | None = None,
        output_column: str | None = None,
    ) -> None:
        """Set ``output_column`` from ``input_column1`` for every processed row.

        ``input_value2`` takes precedence over ``input_column2`` as the second
        operand. Operator details:

        * Append/Prepend: add the second operand after/before the input.
        * Replace/Remove: replace the second operand with ``input_value3``
          (or with nothing for Remove). A leading ``^`` only matches at the
          start and a trailing ``$`` only at the end; ``\\s`` means a space.
        * Split: split on any character of the second operand and take the
          token at 1-based position ``input_value3``.
        * Substring: characters from 1-based position ``input_value2`` to
          ``input_value3`` inclusive, or to the end if ``input_value3`` is
          not given.
        * ToInteger/ToDouble/ToDate/ToDateTime: parse the input; text that
          does not parse gives a missing value.

        A missing input always gives a missing output.

        Raises:
            NotFoundError: If an input or filter column does not exist.
            OperatorError: After the pass, if values could not be stored.
        """
        if isinstance(operator, str):
            operator = StringOperator.from_text(operator)
        table = self.table
        routine = "DataTableStringManipulator.manipulate"
        row_filter = DataTableFilter(table, self.include_filters, self.exclude_filters)
        col1 = table.get_field_index(input_column1)
        col2 = table.get_field_index(input_column2) if input_column2 else None
        output_column = output_column or input_column1
        if table.has_field(output_column):
            out_col = table.get_field_index(output_column)
        else:
            out_col = table.add_field(_output_field(operator, output_column))

        replace_start = replace_end = False
        if operator in (StringOperator.REPLACE, StringOperator.REMOVE):
            if input_value2 is not None:
                if input_value2.startswith("^"):
                    replace_start = True
                    input_value2 = input_value2[1:]
                elif input_value2.endswith("$"):
                    replace_end = True
                    input_value2 = input_value2[:-1]
                input_value2 = input_value2.replace("\\s", " ")
            if operator is StringOperator.REMOVE:
                input_value3 = ""
            elif input_value3 is not None:
                input_value3 = input_value3.replace("\\s", " ")

        problems: list[str] = []
        max_chars = -1
        for row in range(table.record_count):
            if not row_filter.include_row(row):
                continue
            text1 = _as_text(table.get_field_value(row, col1))
            if input_value2 is not None:
                text2 = input_value2
            elif col2 is not None:
                text2 = _as_text(table.get_field_value(row, col2))
            else:
                text2 = None

            if text1 is None:
                output = None
            elif operator in (StringOperator.REPLACE, StringOperator.REMOVE):
                previous = None if out_col == col1 else _as_text(table.get_field_value(row, out_col))
                output = _replace(
                    text1, text2, input_value3, replace_start, replace_end,
                    text1 if previous is None else previous,
                )
            else:
                output = self._apply(operator, text1, text2, input_value3)

            if out_col == col1 and isinstance(output, str):
                max_chars = max(max_chars, len(output))
            try:
                table.set_field_value(row, out_col, output)
            except SchemaMismatchError as e:
                problems.append(f"Error setting value in row [{row}] ({e}).")

        out_field = table.get_field(out_col)
        if out_col == col1 and max_chars > out_field.width:
            out_field.width = max_chars
        for problem in problems:
            table.log(logging.WARNING, routine, problem)
        raise_problems("manipulating strings", problems)

    @staticmethod
    def _apply(operator: StringOperator, text1: str, text2: str | None, value3: str | None) -> Any:
        if operator is StringOperator.APPEND:
            return None if text2 is None else text1 + text2
        if operator is StringOperator.PREPEND:
            return None if text2 is None else text2 + text1
        if operator is StringOperator.SPLIT:
            position = _position(value3)
            if not text1:
                return ""
            if position < 0 or not text2:
                return None
            delimiters = text2.replace("\\s", " ").replace("\\n", "\n")
            tokens = re.split("[" + re.escape(delimiters) + "]", text1)
            index = position - 1
            return tokens[index] if 0 <= index < len(tokens) else ""
        if operator is StringOperator.SUBSTRING:
            start = _position(text2)
            end = _position(value3)
            if start < 1:
                return None
            if end < 0:
                return "" if start > len(text1) else text1[start - 1:]
            if start <= len(text1) and end <= len(text1):
                return text1[start - 1:end]
            return ""
        try:
            if operator is StringOperator.TO_INTEGER:
                return int(text1.strip())
            if operator is StringOperator.TO_DOUBLE:
                return float(text1.strip())
            if operator is StringOperator.TO_DATE:
                return parse_date(text1)
            if operator is StringOperator.TO_DATE_TIME:
                return parse_datetime(text1)
        except (ValueError, FormatError):
            return None
        raise ValueError(f"Unhandled string operator {operator}")


def _replace(
    text: str,
    find: str | None,
    replacement: str | None,
    at_start: bool,
    at_end: bool,
    default: str,
) -> str:
    """Replace ``find`` in ``text``; returns ``default`` when nothing matches."""
    if find is None or replacement is None:
        return default
    if at_start:
        if text.startswith(find):
            return replacement + text[len(find):]
        return default
    if at_end:
        if text.endswith(find):
            return text[: len(text) - len(find)] + replacement
        return default
    if not find:
        return default
    replaced = text.replace(find, replacement)
    if replaced != text:
        return replaced
    return default


class DataTableStringFormatter:
    """Build a string column from several columns with a printf-style template."""

    def __init__(self, table: DataTable) -> None:
        self.table = table

    def format(
        self,
        input_columns: Sequence[str],
        template: str,
        output_column: str,
        insert_before: str | None = None,
    ) -> None:
        """Set ``output_column`` to ``template % (values of input_columns)``.

        The output column is created as a string column when missing,
        before ``insert_before`` if given. Rows with a missing value in any
        input column get a missing output.

        Raises:
            NotFoundError: If an input or insert-before column does not exist.
            OperatorError: After the pass, if the template failed for some rows.
        """
        table = self.table
        routine = "DataTableStringFormatter.format"
        insert_pos = table.get_field_index(insert_before) if insert_before else -1
        inputs_by_name = list(input_columns)
        # Validate inputs before the output column shifts indices
        for name in inputs_by_name:
            table.get_field_index(name)
        if table.has_field(output_column):
            out_col = table.get_field_index(output_column)
        else:
            out_col = table.add_field(
                TableField(ValueType.STRING, output_column, width=-1, precision=-1),
                insert_pos=insert_pos,
            )
        inputs = table.get_field_indices(inputs_by_name)

        problems: list[str] = []
        for row in range(table.record_count):
            values = [table.get_field_value(row, c) for c in inputs]
            if any(v is None for v in values):
                output = None
            else:
                try:
                    output = template % tuple(values)
                except (TypeError, ValueError) as e:
                    problems.append(f'Error formatting row [{row}] with "{template}" ({e}).')
                    output = None
            try:
                table.set_field_value(row, out_col, output)
            except SchemaMismatchError as e:
                problems.append(f"Error setting value in row [{row}] ({e}).")
        for problem in problems:
            table.log(logging.WARNING, routine, problem)
        raise_problems("formatting strings", problems)
