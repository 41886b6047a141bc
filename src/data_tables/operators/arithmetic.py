"""Row-by-row arithmetic on numeric table columns."""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any

from data_tables.errors import SchemaMismatchError, raise_problems
from data_tables.table import DataTable
from data_tables.types import TableField, ValueType, is_float_text, is_integer_text


class MathOperator(Enum):
    """Operators supported by ``DataTableMath``."""

    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    TO_INTEGER = "ToInteger"

    @classmethod
    def from_text(cls, text: str) -> MathOperator:
        for op in cls:
            if op.value.lower() == text.strip().lower() or op.name.lower() == text.strip().lower():
                return op
        raise ValueError(f'Unknown math operator "{text}"')


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _truncating_divide(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


class DataTableMath:
    """Apply arithmetic to the columns of one table."""

    def __init__(self, table: DataTable) -> None:
        self.table = table

    def math(
        self,
        input1: str,
        operator: MathOperator | str,
        input2: str | int | float | None,
        output: str,
        non_value: float = math.nan,
    ) -> None:
        """Compute ``output = input1 <operator> input2`` for every row.

        Args:
            input1: Name of the first input column (integer or floating).
            operator: The operation; ``TO_INTEGER`` ignores ``input2``.
            input2: Name of the second input column, or a numeric constant
                (given as a number or as numeric text).
            output: Output column name. It is created when missing: integer
                for ``TO_INTEGER`` or when both inputs are integer, otherwise
                a double with 4 decimals.
            non_value: Stored when an input is missing or NaN, or on division
                by zero.

        Raises:
            NotFoundError: If an input column does not exist.
            SchemaMismatchError: If an input column is not numeric.
            OperatorError: After the pass, if a value could not be stored.
        """
        if isinstance(operator, str):
            operator = MathOperator.from_text(operator)
        table = self.table
        routine = "DataTableMath.math"

        col1 = table.get_field_index(input1)
        type1 = table.get_field(col1).value_type
        if not type1.is_numeric:
            raise SchemaMismatchError(
                f'Input column (1) "{input1}" type is not integer or double - cannot do math.'
            )

        col2: int | None = None
        constant: int | float | None = None
        type2 = type1
        if operator is not MathOperator.TO_INTEGER:
            if isinstance(input2, (int, float)) and not isinstance(input2, bool):
                constant = input2
            elif input2 is not None and is_integer_text(input2):
                constant = int(input2)
            elif input2 is not None and is_float_text(input2):
                constant = float(input2)
            elif input2 is None:
                raise SchemaMismatchError(f"Operator {operator.value} needs a second input")
            if constant is not None:
                type2 = ValueType.INT32 if isinstance(constant, int) else ValueType.FLOAT64
            else:
                col2 = table.get_field_index(str(input2))
                type2 = table.get_field(col2).value_type
                if not type2.is_numeric:
                    raise SchemaMismatchError(
                        f'Input column (2) "{input2}" type is not integer or double - cannot do math.'
                    )

        integer_result = operator is MathOperator.TO_INTEGER or (
            type1.is_integer and type2.is_integer
        )
        if table.has_field(output):
            out_col = table.get_field_index(output)
        elif integer_result:
            out_col = table.add_field(TableField(ValueType.INT32, output, width=-1, precision=-1))
        else:
            out_col = table.add_field(TableField(ValueType.FLOAT64, output, width=10, precision=4))
        out_field = table.get_field(out_col)

        problems: list[str] = []
        for row in range(table.record_count):
            value1 = table.get_field_value(row, col1)
            value2 = constant if col2 is None else table.get_field_value(row, col2)
            result = self._compute(operator, value1, value2, integer_result, non_value)
            result = _fit_output(out_field, result)
            try:
                table.set_field_value(row, out_col, result)
            except SchemaMismatchError as e:
                problems.append(f"Error setting value in row [{row}] to {result} ({e}).")
        for problem in problems:
            table.log(logging.WARNING, routine, problem)
        raise_problems("computing column math", problems)

    @staticmethod
    def _compute(
        operator: MathOperator, value1: Any, value2: Any, integer_result: bool, non_value: float
    ) -> Any:
        if operator is MathOperator.TO_INTEGER:
            if _is_missing(value1) or math.isinf(value1):
                return non_value
            return int(value1)
        if _is_missing(value1) or _is_missing(value2):
            return non_value
        if operator is MathOperator.ADD:
            result = value1 + value2
        elif operator is MathOperator.SUBTRACT:
            result = value1 - value2
        elif operator is MathOperator.MULTIPLY:
            result = value1 * value2
        else:
            if value2 == 0:
                return non_value
            if integer_result:
                return _truncating_divide(value1, value2)
            return float(value1) / float(value2)
        return result if integer_result else float(result)


def _fit_output(out_field: TableField, value: Any) -> Any:
    """Convert a result to the output column's kind of number."""
    if value is None:
        return None
    if out_field.value_type.is_floating and isinstance(value, int):
        return float(value)
    if out_field.value_type.is_integer and isinstance(value, float):
        if math.isnan(value):
            return value
        if value.is_integer():
            return int(value)
    return value
