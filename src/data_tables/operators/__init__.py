"""Table operators: filter, copy, append, join, sort, compare, math and strings."""

from data_tables.operators.arithmetic import DataTableMath, MathOperator
from data_tables.operators.compare import DataTableComparer
from data_tables.operators.copy import append_table, copy_table
from data_tables.operators.filter import DataTableFilter
from data_tables.operators.join import JoinMethod, MultipleMatch, join_tables
from data_tables.operators.sort import ASCENDING, DESCENDING, sort_order, sort_table
from data_tables.operators.strings import (
    DataTableStringFormatter,
    DataTableStringManipulator,
    StringOperator,
)

__all__ = [
    "ASCENDING",
    "DESCENDING",
    "DataTableComparer",
    "DataTableFilter",
    "DataTableMath",
    "DataTableStringFormatter",
    "DataTableStringManipulator",
    "JoinMethod",
    "MathOperator",
    "MultipleMatch",
    "StringOperator",
    "append_table",
    "copy_table",
    "join_tables",
    "sort_order",
    "sort_table",
]
