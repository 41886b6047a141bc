"""Cell-by-cell comparison of two tables."""

from __future__ import annotations

import html
import logging
import math
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from data_tables.errors import FormatError, IOFailure, SchemaMismatchError
from data_tables.table import DataTable, TableRecord
from data_tables.types import TableField, ValueType, is_float_text


class DataTableComparer:
    """Compare selected columns of two tables and build a difference table.

    The comparison table has one string column per compared column pair.
    A cell holds the formatted value when both tables agree, ``"v1 / v2"``
    when they differ, and ``"v1 ~/~ v2"`` when two floating values differ
    by less than ``tolerance``. ``differences`` is a parallel matrix of
    booleans marking the cells that differ.
    """

    def __init__(
        self,
        table1: DataTable,
        table2: DataTable,
        compare_columns1: Sequence[str] | None = None,
        exclude_columns1: Sequence[str] | None = None,
        compare_columns2: Sequence[str] | None = None,
        match_columns_by_name: bool = True,
        precision: int | None = None,
        tolerance: float | None = None,
        new_table_id: str | None = None,
    ) -> None:
        if precision is not None and precision < 0:
            raise FormatError(f"Precision ({precision}) must be >= 0")
        if tolerance is not None and tolerance < 0:
            raise FormatError(f"Tolerance ({tolerance}) must be >= 0")
        if new_table_id is not None and not new_table_id.strip():
            raise FormatError("The comparison table identifier must not be blank")
        self.table1 = table1
        self.table2 = table2
        self.precision = precision
        self.tolerance = tolerance
        self.match_columns_by_name = match_columns_by_name
        self.new_table_id = new_table_id or f"{table1.identifier}-{table2.identifier}-comparison"

        excluded = {n.lower() for n in (exclude_columns1 or [])}
        names1 = [n for n in (compare_columns1 or table1.field_names) if n.lower() not in excluded]
        # Fails with NotFoundError if a requested column is missing
        self.columns1 = table1.get_field_indices(names1)
        self.columns2: list[int | None] = []
        if match_columns_by_name:
            for name in names1:
                self.columns2.append(
                    table2.get_field_index(name) if table2.has_field(name) else None
                )
        else:
            indices2 = table2.get_field_indices(compare_columns2 or table2.field_names)
            if len(indices2) > len(names1):
                raise SchemaMismatchError(
                    f"Table 2 has {len(indices2)} compare columns but table 1 has {len(names1)}"
                )
            self.columns2 = list(indices2) + [None] * (len(names1) - len(indices2))

        self.comparison_table: DataTable | None = None
        self.differences: list[list[bool]] = []

    @property
    def difference_count(self) -> int:
        """Return the number of cells that differ."""
        return sum(sum(1 for d in row if d) for row in self.differences)

    def _format(self, table: DataTable, col: int | None, row: int) -> str:
        if col is None or row >= table.record_count:
            return ""
        value = table.get_field_value(row, col)
        return format_compare_value(table.get_field(col), value, self.precision)

    def compare(self) -> DataTable:
        """Run the comparison and return the comparison table."""
        out = DataTable(identifier=self.new_table_id, logger=self.table1.logger)
        for col1, col2 in zip(self.columns1, self.columns2):
            f1 = self.table1.get_field(col1)
            f2 = self.table2.get_field(col2) if col2 is not None else None
            name = f1.name
            name2 = f2.name if f2 is not None else ""
            if name.lower() != name2.lower():
                name = f"{name} / {name2}"
            description = f1.description
            description2 = f2.description if f2 is not None else ""
            if description.lower() != description2.lower():
                description = f"{description} / {description2}"
            out.add_field(TableField(ValueType.STRING, name, width=-1, description=description))

        row_count = max(self.table1.record_count, self.table2.record_count)
        self.differences = []
        for row in range(row_count):
            cells: list[Any] = []
            diffs: list[bool] = []
            for col1, col2 in zip(self.columns1, self.columns2):
                text1 = self._format(self.table1, col1, row)
                text2 = self._format(self.table2, col2, row)
                cell, differs = self._compare_cell(self.table1.get_field(col1), text1, text2)
                cells.append(cell)
                diffs.append(differs)
            out.add_record(TableRecord(cells))
            self.differences.append(diffs)
        self.comparison_table = out
        out.log(
            logging.INFO,
            "DataTableComparer.compare",
            f"{self.difference_count} differences comparing {self.table1.identifier} "
            f"and {self.table2.identifier}",
        )
        return out

    def _compare_cell(self, f1: TableField, text1: str, text2: str) -> tuple[str, bool]:
        if text1 == text2:
            return text1, False
        if (
            f1.value_type.is_floating
            and self.tolerance is not None
            and is_float_text(text1)
            and is_float_text(text2)
        ):
            if abs(float(text1) - float(text2)) >= self.tolerance:
                return f"{text1} / {text2}", True
            return f"{text1} ~/~ {text2}", False
        return f"{text1} / {text2}", True

    def write_html(self, path: str | Path, title: str | None = None) -> None:
        """Write the comparison table as HTML with differing cells highlighted.

        Runs ``compare()`` first if it has not been run.
        """
        table = self.comparison_table or self.compare()
        title = title or f"Comparison of {self.table1.identifier} and {self.table2.identifier}"
        lines = [
            "<!DOCTYPE html>",
            "<html>",
            "<head>",
            '<meta charset="utf-8">',
            f"<title>{html.escape(title)}</title>",
            "<style>",
            "table { border-collapse: collapse; }",
            "th, td { border: 1px solid #999; padding: 2px 6px; }",
            ".diff { background-color:yellow; }",
            "</style>",
            "</head>",
            "<body>",
            "<table>",
            "<tr>" + "".join(f"<th>{html.escape(n)}</th>" for n in table.field_names) + "</tr>",
        ]
        for row in range(table.record_count):
            cells = []
            for col in range(table.field_count):
                text = html.escape(table.get_field_value(row, col) or "")
                if self.differences[row][col]:
                    cells.append(f'<td class="diff">{text}</td>')
                else:
                    cells.append(f"<td>{text}</td>")
            lines.append("<tr>" + "".join(cells) + "</tr>")
        lines += ["</table>", "</body>", "</html>"]
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
        except OSError as e:
            table.log(logging.WARNING, "DataTableComparer.write_html", f'Unable to write "{path}": {e}')
            raise IOFailure(f'Unable to write "{path}"') from e


def format_compare_value(f: TableField, value: Any, precision: int | None = None) -> str:
    """Format a value for comparison.

    Floating values that are whole numbers (or infinite) print without
    decimals so that ``2`` and ``2.000`` compare equal; other floating values
    use ``precision`` when given, else the column format. Strings are not
    truncated to the column width.
    """
    if value is None:
        return ""
    if f.value_type.is_floating and isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return "NaN"
        if math.isinf(value) or float(value).is_integer():
            return "%.0f" % value if math.isfinite(value) else str(value)
        if precision is not None:
            return (f"%.{precision}f" % value).strip()
        return f.format_value(value).strip()
    if f.value_type is ValueType.STRING:
        return str(value).strip()
    return f.format_value(value).strip()
