"""Row filters built from case-insensitive ``*`` glob patterns."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from data_tables.table import DataTable


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a ``*`` glob into a case-insensitive full-match regex."""
    parts = (re.escape(p) for p in pattern.split("*"))
    return re.compile(".*".join(parts), re.IGNORECASE | re.DOTALL)


def cell_text(value: Any) -> str:
    """Return the text a filter pattern is matched against."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class DataTableFilter:
    """Decide which rows of a table pass include and exclude filters.

    A row is included when every include filter matches its column; a
    missing cell never matches an include filter. A row is then excluded
    only if every exclude filter matches; an empty exclude pattern matches
    a missing cell.

    Raises:
        NotFoundError: On construction, if a filter names an unknown column.
    """

    def __init__(
        self,
        table: DataTable,
        include_filters: Mapping[str, str] | None = None,
        exclude_filters: Mapping[str, str] | None = None,
    ) -> None:
        self.table = table
        self._include = [
            (table.get_field_index(name), glob_to_regex(pattern))
            for name, pattern in (include_filters or {}).items()
        ]
        self._exclude = [
            (table.get_field_index(name), pattern, glob_to_regex(pattern))
            for name, pattern in (exclude_filters or {}).items()
        ]

    @property
    def is_empty(self) -> bool:
        return not self._include and not self._exclude

    def include_row(self, row: int) -> bool:
        """Return whether the row passes the filters."""
        for col, regex in self._include:
            value = self.table.get_field_value(row, col)
            if value is None or not regex.fullmatch(cell_text(value)):
                return False
        if self._exclude:
            matches = 0
            for col, pattern, regex in self._exclude:
                value = self.table.get_field_value(row, col)
                if value is None:
                    if pattern:
                        break
                    matches += 1
                elif regex.fullmatch(cell_text(value)):
                    matches += 1
            if matches == len(self._exclude):
                return False
        return True

    def matching_rows(self) -> list[int]:
        """Return the indices of all rows that pass the filters."""
        return [row for row in range(self.table.record_count) if self.include_row(row)]
