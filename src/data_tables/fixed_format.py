"""Reader for fixed-width text files described by a format string."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from data_tables.errors import FormatError, IOFailure
from data_tables.log import TableLogger, default_logger
from data_tables.parsing import parse_format
from data_tables.table import DataTable, TableRecord
from data_tables.types import TableField, ValueType, convert_text

FLOAT_PRECISION = 6


def _field_for(value_type: ValueType, width: int, name: str) -> TableField:
    precision = FLOAT_PRECISION if value_type.is_floating else 0
    return TableField(value_type, name, width=width, precision=precision)


def read_fixed_format(
    path: str | Path,
    data_format: str,
    column_names: Sequence[str] | None = None,
    logger: TableLogger | None = None,
) -> DataTable:
    """Read a fixed-width text file into a new table.

    Args:
        path: File to read.
        data_format: Field layout, e.g. ``"s10,3d5,x2,f12"``; see
            ``data_tables.parsing.parse_format``.
        column_names: Names for the non-filler fields, in order. Missing
            names default to ``Column<N>`` (1-based).
        logger: Logger handle for the new table.

    Returns:
        The table, identified by the file name.

    Raises:
        SyntaxError: If ``data_format`` cannot be parsed.
        IOFailure: If the file cannot be read.
        FormatError: If a numeric field holds text that is not a number.
    """
    table_logger = logger or default_logger()
    routine = "read_fixed_format"
    items = parse_format(data_format)
    names = list(column_names or [])

    fields: list[TableField] = []
    # (start, end) character offsets of each non-filler field
    spans: list[tuple[int, int]] = []
    pos = 0
    for item in items:
        start = pos
        pos += item.width
        if item.value_type is None:
            continue
        index = len(fields)
        name = names[index] if index < len(names) else f"Column{index + 1}"
        fields.append(_field_for(item.value_type, item.width, name))
        spans.append((start, pos))
    if len(names) > len(fields):
        table_logger.log(
            logging.WARNING,
            routine,
            f"{len(names)} column names given but the format has {len(fields)} fields",
        )

    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
    except OSError as e:
        table_logger.log(logging.WARNING, routine, f'Unable to read "{path}": {e}')
        raise IOFailure(f'Unable to read "{path}"') from e

    table = DataTable(fields, identifier=path.name, logger=table_logger)
    for lineno, line in enumerate(lines, start=1):
        if not line.strip() or line.startswith("#"):
            continue
        values: list[Any] = []
        for field_def, (start, end) in zip(fields, spans):
            chunk = line[start:end].strip()
            if field_def.value_type is ValueType.STRING:
                values.append(chunk)
                continue
            try:
                values.append(convert_text(field_def.value_type, chunk))
            except FormatError as e:
                raise FormatError(f"Line [{lineno}] columns {start + 1}-{end}: {e}") from e
        table.add_record(TableRecord(values))
    table_logger.log(
        logging.DEBUG, routine, f"Read {table.record_count} rows and {table.field_count} columns from {path}"
    )
    return table
