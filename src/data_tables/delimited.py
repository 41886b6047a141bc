"""Delimited text (CSV-style) reader and writer for DataTable.

Column types are never stored in the file. The reader either keeps every
cell as text or infers a type per column from the data, with optional
per-column overrides. Quoted data tokens are always treated as text, which
keeps zero-padded identifiers such as ``"00123"`` intact.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from data_tables.errors import FormatError, IOFailure
from data_tables.log import TableLogger, default_logger
from data_tables.table import DataTable, TableRecord
from data_tables.types import (
    OverflowValue,
    TableField,
    ValueType,
    convert_text,
    format_temporal,
    is_float_text,
    is_integer_text,
)

INT32_MAX = 2**31 - 1


@dataclass
class DelimitedOptions:
    """Options controlling how a delimited file is read.

    Line numbers in ``header_lines`` and ``skip_lines`` are 0-based and count
    every physical line of the file. Both accept a list of ints or a string
    such as ``"0,3-5"``. ``header_lines="auto"`` treats the first line that
    starts with a double quote as the header.
    """

    delimiter: str = ","
    comment: str | None = "#"
    header_lines: str | Sequence[int] | None = "auto"
    skip_lines: str | Sequence[int] | None = None
    top: int | None = None
    merge_delimiters: bool = False
    trim_input: bool = False
    trim_strings: bool = False
    infer_types: bool = True
    datetime_columns: Sequence[str] = field(default_factory=list)
    double_columns: Sequence[str] = field(default_factory=list)
    integer_columns: Sequence[str] = field(default_factory=list)
    text_columns: Sequence[str] = field(default_factory=list)


@dataclass
class WriteOptions:
    """Options controlling how a table is written as delimited text."""

    delimiter: str = ","
    write_column_names: bool = True
    # None writes the table's own comments
    comments: Sequence[str] | None = None
    comment_prefix: str = "#"
    always_quote_strings: bool = False
    newline_replacement: str | None = None
    nan_value: str = "NaN"


def parse_line_list(selection: str | Sequence[int] | None) -> set[int]:
    """Parse a line selection such as ``"0,3-5"`` into a set of line numbers.

    A range with no start (``"-3"``) begins at line 0.
    """
    if selection is None:
        return set()
    if not isinstance(selection, str):
        return {int(n) for n in selection}
    lines: set[int] = set()
    for part in selection.replace(" ", ",").split(","):
        part = part.strip()
        if not part:
            continue
        if is_integer_text(part) and not part.startswith("-"):
            lines.add(int(part))
            continue
        if "-" not in part:
            raise FormatError(f'Invalid line number "{part}"')
        first, last = part.split("-", 1)
        try:
            start = int(first) if first.strip() else 0
            end = int(last)
        except ValueError:
            raise FormatError(f'Invalid line range "{part}"') from None
        lines.update(range(start, end + 1))
    return lines


def split_line(line: str, delimiters: str, merge: bool = False, retain_quotes: bool = True) -> list[str]:
    """Split one line into tokens.

    Every character in ``delimiters`` separates tokens. Text inside double
    quotes may contain delimiters; a doubled quote inside a quoted section is
    an escaped quote. With ``retain_quotes`` the quotes stay in the token so
    that callers can tell quoted text from bare numbers.

    Args:
        line: Text to split.
        delimiters: Delimiter characters.
        merge: Treat runs of delimiters as one and drop leading ones.
        retain_quotes: Keep quote characters in the returned tokens.
    """
    tokens: list[str] = []
    buf: list[str] = []
    in_quote = False
    i = 0
    n = len(line)
    if merge:
        while i < n and line[i] in delimiters:
            i += 1
    while i < n:
        c = line[i]
        if in_quote:
            if c == '"':
                if i + 1 < n and line[i + 1] == '"':
                    buf.append('""' if retain_quotes else '"')
                    i += 2
                    continue
                in_quote = False
                if retain_quotes:
                    buf.append(c)
            else:
                buf.append(c)
        elif c == '"':
            in_quote = True
            if retain_quotes:
                buf.append(c)
        elif c in delimiters:
            tokens.append("".join(buf))
            buf = []
            if merge:
                while i + 1 < n and line[i + 1] in delimiters:
                    i += 1
                if i + 1 >= n:
                    # Trailing delimiters do not start another token
                    return tokens
        else:
            buf.append(c)
        i += 1
    tokens.append("".join(buf))
    return tokens


def unquote(cell: str) -> str:
    """Strip surrounding quotes from a token and unescape doubled quotes."""
    if not cell:
        return cell
    first = cell[0]
    if first in "\"'":
        if len(cell) > 1 and cell[-1] == first:
            return cell[1:-1].replace('""', '"')
        return cell[1:]
    return cell


@dataclass
class _ColumnTally:
    """Counts gathered for one column during type inference."""

    integers: int = 0
    doubles: int = 0
    strings: int = 0
    blanks: int = 0
    longest: int = 0
    precision: int = 0
    int_max: int = 0

    def add(self, cell: str, trim_strings: bool) -> None:
        trimmed = cell.strip()
        found = False
        if not trimmed:
            self.blanks += 1
            found = True
        if is_integer_text(trimmed):
            self.integers += 1
            self.longest = max(self.longest, len(trimmed))
            self.int_max = max(self.int_max, abs(int(trimmed)))
            found = True
        if is_float_text(trimmed):
            self.doubles += 1
            self.longest = max(self.longest, len(trimmed))
            period = trimmed.find(".")
            if period >= 0:
                self.precision = max(self.precision, len(trimmed) - period - 1)
            found = True
        if not found:
            self.strings += 1
            self.longest = max(self.longest, len(trimmed) if trim_strings else len(cell))


def _unique_name(names: list[str], name: str) -> str:
    lowered = {n.lower() for n in names}
    while name.lower() in lowered:
        name = name + "_2"
    return name


def _in_names(names: Sequence[str], name: str) -> bool:
    return any(n.strip().lower() == name.lower() for n in names)


def read_delimited(
    path: str | Path,
    options: DelimitedOptions | None = None,
    logger: TableLogger | None = None,
) -> DataTable:
    """Read a delimited text file into a new table.

    Args:
        path: File to read.
        options: Parsing options; defaults to comma-delimited with type
            inference and an auto-detected header.
        logger: Logger handle for the new table.

    Returns:
        The table, identified by the file name.

    Raises:
        IOFailure: If the file cannot be read.
        FormatError: If a cell cannot be converted to an overridden type.
    """
    options = options or DelimitedOptions()
    table_logger = logger or default_logger()
    routine = "read_delimited"
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
    except OSError as e:
        table_logger.log(logging.WARNING, routine, f'Unable to read "{path}": {e}')
        raise IOFailure(f'Unable to read "{path}"') from e

    auto_header = isinstance(options.header_lines, str) and options.header_lines.lower() == "auto"
    header_set = set() if auto_header else parse_line_list(options.header_lines)
    skip_set = parse_line_list(options.skip_lines)

    header_names: list[str] | None = None
    rows: list[list[str]] = []
    row_lines: list[int] = []
    for lineno, line in enumerate(lines):
        if options.comment and line.startswith(options.comment):
            continue
        if lineno in skip_set:
            continue
        if header_names is None and (auto_header or lineno in header_set):
            # Auto-detection only considers the first line before any data
            if (auto_header and not rows and line.startswith('"')) or lineno in header_set:
                header_names = _parse_header(line, options)
                table_logger.log(logging.DEBUG, routine, f"Column headers from line [{lineno}]: {line}")
                continue
        if lineno in header_set:
            # Only one header row is used; later header rows are not data
            continue
        if not line.strip():
            continue
        if options.top is not None and options.top >= 0 and len(rows) >= options.top:
            break
        text = line.strip() if options.trim_input else line
        rows.append(split_line(text, options.delimiter, options.merge_delimiters))
        row_lines.append(lineno)

    max_columns = max((len(r) for r in rows), default=0)
    names: list[str] = list(header_names or [])
    for i in range(len(names), max_columns):
        names.append(_unique_name(names, f"Field_{i + 1}"))

    tallies = [_ColumnTally() for _ in range(max_columns)]
    for tokens in rows:
        for icol, cell in enumerate(tokens):
            tallies[icol].add(cell, options.trim_strings)

    fields: list[TableField] = []
    for icol, name in enumerate(names):
        if icol >= max_columns:
            fields.append(TableField(ValueType.STRING, name, width=len(name)))
            continue
        tally = tallies[icol]
        if not options.infer_types:
            fields.append(TableField(ValueType.STRING, name, width=tally.longest))
            continue
        fields.append(_inferred_field(name, tally, options))
        table_logger.log(
            logging.DEBUG,
            routine,
            f"Column [{icol}] {name} type is {fields[-1].type_name} ({tally.integers} integers, "
            f"{tally.doubles} doubles, {tally.strings} strings, {tally.blanks} blanks)",
        )

    table = DataTable(fields, identifier=path.name, logger=table_logger)
    for tokens, lineno in zip(rows, row_lines):
        values: list[Any] = []
        for icol, f in enumerate(fields):
            if icol >= len(tokens):
                values.append("" if f.value_type is ValueType.STRING else None)
                continue
            cell = tokens[icol].strip() if options.trim_strings else tokens[icol]
            values.append(_convert_cell(f, cell, lineno, table_logger))
        table.add_record(TableRecord(values))
    table_logger.log(
        logging.DEBUG, routine, f"Read {table.record_count} rows and {table.field_count} columns from {path}"
    )
    return table


def _parse_header(line: str, options: DelimitedOptions) -> list[str]:
    text = line.strip() if options.trim_input else line
    names: list[str] = []
    for token in split_line(text, options.delimiter, options.merge_delimiters, retain_quotes=False):
        names.append(_unique_name(names, token.strip()))
    return names


def _inferred_field(name: str, tally: _ColumnTally, options: DelimitedOptions) -> TableField:
    """Choose a column type: caller overrides first, then the observed data."""
    string_width = tally.longest if tally.longest > 0 else len(name)
    if _in_names(options.datetime_columns, name):
        return TableField(ValueType.DATETIME, name)
    if _in_names(options.double_columns, name):
        return TableField(ValueType.FLOAT64, name, width=tally.longest, precision=tally.precision)
    if _in_names(options.integer_columns, name):
        return TableField(_integer_type(tally), name, width=tally.longest or 10)
    if _in_names(options.text_columns, name):
        return TableField(ValueType.STRING, name, width=string_width)
    if (
        tally.integers > 0
        and tally.strings == 0
        and (tally.doubles == 0 or tally.integers == tally.doubles)
    ):
        return TableField(_integer_type(tally), name, width=tally.longest)
    if tally.doubles > 0 and tally.strings == 0:
        return TableField(ValueType.FLOAT64, name, width=tally.longest, precision=tally.precision)
    return TableField(ValueType.STRING, name, width=string_width)


def _integer_type(tally: _ColumnTally) -> ValueType:
    return ValueType.INT64 if tally.int_max > INT32_MAX else ValueType.INT32


def _convert_cell(f: TableField, cell: str, lineno: int, table_logger: TableLogger) -> Any:
    vt = f.value_type
    if vt is ValueType.STRING:
        return unquote(cell)
    if vt.is_temporal:
        try:
            return convert_text(vt, cell)
        except FormatError as e:
            table_logger.log(logging.WARNING, "read_delimited", f"Line [{lineno}]: {e}; using null")
            return None
    try:
        return convert_text(vt, unquote(cell.strip()))
    except FormatError as e:
        raise FormatError(f"Line [{lineno}] column \"{f.name}\": {e}") from None


def format_cell(f: TableField, value: Any, options: WriteOptions) -> str:
    """Return the unquoted text written for one cell."""
    if value is None:
        return ""
    if isinstance(value, OverflowValue):
        return value.raw_text
    vt = f.value_type
    if vt.is_floating:
        if isinstance(value, float) and math.isnan(value):
            return options.nan_value
        if f.precision > 0:
            return f"%.{f.precision}f" % value
        return str(value)
    if vt.is_integer:
        if isinstance(value, float) and math.isnan(value):
            return options.nan_value
        return str(value)
    if vt.is_temporal:
        return format_temporal(value)
    if vt is ValueType.STRING:
        text = str(value)
        if options.newline_replacement is not None:
            text = (
                text.replace("\r\n", options.newline_replacement)
                .replace("\n", options.newline_replacement)
                .replace("\r", options.newline_replacement)
            )
        return text
    return f.format_value(value)


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def write_delimited(table: DataTable, path: str | Path, options: WriteOptions | None = None) -> None:
    """Write a table as delimited text.

    String cells are always quoted; other cells are quoted when
    ``always_quote_strings`` is set or when the text contains the delimiter
    or a quote. Missing values are written as empty fields.

    Raises:
        IOFailure: If the file cannot be written.
    """
    options = options or WriteOptions()
    fields = table.fields
    comments = table.comments if options.comments is None else options.comments
    lines: list[str] = []
    for comment in comments:
        lines.append(f"{options.comment_prefix} {comment}")
    if options.write_column_names and any(f.name.strip() for f in fields):
        lines.append(options.delimiter.join(_quote(f.name) for f in fields))
    for row in range(table.record_count):
        cells = []
        for col, f in enumerate(fields):
            value = table.get_field_value(row, col)
            text = format_cell(f, value, options)
            if value is not None and (
                f.value_type is ValueType.STRING
                or options.always_quote_strings
                or options.delimiter in text
                or '"' in text
            ):
                text = _quote(text)
            cells.append(text)
        lines.append(options.delimiter.join(cells))
    path = Path(path)
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            for line in lines:
                f.write(line + "\n")
    except OSError as e:
        table.log(logging.WARNING, "write_delimited", f'Unable to write "{path}": {e}')
        raise IOFailure(f'Unable to write "{path}"') from e
