"""dBase (DBF) binary table reader and writer.

File layout (all integers little-endian)::

    header      32 bytes: version, date (yy-1900, mm, dd), row count (int32),
                header length (int16), record length (int16), 20 reserved
    fields      32 bytes each: name (11, null terminated), type code (1),
                reserved (4), width (1), decimal count (1), reserved (14)
    terminator  0x0D
    records     delete flag (1) followed by fixed-width field text
    eof         0x1A

Only character (``C``), numeric (``N``), float (``F``) and integer (``I``)
fields are supported.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
import struct
from pathlib import Path
from typing import Any, BinaryIO

from data_tables.errors import FormatError, IOFailure
from data_tables.log import TableLogger
from data_tables.table import DataTable, TableRecord
from data_tables.types import OverflowValue, TableField, ValueType

HEADER_FORMAT = "<BBBBIHH20s"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
DESCRIPTOR_FORMAT = "<11sc4sBB14s"
DESCRIPTOR_SIZE = struct.calcsize(DESCRIPTOR_FORMAT)

DBF_VERSION = 0x03
HEADER_TERMINATOR = b"\x0d"
EOF_MARKER = b"\x1a"
LIVE_RECORD = b" "

# Text encoding of names and character fields
ENCODING = "latin-1"

# Width written for columns whose width is unconstrained
DEFAULT_WIDTH = 32
MAX_NAME_LENGTH = 10

TYPE_CODES: dict[str, ValueType] = {
    "C": ValueType.STRING,
    "N": ValueType.FLOAT64,
    "F": ValueType.FLOAT32,
    "I": ValueType.INT32,
}


class DbaseHeader:
    """Parsed fixed header and per-field layout of a DBF file."""

    def __init__(
        self,
        version: int,
        date: dt.date | None,
        record_count: int,
        header_length: int,
        record_length: int,
        fields: list[TableField],
    ) -> None:
        self.version = version
        self.date = date
        self.record_count = record_count
        self.header_length = header_length
        self.record_length = record_length
        self.fields = fields
        # Byte offset of each field within a record, not counting the delete flag
        self.field_offsets: list[int] = []
        offset = 0
        for f in fields:
            self.field_offsets.append(offset)
            offset += f.width

    def cell_position(self, row: int, col: int) -> int:
        """Return the file position of one cell."""
        return self.header_length + row * self.record_length + self.field_offsets[col] + 1


def read_header(stream: BinaryIO) -> DbaseHeader:
    """Read and validate the header and field descriptors.

    Raises:
        FormatError: If the header is truncated or a field type is unsupported.
    """
    data = stream.read(HEADER_SIZE)
    if len(data) < HEADER_SIZE:
        raise FormatError("File is too short to be a dBase file")
    version, yy, mm, dd, record_count, header_length, record_length, _ = struct.unpack(
        HEADER_FORMAT, data
    )
    try:
        date: dt.date | None = dt.date(1900 + yy, mm, dd)
    except ValueError:
        date = None
    field_count = (header_length - HEADER_SIZE) // DESCRIPTOR_SIZE
    fields: list[TableField] = []
    for _ in range(field_count):
        raw = stream.read(DESCRIPTOR_SIZE)
        if len(raw) < DESCRIPTOR_SIZE:
            raise FormatError("Field descriptors are truncated")
        if raw[:1] == HEADER_TERMINATOR:
            break
        name_bytes, code, _, width, decimals, _ = struct.unpack(DESCRIPTOR_FORMAT, raw)
        name = name_bytes.split(b"\x00", 1)[0].decode(ENCODING).strip()
        type_code = code.decode(ENCODING).upper()
        value_type = TYPE_CODES.get(type_code)
        if value_type is None:
            raise FormatError(f'Field "{name}" has unsupported dBase type code "{type_code}"')
        precision = decimals if value_type.is_floating else 0
        fields.append(TableField(value_type, name, width=width, precision=precision))
    return DbaseHeader(version, date, record_count, header_length, record_length, fields)


def decode_cell(
    f: TableField,
    raw: bytes,
    trim_strings: bool = True,
    logger: TableLogger | None = None,
    where: str = "",
) -> Any:
    """Convert the text of one fixed-width field to a cell value.

    Blank numeric fields are missing values. Numeric text that does not parse
    (for example ``******`` written for an overflowing value) becomes an
    ``OverflowValue`` and a warning is logged.
    """
    text = raw.decode(ENCODING)
    if f.value_type is ValueType.STRING:
        return text.strip() if trim_strings else text
    stripped = text.strip()
    if not stripped:
        return None
    try:
        number = float(stripped)
    except ValueError:
        if logger is not None:
            logger.log(
                logging.WARNING,
                "dbase.decode_cell",
                f'Unable to parse "{stripped}" as a number for field "{f.name}"{where}; using 0',
            )
        return OverflowValue(stripped)
    if f.value_type.is_integer:
        if math.isfinite(number):
            return int(number)
        return OverflowValue(stripped)
    return number


class DbaseSeekReader:
    """Cell reader that seeks into an open DBF file for every access."""

    has_materialized_rows = False

    def __init__(self, stream: BinaryIO, header: DbaseHeader, trim_strings: bool = True) -> None:
        self.stream = stream
        self.header = header
        self.trim_strings = trim_strings

    def read(self, table: DataTable, row: int, col: int) -> Any:
        self.stream.seek(self.header.cell_position(row, col))
        f = self.header.fields[col]
        raw = self.stream.read(f.width)
        return decode_cell(f, raw, self.trim_strings, table.logger, f" at row {row}")

    def record_count(self, table: DataTable) -> int:
        return self.header.record_count

    def close(self) -> None:
        if not self.stream.closed:
            self.stream.close()


class DbaseDataTable(DataTable):
    """A table loaded from a dBase file.

    In the default mode all rows are read into memory. With
    ``on_the_fly=True`` only the header is read and each cell access seeks
    into the file, which stays open until ``close()``.
    """

    def __init__(
        self,
        path: str | Path,
        on_the_fly: bool = False,
        trim_strings: bool = True,
        logger: TableLogger | None = None,
    ) -> None:
        self.path = Path(path)
        super().__init__(identifier=self.path.name, logger=logger)
        try:
            stream = open(self.path, "rb")
        except OSError as e:
            self.log(logging.WARNING, "DbaseDataTable", f'Unable to open "{self.path}": {e}')
            raise IOFailure(f'Unable to open "{self.path}"') from e
        try:
            self.header = read_header(stream)
            for f in self.header.fields:
                self.add_field(f)
            if on_the_fly:
                self._set_cell_reader(DbaseSeekReader(stream, self.header, trim_strings))
                return
            self._read_records(stream, trim_strings)
        except BaseException:
            stream.close()
            raise
        stream.close()

    @property
    def record_length(self) -> int:
        return self.header.record_length

    @property
    def header_length(self) -> int:
        return self.header.header_length

    @property
    def field_offsets(self) -> list[int]:
        return list(self.header.field_offsets)

    def _read_records(self, stream: BinaryIO, trim_strings: bool) -> None:
        header = self.header
        stream.seek(header.header_length)
        for row in range(header.record_count):
            data = stream.read(header.record_length)
            if len(data) < header.record_length:
                raise FormatError(
                    f'"{self.path}" ends after {row} of {header.record_count} records'
                )
            values = []
            for col, f in enumerate(header.fields):
                start = header.field_offsets[col] + 1
                values.append(
                    decode_cell(
                        f, data[start:start + f.width], trim_strings, self.logger,
                        f" at row {row}",
                    )
                )
            self.add_record(TableRecord(values))


def read_dbase(
    path: str | Path,
    on_the_fly: bool = False,
    trim_strings: bool = True,
    logger: TableLogger | None = None,
) -> DbaseDataTable:
    """Read a dBase file; see ``DbaseDataTable``."""
    return DbaseDataTable(path, on_the_fly=on_the_fly, trim_strings=trim_strings, logger=logger)


def _type_code(f: TableField) -> bytes:
    if f.value_type is ValueType.STRING:
        return b"C"
    if f.value_type is ValueType.FLOAT32:
        return b"F"
    if f.value_type is ValueType.FLOAT64 or f.value_type.is_integer:
        return b"N"
    raise FormatError(
        f'Writing field "{f.name}" type {f.type_name} to a dBase file is not supported.'
    )


def effective_width(f: TableField) -> int:
    """Return the width written for a column, defaulting unconstrained widths."""
    if f.width <= 0:
        return DEFAULT_WIDTH
    return min(f.width, 255)


def encode_cell(f: TableField, value: Any, width: int, precision: int) -> bytes:
    """Render one cell as exactly ``width`` bytes of text.

    Strings are left justified, numbers right justified; text longer than
    the field is truncated on the right.
    """
    if value is None or (isinstance(value, float) and math.isnan(value)):
        text = ""
    elif isinstance(value, OverflowValue):
        text = value.raw_text
    elif f.value_type is ValueType.STRING:
        text = str(value)
    elif f.value_type.is_integer:
        text = str(int(value))
    elif precision > 0:
        text = f"%.{precision}f" % value
    else:
        text = str(value)
    text = text[:width]
    if f.value_type is ValueType.STRING:
        text = text.ljust(width)
    else:
        text = text.rjust(width)
    return text.encode(ENCODING, errors="replace")


def write_dbase(table: DataTable, path: str | Path, date: dt.date | None = None) -> Path:
    """Write a table as a dBase file.

    Args:
        table: Table to write; every column must be string, integer, double
            or float.
        path: Output path; ``.dbf`` is appended if missing.
        date: Date stored in the header; defaults to today.

    Returns:
        The path written.

    Raises:
        FormatError: If a column type cannot be stored.
        IOFailure: If the file cannot be written.
    """
    path = Path(path)
    if path.suffix.lower() != ".dbf":
        path = path.with_name(path.name + ".dbf")
    fields = table.fields
    # Validate every column before touching the file
    codes = [_type_code(f) for f in fields]
    widths = [effective_width(f) for f in fields]
    precisions = [max(f.precision, 0) if f.value_type.is_floating else 0 for f in fields]

    date = date or dt.date.today()
    record_count = table.record_count
    header_length = HEADER_SIZE + DESCRIPTOR_SIZE * len(fields) + 1
    record_length = sum(widths) + 1
    reserved = bytearray(20)
    # Header bytes 14 and 29 (incomplete-transaction and language flags)
    reserved[14 - 12] = 0x01
    reserved[29 - 12] = 0x01

    out = bytearray()
    out += struct.pack(
        HEADER_FORMAT,
        DBF_VERSION,
        date.year - 1900,
        date.month,
        date.day,
        record_count,
        header_length,
        record_length,
        bytes(reserved),
    )
    for f, code, width, precision in zip(fields, codes, widths, precisions):
        name = f.name[:MAX_NAME_LENGTH].encode(ENCODING, errors="replace")
        out += struct.pack(
            DESCRIPTOR_FORMAT, name.ljust(11, b"\x00"), code, bytes(4), width, precision, bytes(14)
        )
    out += HEADER_TERMINATOR
    for row in range(record_count):
        out += LIVE_RECORD
        for col, f in enumerate(fields):
            out += encode_cell(f, table.get_field_value(row, col), widths[col], precisions[col])
    out += EOF_MARKER

    try:
        with open(path, "wb") as stream:
            stream.write(out)
    except OSError as e:
        table.log(logging.WARNING, "write_dbase", f'Unable to write "{path}": {e}')
        raise IOFailure(f'Unable to write "{path}"') from e
    return path
