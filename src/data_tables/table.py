"""In-memory table of typed columns and row records."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, Union

from data_tables.errors import NotFoundError, SchemaMismatchError
from data_tables.log import TableLogger, default_logger
from data_tables.types import InitFunction, TableField, ValueType, is_assignable

if TYPE_CHECKING:
    from data_tables.delimited import DelimitedOptions, WriteOptions

# A column may be addressed by position or by (case-insensitive) name
ColumnRef = Union[int, str]

logger = logging.getLogger(__name__)


class TableRecord:
    """One row of cell values, positionally aligned with the table's fields."""

    __slots__ = ("_values",)

    def __init__(self, values: Iterable[Any] | None = None) -> None:
        self._values: list[Any] = list(values) if values is not None else []

    @classmethod
    def empty(cls, size: int) -> TableRecord:
        """Return a record of ``size`` missing values."""
        return cls([None] * size)

    def add_field_value(self, value: Any) -> None:
        self._values.append(value)

    def insert_field_value(self, index: int, value: Any) -> None:
        self._values.insert(index, value)

    def delete_field_value(self, index: int) -> None:
        del self._values[index]

    def get_field_value(self, index: int) -> Any:
        return self._values[index]

    def set_field_value(self, index: int, value: Any) -> None:
        self._values[index] = value

    @property
    def values(self) -> list[Any]:
        """Return a copy of the cell values."""
        return list(self._values)

    def copy(self) -> TableRecord:
        return TableRecord(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __getitem__(self, index: int) -> Any:
        return self._values[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TableRecord):
            return self._values == other._values
        if isinstance(other, list):
            return self._values == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"TableRecord({self._values!r})"


class CellReader(Protocol):
    """Strategy used by a table to fetch cell values.

    Tables whose rows live in memory use ``MemoryCellReader``. Codecs that
    leave rows in a file supply a reader that fetches each cell on request
    and report ``has_materialized_rows = False``.
    """

    has_materialized_rows: bool

    def read(self, table: DataTable, row: int, col: int) -> Any:
        ...

    def record_count(self, table: DataTable) -> int:
        ...

    def close(self) -> None:
        ...


class MemoryCellReader:
    """Read cells from the table's in-memory records."""

    has_materialized_rows = True

    def read(self, table: DataTable, row: int, col: int) -> Any:
        return table._records[row].get_field_value(col)

    def record_count(self, table: DataTable) -> int:
        return len(table._records)

    def close(self) -> None:
        pass


class DataTable:
    """A rectangular table: ordered column descriptors and row records.

    Column edits are applied to every row so that each record always holds
    exactly one value per field. Cells hold Python values (or None for the
    missing marker) that must be assignable to the column's value type.
    """

    def __init__(
        self,
        fields: Iterable[TableField] | None = None,
        identifier: str = "",
        logger: TableLogger | None = None,
        cell_reader: CellReader | None = None,
    ) -> None:
        self.identifier = identifier
        self.logger: TableLogger = logger or default_logger()
        self.comments: list[str] = []
        self._fields: list[TableField] = []
        self._records: list[TableRecord] = []
        self._cell_reader: CellReader = cell_reader or MemoryCellReader()
        for f in fields or []:
            self._fields.append(f)

    # -- Context manager and lifecycle -----------------------------------

    def __enter__(self) -> DataTable:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Release any resource held by the cell reader."""
        self._cell_reader.close()

    @property
    def has_materialized_rows(self) -> bool:
        """Return whether row records are held in memory."""
        return self._cell_reader.has_materialized_rows

    def _set_cell_reader(self, reader: CellReader) -> None:
        self._cell_reader = reader

    def log(self, level: int, source_tag: str, message: str | BaseException) -> None:
        """Send a message through this table's logger handle."""
        self.logger.log(level, source_tag, message)

    # -- Fields ----------------------------------------------------------

    @property
    def fields(self) -> list[TableField]:
        """Return the column descriptors (the list is a copy; fields are not)."""
        return list(self._fields)

    @property
    def field_count(self) -> int:
        return len(self._fields)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self._fields]

    @property
    def field_types(self) -> list[ValueType]:
        return [f.value_type for f in self._fields]

    @property
    def field_formats(self) -> list[str]:
        return [f.format for f in self._fields]

    def get_field(self, col: ColumnRef) -> TableField:
        return self._fields[self._resolve_column(col)]

    def get_field_index(self, name: str) -> int:
        """Return the index of the named field (case-insensitive).

        Raises:
            NotFoundError: If no field has that name.
        """
        lowered = name.lower()
        for i, f in enumerate(self._fields):
            if f.name.lower() == lowered:
                return i
        raise NotFoundError(
            f'Unable to find table field with name "{name}" in table "{self.identifier}"'
        )

    def get_field_indices(self, names: Sequence[str]) -> list[int]:
        return [self.get_field_index(n) for n in names]

    def has_field(self, name: str) -> bool:
        try:
            self.get_field_index(name)
        except NotFoundError:
            return False
        return True

    def _resolve_column(self, col: ColumnRef) -> int:
        if isinstance(col, str):
            return self.get_field_index(col)
        if col < 0 or col >= len(self._fields):
            raise NotFoundError(
                f"Column index {col} out of range [0, {len(self._fields)}) "
                f'in table "{self.identifier}"'
            )
        return col

    def add_field(
        self,
        field_def: TableField,
        init_value: Any = None,
        init_function: InitFunction | None = None,
        insert_pos: int = -1,
    ) -> int:
        """Add a column and back-fill existing rows.

        Args:
            field_def: Descriptor of the new column.
            init_value: Value placed in every existing row.
            init_function: If given, generates the value from the row number
                instead of using init_value.
            insert_pos: Index to insert at; -1 or past the end appends.

        Returns:
            The index of the new column.

        Raises:
            SchemaMismatchError: If init_value cannot be stored in the new
                column; the table is left unchanged.
        """
        if init_function is None and not is_assignable(field_def, init_value):
            raise SchemaMismatchError(
                f'Value {init_value!r} cannot be stored in {field_def.type_name} column "{field_def.name}"'
            )
        if insert_pos < 0 or insert_pos >= len(self._fields):
            index = len(self._fields)
        else:
            index = insert_pos
        self._fields.insert(index, field_def)
        for row, record in enumerate(self._records):
            if init_function is not None:
                value = _generated_value(field_def, init_function, row)
            else:
                value = init_value
            record.insert_field_value(index, value)
        return index

    def delete_field(self, col: ColumnRef) -> None:
        """Remove a column and its slot from every row."""
        index = self._resolve_column(col)
        del self._fields[index]
        for record in self._records:
            record.delete_field_value(index)

    def set_field_width(self, col: ColumnRef, width: int) -> None:
        """Set the display width of a column; stored cells are unchanged."""
        self._fields[self._resolve_column(col)].width = width

    def set_field_precision(self, col: ColumnRef, precision: int) -> None:
        self._fields[self._resolve_column(col)].precision = precision

    # -- Records ---------------------------------------------------------

    @property
    def record_count(self) -> int:
        return self._cell_reader.record_count(self)

    def get_record_count(self) -> int:
        return self.record_count

    def __len__(self) -> int:
        return self.record_count

    def __iter__(self) -> Iterator[TableRecord]:
        return iter(self.records)

    @property
    def records(self) -> list[TableRecord]:
        """Return the row records (the list is a copy; records are not)."""
        self._require_materialized("records")
        return list(self._records)

    def empty_record(self) -> TableRecord:
        """Return a record with a missing value for every field."""
        return TableRecord.empty(len(self._fields))

    def _coerce_record(self, record: TableRecord | Sequence[Any]) -> TableRecord:
        if not isinstance(record, TableRecord):
            record = TableRecord(record)
        if len(record) != len(self._fields):
            raise SchemaMismatchError(
                f"Record has {len(record)} values but table "
                f'"{self.identifier}" has {len(self._fields)} fields'
            )
        for i, value in enumerate(record):
            self._check_value(i, value)
        return record

    def _check_value(self, col: int, value: Any) -> None:
        f = self._fields[col]
        if not is_assignable(f, value):
            raise SchemaMismatchError(
                f'Value {value!r} cannot be stored in {f.type_name} column "{f.name}"'
            )

    def _require_materialized(self, action: str) -> None:
        if not self._cell_reader.has_materialized_rows:
            raise SchemaMismatchError(
                f'Table "{self.identifier}" reads cells from file; {action} needs rows in memory'
            )

    def add_record(self, record: TableRecord | Sequence[Any]) -> TableRecord:
        """Append a row.

        Raises:
            SchemaMismatchError: If the record length differs from the field count
                or a value is not assignable to its column.
        """
        self._require_materialized("adding records")
        record = self._coerce_record(record)
        self._records.append(record)
        return record

    def insert_record(self, index: int, record: TableRecord | Sequence[Any]) -> TableRecord:
        """Insert a row at index, padding with empty rows if index is past the end."""
        self._require_materialized("inserting records")
        record = self._coerce_record(record)
        if index >= len(self._records):
            while len(self._records) < index:
                self._records.append(self.empty_record())
            self._records.append(record)
        else:
            self._records.insert(max(index, 0), record)
        return record

    def delete_record(self, index: int) -> None:
        self._require_materialized("deleting records")
        if index < 0 or index >= len(self._records):
            raise NotFoundError(
                f"Row {index} out of range [0, {len(self._records)}) in table "
                f'"{self.identifier}"'
            )
        del self._records[index]

    def reorder_records(self, order: Sequence[int]) -> None:
        """Rearrange rows so that row i becomes the former row order[i]."""
        self._require_materialized("reordering records")
        if sorted(order) != list(range(len(self._records))):
            raise SchemaMismatchError("Row order must be a permutation of the row indices")
        self._records = [self._records[i] for i in order]

    def get_record(
        self, index: int | Sequence[ColumnRef], values: Sequence[Any] | None = None
    ) -> TableRecord | None:
        """Return the row at ``index``.

        Called as ``get_record(columns, values)`` it returns the first row
        matching ``values`` instead, or None; see ``get_records``.
        """
        if values is not None:
            return self.get_record_matching(index, values)  # type: ignore[arg-type]
        self._require_materialized("getting records")
        if index < 0 or index >= len(self._records):
            raise NotFoundError(
                f"Row {index} out of range [0, {len(self._records)}) in table "
                f'"{self.identifier}"'
            )
        return self._records[index]

    # -- Cells -----------------------------------------------------------

    def get_field_value(self, row: int, col: ColumnRef) -> Any:
        """Return the value of one cell.

        Raises:
            NotFoundError: If the row or column does not exist.
        """
        index = self._resolve_column(col)
        count = self.record_count
        if row < 0 or row >= count:
            raise NotFoundError(
                f'Row {row} out of range [0, {count}) in table "{self.identifier}"'
            )
        return self._cell_reader.read(self, row, index)

    def get_formatted_value(self, row: int, col: ColumnRef) -> str:
        """Return a cell formatted with its column's format."""
        index = self._resolve_column(col)
        return self._fields[index].format_value(self.get_field_value(row, index))

    def set_field_value(
        self, row: int, col: ColumnRef, value: Any, create_if_necessary: bool = False
    ) -> None:
        """Set one cell.

        Args:
            row: Row index.
            col: Column index or name.
            value: New value; must be assignable to the column type or None.
            create_if_necessary: Append empty rows up to ``row`` if it does not
                exist yet.
        """
        self._require_materialized("setting values")
        index = self._resolve_column(col)
        self._check_value(index, value)
        if row < 0:
            raise NotFoundError(f"Row {row} is negative")
        if row >= len(self._records):
            if not create_if_necessary:
                raise NotFoundError(
                    f"Row {row} out of range [0, {len(self._records)}) in table "
                    f'"{self.identifier}"'
                )
            while len(self._records) <= row:
                self._records.append(self.empty_record())
        self._records[row].set_field_value(index, value)

    def get_field_values(self, col: ColumnRef) -> list[Any]:
        """Return every value of one column, in row order."""
        index = self._resolve_column(col)
        return [self._cell_reader.read(self, row, index) for row in range(self.record_count)]

    def is_column_empty(self, col: ColumnRef) -> bool:
        """Return whether every cell in the column is None or a blank string."""
        for value in self.get_field_values(col):
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            return False
        return True

    def get_records(self, columns: Sequence[ColumnRef], values: Sequence[Any]) -> list[TableRecord]:
        """Return rows whose cells in ``columns`` equal ``values``.

        A missing cell matches only a None value. String columns compare
        case-insensitively; other columns compare by equality.
        """
        self._require_materialized("searching records")
        if len(columns) != len(values):
            raise SchemaMismatchError(
                f"{len(columns)} columns given but {len(values)} values to match"
            )
        indices = [self._resolve_column(c) for c in columns]
        matches = []
        for record in self._records:
            if all(
                cells_match(self._fields[i].value_type, record.get_field_value(i), v)
                for i, v in zip(indices, values)
            ):
                matches.append(record)
        return matches

    def get_record_matching(self, columns: Sequence[ColumnRef], values: Sequence[Any]) -> TableRecord | None:
        """Return the first row matching ``values`` or None."""
        matches = self.get_records(columns, values)
        return matches[0] if matches else None

    # -- Comments --------------------------------------------------------

    def add_comments(self, comments: Iterable[str]) -> None:
        self.comments.extend(comments)

    def set_comments(self, comments: Iterable[str]) -> None:
        self.comments = list(comments)

    # -- Copies and serialization ---------------------------------------

    def duplicate(self, clone_data: bool = True) -> DataTable:
        """Return a copy of this table with copied fields.

        Args:
            clone_data: Copy the rows too; otherwise the copy has no rows.
        """
        new_table = DataTable(
            [f.copy() for f in self._fields], identifier=self.identifier, logger=self.logger
        )
        new_table.comments = list(self.comments)
        if clone_data:
            for row in range(self.record_count):
                new_table._records.append(
                    TableRecord(self._cell_reader.read(self, row, c) for c in range(len(self._fields)))
                )
        return new_table

    @classmethod
    def read_delimited(
        cls,
        path: str | Path,
        options: DelimitedOptions | None = None,
        logger: TableLogger | None = None,
    ) -> DataTable:
        """Read a delimited text file; see ``data_tables.delimited``."""
        from data_tables.delimited import read_delimited

        return read_delimited(path, options, logger=logger)

    def write_delimited(self, path: str | Path, options: WriteOptions | None = None) -> None:
        """Write this table as delimited text; see ``data_tables.delimited``."""
        from data_tables.delimited import write_delimited

        write_delimited(self, path, options)

    def __repr__(self) -> str:
        return (
            f"DataTable(identifier={self.identifier!r}, fields={self.field_count}, "
            f"records={self.record_count})"
        )


def cells_match(value_type: ValueType, cell: Any, value: Any) -> bool:
    """Compare a cell to a lookup value the way record lookups and joins do."""
    if cell is None or value is None:
        return cell is None and value is None
    if value_type is ValueType.STRING or (isinstance(cell, str) and isinstance(value, str)):
        return str(cell).lower() == str(value).lower()
    return cell == value


def _generated_value(field_def: TableField, init_function: InitFunction, row: int) -> Any:
    number = row + 1 if init_function is InitFunction.ROW else row
    vt = field_def.value_type
    if vt.is_integer:
        return number
    if vt.is_floating:
        return float(number)
    if vt is ValueType.STRING:
        return str(number)
    logger.debug(
        "Row-number initialisation not supported for %s column %s", vt.value, field_def.name
    )
    return None
