"""Column value types and column descriptors for the data_tables engine."""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from data_tables.errors import FormatError


class ValueType(Enum):
    """Value types a table column can declare."""

    INT32 = "int"
    INT16 = "short"
    INT64 = "long"
    FLOAT32 = "float"
    FLOAT64 = "double"
    STRING = "string"
    DATE = "date"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    ARRAY = "array"

    @property
    def is_integer(self) -> bool:
        """Return whether cells of this type are Python ints."""
        return self in (ValueType.INT16, ValueType.INT32, ValueType.INT64)

    @property
    def is_floating(self) -> bool:
        """Return whether cells of this type are Python floats."""
        return self in (ValueType.FLOAT32, ValueType.FLOAT64)

    @property
    def is_numeric(self) -> bool:
        return self.is_integer or self.is_floating

    @property
    def is_temporal(self) -> bool:
        return self in (ValueType.DATE, ValueType.DATETIME)


# Accepted spellings when a type is given by name, e.g. in a column override
VALUE_TYPE_NAMES: dict[str, ValueType] = {
    "int": ValueType.INT32,
    "integer": ValueType.INT32,
    "int32": ValueType.INT32,
    "short": ValueType.INT16,
    "int16": ValueType.INT16,
    "long": ValueType.INT64,
    "int64": ValueType.INT64,
    "float": ValueType.FLOAT32,
    "float32": ValueType.FLOAT32,
    "double": ValueType.FLOAT64,
    "float64": ValueType.FLOAT64,
    "string": ValueType.STRING,
    "str": ValueType.STRING,
    "text": ValueType.STRING,
    # Dates are always handled with full date/time precision when named
    "date": ValueType.DATETIME,
    "datetime": ValueType.DATETIME,
    "boolean": ValueType.BOOLEAN,
    "bool": ValueType.BOOLEAN,
}


def lookup_value_type(name: str) -> ValueType:
    """Return the value type for a type name such as "int" or "double".

    Array types are written ``array<element>``; the element type is
    available separately through ``parse_array_type``.

    Raises:
        FormatError: If the name is not recognised.
    """
    key = name.strip().lower()
    if key.startswith("array"):
        return ValueType.ARRAY
    try:
        return VALUE_TYPE_NAMES[key]
    except KeyError:
        raise FormatError(f'Unknown column type name "{name}"') from None


def parse_array_type(name: str) -> ValueType:
    """Return the element type of an ``array<element>`` type name."""
    key = name.strip().lower()
    if not (key.startswith("array<") and key.endswith(">")):
        raise FormatError(f'"{name}" is not an array type name')
    element = lookup_value_type(key[len("array<"):-1])
    if element is ValueType.ARRAY:
        raise FormatError("Nested array types are not supported")
    return element


class InitFunction(Enum):
    """Generators for back-filling a newly added column."""

    ROW = "row"  # 1-based row number
    ROW0 = "row0"  # 0-based row number


@dataclass
class TableField:
    """Describes one table column.

    Width and precision drive the printf-style format used both for display
    and for serialization. A width of -1 means unconstrained.
    """

    value_type: ValueType = ValueType.STRING
    name: str = ""
    width: int = 10
    precision: int = 0
    description: str = ""
    units: str = ""
    element_type: ValueType | None = None

    def __post_init__(self) -> None:
        if self.value_type is ValueType.ARRAY and self.element_type is None:
            raise FormatError(f'Array column "{self.name}" needs an element type')

    @classmethod
    def array_of(cls, element_type: ValueType, name: str, **kwargs: Any) -> TableField:
        """Create an array column whose cells are lists of element_type."""
        return cls(ValueType.ARRAY, name, element_type=element_type, **kwargs)

    def copy(self) -> TableField:
        return TableField(
            value_type=self.value_type,
            name=self.name,
            width=self.width,
            precision=self.precision,
            description=self.description,
            units=self.units,
            element_type=self.element_type,
        )

    @property
    def type_name(self) -> str:
        if self.value_type is ValueType.ARRAY:
            return f"array<{self.element_type.value}>"  # type: ignore[union-attr]
        return self.value_type.value

    @property
    def format(self) -> str:
        """Return the printf-style format for cells in this column."""
        return field_format(self.value_type, self.width, self.precision)

    def format_value(self, value: Any) -> str:
        """Format one cell using this column's format.

        None formats as an empty string. Dates and booleans, which have no
        printf conversion, use their ISO or text form.
        """
        if value is None:
            return ""
        if self.value_type is ValueType.ARRAY:
            element = TableField(self.element_type, width=-1, precision=self.precision)  # type: ignore[arg-type]
            return "[" + ",".join(element.format_value(v).strip() for v in value) + "]"
        if self.value_type.is_temporal:
            return format_temporal(value)
        if self.value_type is ValueType.BOOLEAN:
            return "true" if value else "false"
        if self.value_type.is_floating and isinstance(value, float) and math.isnan(value):
            return "NaN"
        try:
            return self.format % (value,)
        except (TypeError, ValueError):
            # Cell holds a value of another type; fall back to its text
            return str(value)


def field_format(value_type: ValueType, width: int, precision: int) -> str:
    """Return the printf-style format for a column type, width and precision."""
    if value_type is ValueType.STRING:
        if width < 0:
            return "%-s"
        return f"%-{width}.{width}s"
    if value_type.is_floating:
        if width < 0 and precision < 0:
            return "%f"
        if width < 0:
            return f"%.{precision}f"
        return f"%{width}.{max(precision, 0)}f"
    if width < 0:
        return "%d"
    return f"%{width}d"


# Text layouts accepted when converting text to dates, tried in order
_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H",
    "%Y-%m-%d",
    "%Y-%m",
    "%Y",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%m/%Y",
)


def parse_datetime(text: str) -> dt.datetime:
    """Parse date/time text into a datetime.

    Raises:
        FormatError: If the text matches no supported layout.
    """
    text = text.strip()
    try:
        return dt.datetime.fromisoformat(text)
    except ValueError:
        pass
    for layout in _DATETIME_FORMATS:
        try:
            return dt.datetime.strptime(text, layout)
        except ValueError:
            continue
    raise FormatError(f'Unable to parse "{text}" as a date/time')


def parse_date(text: str) -> dt.date:
    """Parse date text into a date (time of day is dropped)."""
    return parse_datetime(text).date()


def format_temporal(value: Any) -> str:
    if isinstance(value, dt.datetime):
        if value.hour == value.minute == value.second == value.microsecond == 0:
            return value.strftime("%Y-%m-%d")
        if value.second == 0 and value.microsecond == 0:
            return value.strftime("%Y-%m-%d %H:%M")
        return value.isoformat(sep=" ")
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)


def is_integer_text(text: str) -> bool:
    """Return whether text parses as a (possibly signed) integer."""
    text = text.strip()
    if not text or "_" in text:
        return False
    try:
        int(text)
    except ValueError:
        return False
    return True


def is_float_text(text: str) -> bool:
    """Return whether text parses as a finite or special floating value."""
    text = text.strip()
    if not text or "_" in text:
        return False
    try:
        float(text)
    except ValueError:
        return False
    return True


def convert_text(value_type: ValueType, text: str | None) -> Any:
    """Convert text to a cell value for the given column type.

    Blank text and the literal ``NULL`` become None for non-string types.

    Raises:
        FormatError: If the text cannot be converted.
    """
    if text is None:
        return None
    if value_type is ValueType.STRING:
        return text
    stripped = text.strip()
    if not stripped or stripped.upper() == "NULL":
        return None
    try:
        if value_type.is_integer:
            return int(stripped)
        if value_type.is_floating:
            return float(stripped)
    except ValueError:
        raise FormatError(f'Unable to convert "{text}" to {value_type.value}') from None
    if value_type is ValueType.DATETIME:
        return parse_datetime(stripped.replace('"', ""))
    if value_type is ValueType.DATE:
        return parse_date(stripped.replace('"', ""))
    if value_type is ValueType.BOOLEAN:
        lowered = stripped.lower()
        if lowered in ("true", "t", "yes", "y", "1"):
            return True
        if lowered in ("false", "f", "no", "n", "0"):
            return False
        raise FormatError(f'Unable to convert "{text}" to boolean')
    raise FormatError(f"Cannot convert text to {value_type.value} cells")


def is_assignable(field_def: TableField, value: Any) -> bool:
    """Return whether value may be stored in a cell of the given column."""
    if value is None:
        return True
    vt = field_def.value_type
    if vt.is_integer:
        # NaN is the numeric missing marker used by arithmetic operators
        return (
            (isinstance(value, int) and not isinstance(value, bool))
            or isinstance(value, OverflowValue)
            or (isinstance(value, float) and math.isnan(value))
        )
    if vt.is_floating:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if vt is ValueType.STRING:
        return isinstance(value, str)
    if vt is ValueType.DATETIME:
        return isinstance(value, dt.date)
    if vt is ValueType.DATE:
        return isinstance(value, dt.date)
    if vt is ValueType.BOOLEAN:
        return isinstance(value, bool)
    if vt is ValueType.ARRAY:
        if not isinstance(value, (list, tuple)):
            return False
        element = TableField(field_def.element_type)  # type: ignore[arg-type]
        return all(is_assignable(element, v) for v in value)
    return False


class OverflowValue(float):
    """Numeric cell whose source text could not be parsed.

    Compares equal to 0.0 so arithmetic keeps working, but keeps the raw
    text (for example ``"******"`` from an overflowing dBase field) so the
    substitution can be detected with ``isinstance``.
    """

    raw_text: str

    def __new__(cls, raw_text: str) -> OverflowValue:
        value = super().__new__(cls, 0.0)
        value.raw_text = raw_text
        return value

    def __repr__(self) -> str:
        return f"OverflowValue({self.raw_text!r})"

    def __str__(self) -> str:
        return self.raw_text
