"""Data Tables - An in-memory, runtime-typed tabular data engine."""

from data_tables.dbase import DbaseDataTable, read_dbase, write_dbase
from data_tables.delimited import DelimitedOptions, WriteOptions, read_delimited, write_delimited
from data_tables.errors import (
    DataTableError,
    FormatError,
    IOFailure,
    NotFoundError,
    OperatorError,
    SchemaMismatchError,
)
from data_tables.fixed_format import read_fixed_format
from data_tables.log import DefaultTableLogger, Observer, TableLogger, default_logger
from data_tables.table import DataTable, TableRecord
from data_tables.types import InitFunction, OverflowValue, TableField, ValueType

__all__ = [
    # Main API
    "DataTable",
    "TableRecord",
    "TableField",
    "ValueType",
    "InitFunction",
    "OverflowValue",
    # File formats
    "DelimitedOptions",
    "WriteOptions",
    "read_delimited",
    "write_delimited",
    "DbaseDataTable",
    "read_dbase",
    "write_dbase",
    "read_fixed_format",
    # Logging
    "TableLogger",
    "Observer",
    "DefaultTableLogger",
    "default_logger",
    # Errors
    "DataTableError",
    "SchemaMismatchError",
    "NotFoundError",
    "FormatError",
    "IOFailure",
    "OperatorError",
]

__version__ = "0.1.0"
