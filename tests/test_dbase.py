"""Tests for the dBase (DBF) reader and writer."""

from __future__ import annotations

import datetime as dt
import struct

import pytest

from data_tables.dbase import (
    DESCRIPTOR_FORMAT,
    HEADER_FORMAT,
    DbaseDataTable,
    read_dbase,
    write_dbase,
)
from data_tables.delimited import WriteOptions, write_delimited
from data_tables.errors import FormatError, IOFailure, SchemaMismatchError
from data_tables.table import DataTable
from data_tables.types import OverflowValue, TableField, ValueType


def _stations() -> DataTable:
    table = DataTable(
        [
            TableField(ValueType.STRING, "id", width=6),
            TableField(ValueType.INT32, "elev", width=5),
            TableField(ValueType.FLOAT64, "flow", width=8, precision=2),
        ],
        identifier="stations",
    )
    table.add_record(["A1", 1200, 3.25])
    table.add_record(["B22", None, 10.5])
    table.add_record(["C333", 75, None])
    return table


def _raw_dbf(fields, rows) -> bytes:
    """Build a DBF file by hand from (name, code, width, decimals) and row texts."""
    header_length = 32 + 32 * len(fields) + 1
    record_length = 1 + sum(f[2] for f in fields)
    out = bytearray(
        struct.pack(HEADER_FORMAT, 3, 120, 1, 2, len(rows), header_length, record_length, bytes(20))
    )
    for name, code, width, decimals in fields:
        out += struct.pack(
            DESCRIPTOR_FORMAT, name.encode().ljust(11, b"\x00"), code.encode(), bytes(4),
            width, decimals, bytes(14),
        )
    out += b"\x0d"
    for row in rows:
        out += b" " + row.encode("latin-1")
    out += b"\x1a"
    return bytes(out)


class TestWriteDbase:
    """Test the binary layout written for a table."""

    def test_header_layout(self, tmp_path):
        """Header fields, reserved flags and markers are written exactly."""
        path = write_dbase(_stations(), tmp_path / "stations", date=dt.date(2020, 5, 17))
        assert path.name == "stations.dbf"
        data = path.read_bytes()
        version, yy, mm, dd, count, header_length, record_length, _ = struct.unpack(
            HEADER_FORMAT, data[:32]
        )
        assert (version, yy, mm, dd) == (3, 120, 5, 17)
        assert count == 3
        assert header_length == 32 + 3 * 32 + 1
        assert record_length == 1 + 6 + 5 + 8
        assert data[14] == 0x01 and data[29] == 0x01
        assert data[header_length - 1] == 0x0D
        assert data[-1] == 0x1A
        assert len(data) == header_length + 3 * record_length + 1

    def test_descriptors(self, tmp_path):
        path = write_dbase(_stations(), tmp_path / "s.dbf")
        data = path.read_bytes()
        name, code, _, width, decimals, _ = struct.unpack(DESCRIPTOR_FORMAT, data[32 + 64:32 + 96])
        assert name.rstrip(b"\x00") == b"flow"
        assert code == b"N"
        assert (width, decimals) == (8, 2)

    def test_record_text(self, tmp_path):
        """Strings are left justified, numbers right justified; missing is blank."""
        path = write_dbase(_stations(), tmp_path / "s.dbf")
        data = path.read_bytes()
        start = 32 + 3 * 32 + 1
        assert data[start:start + 20] == b" A1     1200    3.25"
        second = start + 20
        assert data[second:second + 20] == b" B22           10.50"

    def test_unconstrained_width(self, tmp_path):
        """Columns with no width are written 32 wide."""
        table = DataTable([TableField(ValueType.STRING, "s", width=-1)])
        table.add_record(["x"])
        back = read_dbase(write_dbase(table, tmp_path / "w.dbf"))
        assert back.get_field("s").width == 32

    def test_long_values_truncated(self, tmp_path):
        table = DataTable([TableField(ValueType.STRING, "s", width=3)])
        table.add_record(["abcdef"])
        back = read_dbase(write_dbase(table, tmp_path / "t.dbf"))
        assert back.get_field_value(0, "s") == "abc"

    def test_unsupported_type(self, tmp_path):
        """Columns that cannot be stored fail before the file is created."""
        table = DataTable([TableField(ValueType.BOOLEAN, "flag")])
        with pytest.raises(FormatError):
            write_dbase(table, tmp_path / "bad.dbf")
        assert not (tmp_path / "bad.dbf").exists()

    def test_unwritable(self, tmp_path):
        with pytest.raises(IOFailure):
            write_dbase(_stations(), tmp_path / "missing" / "s.dbf")


class TestReadDbase:
    """Test reading DBF files eagerly and on the fly."""

    def test_round_trip(self, tmp_path):
        """Values survive a write and read; numeric fields read back as double."""
        path = write_dbase(_stations(), tmp_path / "s.dbf")
        table = read_dbase(path)
        assert table.identifier == "s.dbf"
        assert table.field_names == ["id", "elev", "flow"]
        assert table.field_types == [ValueType.STRING, ValueType.FLOAT64, ValueType.FLOAT64]
        assert table.get_field_values("id") == ["A1", "B22", "C333"]
        assert table.get_field_values("elev") == [1200, None, 75]
        assert table.get_field_values("flow") == [3.25, 10.5, None]
        assert table.get_field("flow").precision == 2
        assert table.header.date == dt.date.today()

    def test_layout_properties(self, tmp_path):
        table = read_dbase(write_dbase(_stations(), tmp_path / "s.dbf"))
        assert table.header_length == 129
        assert table.record_length == 20
        assert table.field_offsets == [0, 6, 11]

    def test_on_the_fly(self, tmp_path):
        """On-the-fly tables read cells from the open file."""
        path = write_dbase(_stations(), tmp_path / "s.dbf")
        with DbaseDataTable(path, on_the_fly=True) as table:
            assert not table.has_materialized_rows
            assert table.record_count == 3
            assert table.get_field_value(2, "id") == "C333"
            assert table.get_field_value(0, "flow") == 3.25
            assert table.get_field_values("elev") == [1200, None, 75]
            with pytest.raises(SchemaMismatchError):
                table.add_record(["D", 1.0, 2.0])

    def test_on_the_fly_duplicate(self, tmp_path):
        """Duplicating an on-the-fly table materializes the rows."""
        path = write_dbase(_stations(), tmp_path / "s.dbf")
        with read_dbase(path, on_the_fly=True) as table:
            copy = table.duplicate()
        assert copy.has_materialized_rows
        assert copy.get_field_values("id") == ["A1", "B22", "C333"]

    def test_untrimmed_strings(self, tmp_path):
        path = write_dbase(_stations(), tmp_path / "s.dbf")
        table = read_dbase(path, trim_strings=False)
        assert table.get_field_value(0, "id") == "A1    "

    def test_overflow_text(self, tmp_path):
        """Overflow markers read as zero-valued OverflowValue cells with a warning."""
        path = tmp_path / "o.dbf"
        path.write_bytes(_raw_dbf([("n", "N", 6, 0), ("i", "I", 4, 0)], ["******  12", "  42.5abcd"]))
        messages = []

        class Collect:
            def log(self, level, source_tag, message):
                messages.append(str(message))

        table = read_dbase(path, logger=Collect())
        value = table.get_field_value(0, "n")
        assert isinstance(value, OverflowValue)
        assert value == 0.0
        assert value.raw_text == "******"
        assert table.get_field_value(0, "i") == 12
        assert table.get_field_value(1, "n") == 42.5
        assert isinstance(table.get_field_value(1, "i"), OverflowValue)
        assert len(messages) == 2
        assert "******" in messages[0]

    def test_overflow_survives_rewrite(self, tmp_path):
        """Overflow cells are written back with their original text."""
        path = tmp_path / "o.dbf"
        path.write_bytes(_raw_dbf([("n", "N", 6, 0)], ["******", "  42.5"]))
        table = read_dbase(path)
        out = write_dbase(table, tmp_path / "copy.dbf")
        value = read_dbase(out).get_field_value(0, "n")
        assert isinstance(value, OverflowValue)
        assert value.raw_text == "******"
        csv = tmp_path / "copy.csv"
        write_delimited(table, csv, WriteOptions(write_column_names=False))
        assert csv.read_text(encoding="utf-8").splitlines()[0] == "******"

    def test_float_and_integer_codes(self, tmp_path):
        path = tmp_path / "c.dbf"
        path.write_bytes(_raw_dbf([("f", "F", 5, 1), ("i", "I", 3, 0)], ["  1.5  7"]))
        table = read_dbase(path)
        assert table.field_types == [ValueType.FLOAT32, ValueType.INT32]
        assert table.get_record(0).values == [1.5, 7]

    def test_unsupported_type_code(self, tmp_path):
        """Type codes other than C, N, F and I are rejected."""
        path = tmp_path / "d.dbf"
        path.write_bytes(_raw_dbf([("when", "D", 8, 0)], ["20200101"]))
        with pytest.raises(FormatError, match='"D"'):
            read_dbase(path)

    def test_truncated_file(self, tmp_path):
        path = tmp_path / "short.dbf"
        path.write_bytes(b"\x03\x00")
        with pytest.raises(FormatError):
            read_dbase(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(IOFailure):
            read_dbase(tmp_path / "none.dbf")
