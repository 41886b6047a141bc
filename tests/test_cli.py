"""Tests for the data-tables command line tool."""

from __future__ import annotations

import pytest

from data_tables.cli import load_table, main
from data_tables.dbase import read_dbase
from data_tables.delimited import read_delimited


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "flows.csv"
    path.write_text('"id","flow"\n"B",2.5\n"A",1.5\n"C",3.25\n', encoding="utf-8")
    return path


class TestConvert:
    """Test converting between file formats."""

    def test_csv_to_dbf(self, csv_file, tmp_path, capsys):
        out = tmp_path / "flows.dbf"
        main(["convert", str(csv_file), str(out)])
        table = read_dbase(out)
        assert table.get_field_values("id") == ["B", "A", "C"]
        assert table.get_field_values("flow") == [2.5, 1.5, 3.25]
        assert "Wrote 3 rows" in capsys.readouterr().err

    def test_fixed_width_to_csv(self, tmp_path):
        src = tmp_path / "in.txt"
        src.write_text("ab  1\ncd  2\n", encoding="utf-8")
        out = tmp_path / "out.csv"
        main(["convert", str(src), str(out), "--format", "s2,d3", "--names", "code,n"])
        table = read_delimited(out)
        assert table.field_names == ["code", "n"]
        assert table.get_field_values("n") == [1, 2]

    def test_missing_input(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["convert", str(tmp_path / "none.csv"), str(tmp_path / "out.csv")])
        assert excinfo.value.code == 1
        assert "Error:" in capsys.readouterr().err


class TestSort:
    """Test sorting a file."""

    def test_sort_descending(self, csv_file, tmp_path):
        out = tmp_path / "sorted.csv"
        main(["sort", str(csv_file), str(out), "--by", "flow:desc"])
        assert read_delimited(out).get_field_values("id") == ["C", "B", "A"]

    def test_bad_direction(self, csv_file, tmp_path):
        with pytest.raises(SystemExit):
            main(["sort", str(csv_file), str(tmp_path / "x.csv"), "--by", "flow:sideways"])

    def test_unknown_column(self, csv_file, tmp_path, capsys):
        with pytest.raises(SystemExit):
            main(["sort", str(csv_file), str(tmp_path / "x.csv"), "--by", "depth"])
        assert "depth" in capsys.readouterr().err


class TestCompare:
    """Test comparing two files."""

    def test_compare(self, csv_file, tmp_path, capsys):
        other = tmp_path / "other.csv"
        other.write_text('"id","flow"\n"B",2.5\n"A",1.75\n"C",3.25\n', encoding="utf-8")
        report = tmp_path / "diff.html"
        main(["compare", str(csv_file), str(other), "--html", str(report)])
        assert capsys.readouterr().out.strip() == "1 differences"
        assert '<td class="diff">1.50 / 1.75</td>' in report.read_text(encoding="utf-8")

    def test_negative_precision(self, csv_file, capsys):
        """Bad comparison settings are reported as errors, not tracebacks."""
        with pytest.raises(SystemExit) as excinfo:
            main(["compare", str(csv_file), str(csv_file), "--precision", "-1"])
        assert excinfo.value.code == 1
        assert "Precision (-1)" in capsys.readouterr().err

    def test_load_table_by_suffix(self, csv_file):
        assert load_table(csv_file).field_names == ["id", "flow"]
