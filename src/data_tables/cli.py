"""Command line tools for converting, sorting and comparing table files.

Usage:
    data-tables convert input.csv output.dbf            # delimited to DBF
    data-tables convert input.txt out.csv --format "s10,3d5,f12" --names id,a,b,c,x
    data-tables sort input.csv sorted.csv --by state --by population:desc
    data-tables compare old.csv new.csv --tolerance 0.001 --html diff.html
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from data_tables.dbase import read_dbase, write_dbase
from data_tables.delimited import DelimitedOptions, WriteOptions, read_delimited, write_delimited
from data_tables.errors import DataTableError
from data_tables.fixed_format import read_fixed_format
from data_tables.operators.compare import DataTableComparer
from data_tables.operators.sort import ASCENDING, DESCENDING, sort_table
from data_tables.table import DataTable


def _split_names(text: str | None) -> list[str] | None:
    if not text:
        return None
    return [name.strip() for name in text.split(",") if name.strip()]


def load_table(
    path: str | Path,
    data_format: str | None = None,
    names: Sequence[str] | None = None,
    delimiter: str = ",",
) -> DataTable:
    """Read a table, choosing the reader from the options and file suffix."""
    path = Path(path)
    if data_format:
        return read_fixed_format(path, data_format, names)
    if path.suffix.lower() == ".dbf":
        return read_dbase(path)
    return read_delimited(path, DelimitedOptions(delimiter=delimiter))


def save_table(table: DataTable, path: str | Path, delimiter: str = ",") -> Path:
    """Write a table as DBF for a ``.dbf`` suffix, otherwise as delimited text."""
    path = Path(path)
    if path.suffix.lower() == ".dbf":
        return write_dbase(table, path)
    write_delimited(table, path, WriteOptions(delimiter=delimiter))
    return path


def _parse_sort_key(text: str) -> tuple[str, int]:
    name, _, direction = text.partition(":")
    direction = direction.strip().lower()
    if direction in ("", "asc", "ascending"):
        return name.strip(), ASCENDING
    if direction in ("desc", "descending"):
        return name.strip(), DESCENDING
    raise argparse.ArgumentTypeError(f'Invalid sort direction "{direction}" (use asc or desc)')


def _add_input_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        dest="data_format",
        help='Read the input as fixed-width text with this layout, e.g. "s10,3d5,x2,f12"',
    )
    parser.add_argument("--names", help="Comma-separated column names for fixed-width input")
    parser.add_argument("-d", "--delimiter", default=",", help="Delimiter for delimited files (default: ,)")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="data-tables",
        description="Convert, sort and compare delimited, DBF and fixed-width table files",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress messages")
    commands = parser.add_subparsers(dest="command", required=True)

    convert = commands.add_parser("convert", help="Convert a table file to another format")
    convert.add_argument("input", help="Input file (.dbf, delimited, or fixed-width with --format)")
    convert.add_argument("output", help="Output file (.dbf or delimited)")
    _add_input_options(convert)

    sort = commands.add_parser("sort", help="Sort the rows of a table file")
    sort.add_argument("input", help="Input file")
    sort.add_argument("output", help="Output file")
    sort.add_argument(
        "--by",
        action="append",
        required=True,
        type=_parse_sort_key,
        metavar="COLUMN[:asc|desc]",
        help="Sort column, most significant first; may be repeated",
    )
    _add_input_options(sort)

    compare = commands.add_parser("compare", help="Compare two table files cell by cell")
    compare.add_argument("file1", help="First file")
    compare.add_argument("file2", help="Second file")
    compare.add_argument("--columns", help="Comma-separated columns to compare (default: all)")
    compare.add_argument("--exclude", help="Comma-separated columns to skip")
    compare.add_argument("--precision", type=int, help="Decimals used to compare floating values")
    compare.add_argument("--tolerance", type=float, help="Floating differences below this are ignored")
    compare.add_argument("--html", help="Write an HTML difference report to this file")
    compare.add_argument("-o", "--output", help="Write the comparison table to this file")
    compare.add_argument("-d", "--delimiter", default=",", help="Delimiter for delimited files (default: ,)")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "convert":
            table = load_table(args.input, args.data_format, _split_names(args.names), args.delimiter)
            out_path = save_table(table, args.output, args.delimiter)
            print(f"Wrote {table.record_count} rows to {out_path}", file=sys.stderr)
        elif args.command == "sort":
            table = load_table(args.input, args.data_format, _split_names(args.names), args.delimiter)
            columns = [name for name, _ in args.by]
            orders = [order for _, order in args.by]
            sort_table(table, columns, orders)
            out_path = save_table(table, args.output, args.delimiter)
            print(f"Wrote {table.record_count} sorted rows to {out_path}", file=sys.stderr)
        else:
            table1 = load_table(args.file1, delimiter=args.delimiter)
            table2 = load_table(args.file2, delimiter=args.delimiter)
            comparer = DataTableComparer(
                table1,
                table2,
                compare_columns1=_split_names(args.columns),
                exclude_columns1=_split_names(args.exclude),
                precision=args.precision,
                tolerance=args.tolerance,
            )
            comparison = comparer.compare()
            if args.output:
                save_table(comparison, args.output, args.delimiter)
            if args.html:
                comparer.write_html(args.html)
            print(f"{comparer.difference_count} differences")
    except (DataTableError, SyntaxError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
