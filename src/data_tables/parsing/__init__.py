"""Parsing of fixed-width data format strings."""

from data_tables.parsing.format_lexer import FormatItem, FormatLexer, parse_format

__all__ = [
    "FormatItem",
    "FormatLexer",
    "parse_format",
]
