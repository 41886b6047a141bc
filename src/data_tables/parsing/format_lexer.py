"""Lexer for fixed-width data format strings such as ``s10,3d5,x2,f12``."""

from __future__ import annotations

from dataclasses import dataclass

import ply.lex as lex

from data_tables.types import ValueType

# Format letter to column type; None marks filler that is skipped
FORMAT_TYPES: dict[str, ValueType | None] = {
    "s": ValueType.STRING,
    "a": ValueType.STRING,
    "d": ValueType.INT32,
    "i": ValueType.INT32,
    "f": ValueType.FLOAT64,
    "e": ValueType.FLOAT32,
    "x": None,
}


@dataclass
class FormatItem:
    """One field of a fixed-width record."""

    value_type: ValueType | None
    width: int

    @property
    def is_filler(self) -> bool:
        return self.value_type is None


class FormatLexer:
    """Lexer for tokenizing fixed-width format strings."""

    tokens = [
        "ITEM",
        "COMMA",
    ]

    t_COMMA = r","

    # Ignored characters
    t_ignore = " \t"

    def __init__(self) -> None:
        self.lexer: lex.LexToken = None  # type: ignore

    def t_ITEM(self, t: lex.LexToken) -> lex.LexToken:
        r"\d*[sSaAdDiIfFeExX]\d+"
        text = t.value
        letter_pos = next(i for i, ch in enumerate(text) if ch.isalpha())
        repeat = int(text[:letter_pos]) if letter_pos else 1
        letter = text[letter_pos].lower()
        width = int(text[letter_pos + 1:])
        t.value = (repeat, letter, width)
        return t

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos} in format")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()


def parse_format(data_format: str) -> list[FormatItem]:
    """Expand a format string into one ``FormatItem`` per field.

    Raises:
        SyntaxError: If the format string contains anything but format
            items separated by optional commas, or a zero width or repeat.
    """
    lexer = FormatLexer()
    lexer.build()
    lexer.input(data_format)
    items: list[FormatItem] = []
    while True:
        tok = lexer.token()
        if tok is None:
            break
        if tok.type != "ITEM":
            continue
        repeat, letter, width = tok.value
        if repeat < 1 or width < 1:
            raise SyntaxError(f'Repeat count and width must be positive in format item at {tok.lexpos}')
        items.extend(FormatItem(FORMAT_TYPES[letter], width) for _ in range(repeat))
    return items
