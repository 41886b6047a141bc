"""Exceptions raised by the data_tables engine."""

from __future__ import annotations

from typing import Any


class DataTableError(Exception):
    """Base class for all table engine errors."""


class SchemaMismatchError(DataTableError):
    """A record or key column does not match the table layout."""


class NotFoundError(DataTableError, LookupError):
    """A named column or row index does not exist."""

    def __str__(self) -> str:
        # LookupError would otherwise repr() the message like KeyError does
        return str(self.args[0]) if self.args else ""


class FormatError(DataTableError, ValueError):
    """Text or binary content could not be decoded, or a type is unsupported."""


class IOFailure(DataTableError, OSError):
    """A table file could not be read or written."""


class OperatorError(DataTableError):
    """A bulk operator finished its pass but recorded problems.

    The rows that were processed successfully remain usable; the derived
    table (or row count) is available on ``result``.
    """

    def __init__(self, message: str, problems: list[str], result: Any = None) -> None:
        super().__init__(message)
        self.problems = problems
        self.result = result


def raise_problems(action: str, problems: list[str], result: Any = None) -> None:
    """Raise an OperatorError if any problems were collected.

    Args:
        action: Short description used in the message, e.g. "joining tables".
        problems: Problems recorded during the pass.
        result: Partial result to attach to the error.
    """
    if problems:
        raise OperatorError(
            f"There were {len(problems)} errors {action}.", problems, result
        )
