"""Leveled logging collaborator used by tables and operators.

The engine never decides where messages go. Each table holds a
``TableLogger`` handle (passed in at construction or defaulted) and calls
``log(level, source_tag, message)`` for non-fatal anomalies. The default
implementation forwards to the standard ``logging`` module and notifies any
observers registered on it.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable


@runtime_checkable
class TableLogger(Protocol):
    """Interface the engine uses to report diagnostics."""

    def log(self, level: int, source_tag: str, message: str | BaseException) -> None:
        ...


@runtime_checkable
class Observer(Protocol):
    """Receives every message passed through a DefaultTableLogger."""

    def observe(self, level: int, routine: str, message: str) -> None:
        ...


class DefaultTableLogger:
    """Forward engine messages to a ``logging.Logger`` and to observers."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("data_tables")
        self._observers: list[Observer] = []

    def add_observer(self, observer: Observer) -> None:
        """Register an observer by reference."""
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: Observer) -> None:
        """Unregister an observer; unknown observers are ignored."""
        if observer in self._observers:
            self._observers.remove(observer)

    @property
    def observers(self) -> list[Observer]:
        return list(self._observers)

    def log(self, level: int, source_tag: str, message: str | BaseException) -> None:
        if isinstance(message, BaseException):
            text = f"{type(message).__name__}: {message}"
            self.logger.log(level, "%s: %s", source_tag, text, exc_info=message)
        else:
            text = message
            self.logger.log(level, "%s: %s", source_tag, text)
        for observer in list(self._observers):
            observer.observe(level, source_tag, text)


_default: DefaultTableLogger | None = None


def default_logger() -> DefaultTableLogger:
    """Return the process-wide default logger, creating it on first use."""
    global _default
    if _default is None:
        _default = DefaultTableLogger()
    return _default
