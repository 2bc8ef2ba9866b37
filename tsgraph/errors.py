"""Exception types raised by tsgraph."""

from __future__ import annotations


class TsGraphError(Exception):
    """Base class for all tsgraph errors."""


class ParseError(TsGraphError):
    """A single source file could not be parsed by its dialect front-end."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class IndexStoreError(TsGraphError):
    """The persistent code-intelligence store failed an operation."""
