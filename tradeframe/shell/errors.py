"""Errors raised by the framework controller."""

from __future__ import annotations


class FrameworkConfigurationError(RuntimeError):
    """The configured model set cannot run. Fatal at startup."""


class InvalidOperationError(RuntimeError):
    """Call not permitted in the controller's current mode or state. Nothing was mutated."""


class UnknownSymbolError(KeyError):
    """A symbol could not be resolved by the values provider or the calendar."""

    def __init__(self, symbol: str, source: str) -> None:
        super().__init__(symbol)
        self.symbol = symbol
        self.source = source

    def __str__(self) -> str:
        return f"Unknown symbol '{self.symbol}' in {self.source}"
