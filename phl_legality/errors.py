"""Exception types raised across the catalog and legality layers."""

from __future__ import annotations

from typing import Optional


class PhlLegalityError(Exception):
    """Base class for all errors this package raises on purpose."""


class NetworkError(PhlLegalityError):
    """A fetch kept failing until its attempt ceiling was reached."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.last_error = last_error


class CatalogUnavailable(PhlLegalityError):
    """Card data could not be loaded or downloaded."""


class DecklistFormatError(PhlLegalityError, ValueError):
    """A decklist is structurally invalid (bad quantity, no commander, ...)."""
