from __future__ import annotations

"""File-level import errors.

These abort a whole parse and are surfaced to the user as one message.
Row-level problems never raise; they are collected in ParsedRecord.errors.
"""

__all__ = [
    "ImportFileError",
    "EmptyFileError",
    "MappingError",
    "MissingRequiredFieldsError",
    "UnsupportedFormatError",
]


class ImportFileError(Exception):
    """Base class for errors that abort the parse of a whole file."""


class EmptyFileError(ImportFileError):
    """Raised when a file lacks a header line plus at least one data line."""


class MappingError(ImportFileError):
    """Raised when an explicit header mapping is inconsistent with the profile."""


class MissingRequiredFieldsError(ImportFileError):
    """Raised when a required canonical field has no header mapped to it."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        names = ", ".join(self.missing)
        super().__init__(f"required fields not mapped: {names}")


class UnsupportedFormatError(ImportFileError):
    """Raised for file types the reader does not handle."""
