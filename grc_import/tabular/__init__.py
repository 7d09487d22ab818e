"""Delimited-text parsing: delimiter detection, tokenizing, header mapping, readers."""

from .delimiter import count_delimiter, delimiter_name, detect_delimiter, split_lines, strip_bom
from .errors import (
    EmptyFileError,
    ImportFileError,
    MappingError,
    MissingRequiredFieldsError,
    UnsupportedFormatError,
)
from .mapper import auto_map, normalize_header, resolve_columns
from .tokenizer import format_line, tokenize_line

__all__ = [
    "count_delimiter",
    "delimiter_name",
    "detect_delimiter",
    "split_lines",
    "strip_bom",
    "EmptyFileError",
    "ImportFileError",
    "MappingError",
    "MissingRequiredFieldsError",
    "UnsupportedFormatError",
    "auto_map",
    "normalize_header",
    "resolve_columns",
    "format_line",
    "tokenize_line",
]
