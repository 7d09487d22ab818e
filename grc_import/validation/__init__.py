"""Row normalization and validation."""

from .rules import FieldOutcome, normalize_value, parse_options
from .validator import RowValidator

__all__ = [
    "FieldOutcome",
    "RowValidator",
    "normalize_value",
    "parse_options",
]
