from __future__ import annotations

from collections.abc import Iterable

"""Quote-aware line tokenizer and its inverse.

tokenize_line always yields ``delimiter_count + 1`` fields for a well-formed
line (a trailing delimiter produces a final empty field).
"""

__all__ = [
    "tokenize_line",
    "format_field",
    "format_line",
]


def tokenize_line(line: str, delimiter: str) -> list[str]:
    """Split one line into trimmed field values."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                current.append('"')  # エスケープされた引用符
                i += 2
                continue
            in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1
    fields.append("".join(current).strip())
    return fields


def format_field(value: object, delimiter: str) -> str:
    text = "" if value is None else str(value)
    if delimiter in text or '"' in text or "\n" in text or "\r" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def format_line(fields: Iterable[object], delimiter: str) -> str:
    """Join fields with ``delimiter``, quoting where tokenize_line needs it."""
    return delimiter.join(format_field(f, delimiter) for f in fields)
