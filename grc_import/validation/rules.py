from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..models.field_spec import SystemField

"""Stateless per-field normalization rules.

Each rule turns one trimmed raw string into a typed value and reports the
problems it found. Rules never raise for bad input; an empty raw value means
"not supplied". Identifier (``code``) handling needs per-file state and lives
in validator.py.
"""

__all__ = [
    "EMAIL_PATTERN",
    "DATE_PATTERN",
    "INTEGER_PATTERN",
    "TRUE_WORDS",
    "FALSE_WORDS",
    "FieldOutcome",
    "normalize_value",
    "parse_options",
]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
_OPTION_PATTERN = re.compile(r"^(.+?)\((\d+)\)$")

TRUE_WORDS = frozenset({"sim", "s", "yes", "y", "1", "true", "verdadeiro"})
FALSE_WORDS = frozenset({"nao", "não", "n", "no", "0", "false", "falso"})


@dataclass(frozen=True)
class FieldOutcome:
    value: Any
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


def _missing(spec: SystemField) -> FieldOutcome:
    if spec.required:
        return FieldOutcome(spec.default, errors=(f"{spec.key} is required",))
    return FieldOutcome(spec.default)


def _range_message(spec: SystemField) -> str:
    if spec.minimum is not None and spec.maximum is not None:
        return f"{spec.key} must be between {spec.minimum} and {spec.maximum}"
    if spec.minimum is not None:
        return f"{spec.key} must be an integer >= {spec.minimum}"
    if spec.maximum is not None:
        return f"{spec.key} must be an integer <= {spec.maximum}"
    return f"{spec.key} must be an integer"


def _text(spec: SystemField, text: str, row_number: int) -> FieldOutcome:
    return FieldOutcome(text)


def _enum(spec: SystemField, text: str, row_number: int) -> FieldOutcome:
    norm = text.lower()
    canonical = {v.lower(): v for v in spec.values}
    if norm in canonical:
        return FieldOutcome(canonical[norm])
    aliases = {k.lower(): v for k, v in spec.aliases.items()}
    if norm in aliases:
        return FieldOutcome(aliases[norm])

    if spec.on_invalid == "default":
        return FieldOutcome(
            spec.default,
            warnings=(f'{spec.key} "{text}" not recognized, using "{spec.default}"',),
        )
    if spec.on_invalid == "passthrough":
        return FieldOutcome(text, warnings=(f'{spec.key} "{text}" not recognized, kept as-is',))
    allowed = ", ".join(spec.values)
    return FieldOutcome(spec.default, errors=(f'{spec.key} "{text}" is not one of: {allowed}',))


def _integer(spec: SystemField, text: str, row_number: int) -> FieldOutcome:
    if not INTEGER_PATTERN.match(text):
        return FieldOutcome(spec.default, errors=(_range_message(spec),))
    number = int(text)
    if (spec.minimum is not None and number < spec.minimum) or (
        spec.maximum is not None and number > spec.maximum
    ):
        # 範囲外はクランプせずエラー
        return FieldOutcome(spec.default, errors=(_range_message(spec),))
    return FieldOutcome(number)


def _order(spec: SystemField, text: str, row_number: int) -> FieldOutcome:
    if INTEGER_PATTERN.match(text):
        return FieldOutcome(int(text))
    return FieldOutcome(
        row_number,
        warnings=(f'{spec.key} "{text}" is not an integer, using row position {row_number}',),
    )


def _email(spec: SystemField, text: str, row_number: int) -> FieldOutcome:
    if EMAIL_PATTERN.match(text):
        return FieldOutcome(text)
    return FieldOutcome(None, errors=(f"{spec.key} is not a valid email address",))


def _date(spec: SystemField, text: str, row_number: int) -> FieldOutcome:
    if DATE_PATTERN.match(text):
        return FieldOutcome(text)
    return FieldOutcome(None, errors=(f"{spec.key} must be a date in YYYY-MM-DD format",))


def _boolean(spec: SystemField, text: str, row_number: int) -> FieldOutcome:
    norm = text.lower()
    if norm in TRUE_WORDS:
        return FieldOutcome(True)
    if norm in FALSE_WORDS:
        return FieldOutcome(False)
    return FieldOutcome(spec.default, errors=(f'{spec.key} "{text}" is not a yes/no value',))


def parse_options(text: str) -> list[dict[str, Any]]:
    """Parse ``Label(score);Label(score)`` into option dicts.

    A part without ``(score)`` gets score 0.
    """
    options: list[dict[str, Any]] = []
    for idx, part in enumerate(text.split(";")):
        part = part.strip()
        if not part:
            continue
        m = _OPTION_PATTERN.match(part)
        if m:
            label, score = m.group(1).strip(), int(m.group(2))
        else:
            label, score = part, 0
        value = re.sub(r"\s+", "_", label.lower())[:30] or f"opt_{idx}"
        options.append({"value": value, "label": label, "score": score})
    return options


def _options(spec: SystemField, text: str, row_number: int) -> FieldOutcome:
    return FieldOutcome(parse_options(text))


_RULES: dict[str, Callable[[SystemField, str, int], FieldOutcome]] = {
    "text": _text,
    "enum": _enum,
    "integer": _integer,
    "order": _order,
    "email": _email,
    "date": _date,
    "boolean": _boolean,
    "options": _options,
}


def normalize_value(spec: SystemField, text: str, row_number: int) -> FieldOutcome:
    """Apply the rule for ``spec.kind`` to one trimmed raw value."""
    if not text:
        if spec.kind == "order":
            return FieldOutcome(row_number)
        if spec.kind == "options":
            errors = (f"{spec.key} is required",) if spec.required else ()
            return FieldOutcome([], errors=errors)
        return _missing(spec)
    try:
        rule = _RULES[spec.kind]
    except KeyError:
        raise ValueError(f"no normalization rule for kind '{spec.kind}'") from None
    return rule(spec, text, row_number)
