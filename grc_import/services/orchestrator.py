from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path

from ..models.config_models import DelimiterPolicy
from ..models.field_spec import EntityProfile
from ..models.parsed_record import DelimiterChoice, HeaderInfo, ImportResult, ParsedRecord
from ..models.session_state import ImportState
from ..tabular.delimiter import delimiter_name, detect_delimiter, split_lines, strip_bom
from ..tabular.errors import EmptyFileError, UnsupportedFormatError
from ..tabular.mapper import auto_map, resolve_columns
from ..tabular.reader import EXCEL_SUFFIXES, TEXT_SUFFIXES, read_excel_rows, read_text
from ..tabular.tokenizer import tokenize_line
from ..validation.validator import RowValidator

"""Import orchestration.

Two phases, both free of side effects:
1. extract_headers: delimiter + header row, used to build a mapping UI
2. parse_content / parse_rows: detector -> tokenizer -> mapper -> validator
   over the whole file, returning an ImportResult ("preview")

Writing valid records somewhere is the caller's job (services/commit.py).
ImportSession wraps the pure functions with idle/loading/success/error state
and the per-session delimiter cache.
"""

__all__ = [
    "extract_headers",
    "parse_content",
    "parse_rows",
    "ImportSession",
]

logger = logging.getLogger(__name__)


def _non_blank_lines(content: str) -> list[str]:
    return [ln for ln in split_lines(strip_bom(content)) if ln.strip()]


def _resolve_delimiter(
    content: str, delimiter: str | None, policy: DelimiterPolicy | None
) -> DelimiterChoice:
    if delimiter:
        return DelimiterChoice(delimiter, delimiter_name(delimiter))
    return detect_delimiter(content, policy)


def extract_headers(
    content: str,
    policy: DelimiterPolicy | None = None,
    profile: EntityProfile | None = None,
    delimiter: str | None = None,
    match: str = "exact",
) -> HeaderInfo:
    """Phase 1: detect the delimiter and tokenize the header line.

    With ``profile`` the synonym-based mapping suggestion is included.
    """
    choice = _resolve_delimiter(content, delimiter, policy)
    lines = _non_blank_lines(content)
    headers = tokenize_line(lines[0], choice.delimiter) if lines else []
    suggested = auto_map(headers, profile, match) if profile is not None else {}
    return HeaderInfo(
        headers=headers,
        delimiter=choice.delimiter,
        delimiter_name=choice.name,
        suggested_mapping=suggested,
    )


def parse_rows(
    header: Sequence[str],
    rows: Iterable[Sequence[str]],
    profile: EntityProfile,
    mapping: Mapping[str, str | None] | None = None,
    existing_keys: Iterable[str] | None = None,
    delimiter: DelimiterChoice | None = None,
    match: str = "exact",
) -> ImportResult:
    """Map and validate pre-tokenized rows.

    Row numbers count data rows only, starting at 1; callers drop blank rows
    beforehand so that numbering follows the rows the user sees.
    """
    columns = resolve_columns(header, profile, mapping, match)
    validator = RowValidator(profile, existing_keys)
    records: list[ParsedRecord] = []
    for row_number, values in enumerate(rows, start=1):
        raw = {
            key: (values[idx].strip() if idx < len(values) else "")
            for idx, key in columns.items()
        }
        records.append(validator.validate(raw, row_number))
    result = ImportResult(
        entity=profile.name,
        records=tuple(records),
        delimiter=delimiter,
        columns=dict(columns),
        headers=tuple(header),
    )
    logger.debug(
        f"{profile.name}: parsed total={result.total_count} "
        f"valid={result.valid_count} invalid={result.invalid_count}"
    )
    return result


def parse_content(
    content: str,
    profile: EntityProfile,
    mapping: Mapping[str, str | None] | None = None,
    delimiter: str | None = None,
    existing_keys: Iterable[str] | None = None,
    policy: DelimiterPolicy | None = None,
    match: str = "exact",
) -> ImportResult:
    """Phase 2 ("preview"): parse a whole delimited text without persisting.

    Raises:
        EmptyFileError: fewer than 2 non-blank lines
        MissingRequiredFieldsError: a required field has no mapped header
        MappingError: explicit mapping names unknown fields or maps one twice
    """
    lines = _non_blank_lines(content)
    if len(lines) < 2:
        raise EmptyFileError("file must contain a header line and at least one data line")
    choice = _resolve_delimiter(content, delimiter, policy)
    header = tokenize_line(lines[0], choice.delimiter)
    rows = (tokenize_line(ln, choice.delimiter) for ln in lines[1:])
    return parse_rows(header, rows, profile, mapping, existing_keys, choice, match)


class ImportSession:
    """Stateful wrapper used by an interactive caller (mapping UI, CLI).

    State: idle -> loading -> success(result) | error(message); reset() goes
    back to idle. The detected delimiter is cached per content so that
    extract_headers and the following parse agree; an explicit delimiter
    always wins over the cache.
    """

    def __init__(
        self,
        profile: EntityProfile,
        policy: DelimiterPolicy | None = None,
        match: str = "exact",
    ) -> None:
        self.profile = profile
        self.policy = policy or DelimiterPolicy()
        self.match = match
        self.state = ImportState.IDLE
        self.result: ImportResult | None = None
        self.error: str | None = None
        self._cached: tuple[str, DelimiterChoice] | None = None

    @property
    def is_loading(self) -> bool:
        return self.state is ImportState.LOADING

    @property
    def detected_delimiter(self) -> DelimiterChoice | None:
        return self._cached[1] if self._cached else None

    def _delimiter_for(self, content: str) -> DelimiterChoice:
        if self._cached is not None and self._cached[0] == content:
            return self._cached[1]
        choice = detect_delimiter(content, self.policy)
        self._cached = (content, choice)
        return choice

    def extract_headers(self, content: str) -> HeaderInfo:
        choice = self._delimiter_for(content)
        return extract_headers(
            content, self.policy, self.profile, delimiter=choice.delimiter, match=self.match
        )

    def _run(self, parse: Callable[[], ImportResult]) -> ImportResult:
        self.state = ImportState.LOADING
        self.result = None
        self.error = None
        try:
            result = parse()
        except Exception as e:
            # 失敗しても LOADING のまま残さない
            self.state = ImportState.ERROR
            self.error = str(e) or e.__class__.__name__
            raise
        self.result = result
        self.state = ImportState.SUCCESS
        return result

    def parse(
        self,
        content: str,
        mapping: Mapping[str, str | None] | None = None,
        delimiter: str | None = None,
        existing_keys: Iterable[str] | None = None,
    ) -> ImportResult:
        """Parse ``content``; the previous result is replaced, never mutated."""

        def run() -> ImportResult:
            resolved = delimiter or self._delimiter_for(content).delimiter
            return parse_content(
                content,
                self.profile,
                mapping=mapping,
                delimiter=resolved,
                existing_keys=existing_keys,
                policy=self.policy,
                match=self.match,
            )

        return self._run(run)

    def parse_file(
        self,
        path: Path,
        mapping: Mapping[str, str | None] | None = None,
        delimiter: str | None = None,
        existing_keys: Iterable[str] | None = None,
    ) -> ImportResult:
        """Read ``path`` (.csv/.txt/.xlsx) and parse it."""
        suffix = path.suffix.lower()
        if suffix in EXCEL_SUFFIXES:

            def run() -> ImportResult:
                header, rows = read_excel_rows(path)
                return parse_rows(
                    header, rows, self.profile, mapping, existing_keys, match=self.match
                )

            return self._run(run)
        if suffix not in TEXT_SUFFIXES:

            def unsupported() -> ImportResult:
                raise UnsupportedFormatError(f"unsupported file type: {path.name}")

            return self._run(unsupported)
        return self.parse(read_text(path), mapping, delimiter, existing_keys)

    def reset(self) -> None:
        self.state = ImportState.IDLE
        self.result = None
        self.error = None
        self._cached = None
