from __future__ import annotations

import logging
import re

from ..models.config_models import DELIMITER_CANDIDATES, DelimiterPolicy
from ..models.parsed_record import DelimiterChoice

"""Delimiter auto-detection.

Best-effort heuristic over the first non-blank lines of a file:
1. count each candidate in the header line outside of quoted spans
2. drop candidates that never occur in the header
3. keep candidates whose per-line counts stay within the policy tolerance
4. highest header count wins; without a consistent candidate the highest raw
   header count wins; nothing at all -> policy fallback
"""

__all__ = [
    "BOM",
    "DELIMITER_NAMES",
    "strip_bom",
    "split_lines",
    "count_delimiter",
    "delimiter_name",
    "detect_delimiter",
]

logger = logging.getLogger(__name__)

BOM = "\ufeff"
# UTF-8 BOM を latin-1/cp1252 として読んだ場合の文字列
_MISDECODED_BOM = "\u00ef\u00bb\u00bf"

DELIMITER_NAMES = {
    ",": "Comma",
    ";": "Semicolon",
    "\t": "Tab",
    "|": "Pipe",
}

_LINE_SPLIT = re.compile(r"\r?\n")


def strip_bom(text: str) -> str:
    """Remove a leading byte-order mark, if any."""
    if text and ord(text[0]) == 0xFEFF:
        return text[1:]
    if text.startswith(_MISDECODED_BOM):
        return text[len(_MISDECODED_BOM):]
    return text


def split_lines(text: str) -> list[str]:
    """Split on ``\\r?\\n``; blank lines are kept (callers filter them)."""
    return _LINE_SPLIT.split(text)


def count_delimiter(line: str, delimiter: str) -> int:
    """Count ``delimiter`` occurrences outside of double-quoted spans."""
    count = 0
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            count += 1
    return count


def delimiter_name(delimiter: str) -> str:
    return DELIMITER_NAMES.get(delimiter, delimiter)


def _consistent(count: int, header_count: int, tolerance: str) -> bool:
    if tolerance == "strict":
        return count == header_count
    return header_count // 2 <= count <= header_count + 1


def detect_delimiter(text: str, policy: DelimiterPolicy | None = None) -> DelimiterChoice:
    """Guess the column delimiter of ``text``."""
    policy = policy or DelimiterPolicy()
    lines = [ln for ln in split_lines(strip_bom(text)) if ln.strip()][: policy.sample_lines]
    if not lines:
        return DelimiterChoice(policy.fallback, delimiter_name(policy.fallback))

    header, data_lines = lines[0], lines[1:]
    header_counts = {d: count_delimiter(header, d) for d in DELIMITER_CANDIDATES}

    best: str | None = None
    best_count = 0
    for d in DELIMITER_CANDIDATES:
        hc = header_counts[d]
        if hc == 0:
            continue
        if hc > best_count and all(
            _consistent(count_delimiter(ln, d), hc, policy.tolerance) for ln in data_lines
        ):
            best, best_count = d, hc

    if best is None:
        # 一貫性のある候補なし -> ヘッダ出現数が最大の候補
        raw_best = max(DELIMITER_CANDIDATES, key=lambda d: header_counts[d])
        if header_counts[raw_best] > 0:
            best = raw_best
            logger.debug(
                "no delimiter consistent across %d sample lines; using %r by header count",
                len(lines), best,
            )
        else:
            best = policy.fallback
            logger.debug("no delimiter candidate in header; fallback %r", best)

    return DelimiterChoice(best, delimiter_name(best))
