from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the GRC import tool.

These are the typed form of config/import.yml as produced by
grc_import/config/loader.py.
"""

__all__ = [
    "DELIMITER_CANDIDATES",
    "DelimiterPolicy",
    "DatabaseConfig",
    "ImportConfig",
]

DELIMITER_CANDIDATES: tuple[str, ...] = (",", ";", "\t", "|")


@dataclass(frozen=True)
class DelimiterPolicy:
    """Delimiter auto-detection policy.

    fallback: used when the sample has no non-blank line or no candidate occurs
        in the header line.
    tolerance: ``strict`` requires every sampled data line to carry exactly the
        header's delimiter count; ``tolerant`` accepts
        ``floor(header/2) <= count <= header + 1``.
    sample_lines: number of non-blank lines (header included) inspected.
    """
    fallback: str = ","
    tolerance: str = "tolerant"
    sample_lines: int = 10


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for the import tool."""
    delimiter: DelimiterPolicy = field(default_factory=DelimiterPolicy)
    match: str = "exact"  # ヘッダ自動マッピング方式 (exact | fuzzy)
    profiles_file: str | None = None  # 追加/上書きプロファイル YAML
    mapping_store: str | None = None  # 確定マッピング保存先 JSON
    page_size: int = 500  # commit 時の execute_values page_size
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
