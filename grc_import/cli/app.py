from __future__ import annotations

import argparse
import os
import sys
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import psycopg2
import yaml
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..config.mapping_store import MappingStore
from ..config.profiles import get_profile, load_profiles
from ..db.batch_insert import BatchInsertError, PostgresRecordStore
from ..logging.error_log import COMMIT_FAILED, ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import ImportConfig
from ..models.field_spec import EntityProfile
from ..models.processing_result import BatchStatsAccumulator, FileStat, RunResult
from ..services.backup import parse_backup_file
from ..services.commit import (
    CommitError,
    InMemoryRecordStore,
    RecordStore,
    commit_result,
    existing_keys_for,
)
from ..services.orchestrator import ImportSession, extract_headers
from ..services.progress import ProgressTracker
from ..services.summary import render_summary_line, result_frame
from ..services.template import generate_backup_csv, generate_backup_json, generate_template
from ..tabular.errors import ImportFileError
from ..tabular.mapper import auto_map
from ..tabular.reader import EXCEL_SUFFIXES, read_excel_rows, read_text

"""CLI entrypoint.

Subcommands:
- headers  FILE         detected delimiter, header row and suggested mapping
- preview  FILE...      parse + validate, print a preview table (no writes)
- commit   FILE...      parse + validate, insert the valid rows
- backup   FILE         validate a JSON / sectioned CSV backup (--commit to insert)
- template              print or write an import template

Exit codes: 0 every file fully valid (and committed), 2 some rows invalid or
some files failed, 1 fatal (config, profile, mapping file, arguments).
"""

__all__ = [
    "EXIT_SUCCESS_ALL",
    "EXIT_PARTIAL_FAILURE",
    "EXIT_FATAL",
    "main",
]

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

_DELIMITER_ALIASES = {
    "comma": ",",
    "semicolon": ";",
    "tab": "\t",
    "\\t": "\t",
    "pipe": "|",
}


class CliError(Exception):
    pass


def _delimiter_arg(value: str) -> str:
    resolved = _DELIMITER_ALIASES.get(value.lower(), value)
    if len(resolved) != 1:
        raise argparse.ArgumentTypeError(f"delimiter must be one character or a name: {value!r}")
    return resolved


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _dsn(cfg: ImportConfig) -> str:
    """Resolve the connection string.

    優先順位: DATABASE_URL / PGDSN > config の dsn > PG* 個別変数 > config の個別値
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _record_store(cfg: ImportConfig, stats: BatchStatsAccumulator) -> Iterator[tuple[RecordStore, str]]:
    """Yield ``(store, mode)``; mode is ``live`` or ``mock``.

    DISABLE_DB_CONNECT=1 or a failed connection gives the in-memory store.
    """
    logger = setup_logging()
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        yield InMemoryRecordStore(), "mock"
        return
    try:
        conn = psycopg2.connect(_dsn(cfg))
    except psycopg2.Error as e:
        logger.info(f"DB connection failed -> fallback to mock mode: {e}")
        yield InMemoryRecordStore(), "mock"
        return
    conn.autocommit = False
    try:
        yield (
            PostgresRecordStore(
                conn,
                page_size=cfg.page_size,
                metrics_callback=lambda m: stats.add_batch_time(m.elapsed_seconds),
            ),
            "live",
        )
    finally:
        conn.close()


def _common_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", type=Path, default=None, help=f"Config YAML (default {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="grc-import", description="CSV / spreadsheet importer for GRC data")
    sub = p.add_subparsers(dest="command", required=True)

    h = sub.add_parser("headers", help="Show delimiter, headers and suggested mapping")
    _common_options(h)
    h.add_argument("file", type=Path)
    h.add_argument("--entity", required=True)
    h.add_argument("--delimiter", type=_delimiter_arg)

    for name, help_text in (
        ("preview", "Parse and validate without writing"),
        ("commit", "Parse, validate and insert the valid rows"),
    ):
        s = sub.add_parser(name, help=help_text)
        _common_options(s)
        s.add_argument("files", type=Path, nargs="+")
        s.add_argument("--entity", required=True)
        s.add_argument("--delimiter", type=_delimiter_arg)
        s.add_argument("--mapping", type=Path, help="YAML/JSON file of {header: field|null}")
        s.add_argument("--save-mapping", action="store_true", help="Remember the resolved mapping")
        s.add_argument("--rows", type=int, default=20, help="Preview rows to print (0 = none)")

    b = sub.add_parser("backup", help="Validate (and optionally insert) a backup file")
    _common_options(b)
    b.add_argument("file", type=Path)
    b.add_argument("--delimiter", type=_delimiter_arg)
    b.add_argument("--commit", action="store_true")

    t = sub.add_parser("template", help="Write an import template")
    _common_options(t)
    group = t.add_mutually_exclusive_group(required=True)
    group.add_argument("--entity")
    group.add_argument("--backup", choices=("json", "csv"))
    t.add_argument("--delimiter", type=_delimiter_arg, default=",")
    t.add_argument("--bom", action="store_true", help="Prefix a UTF-8 BOM (for Excel)")
    t.add_argument("--output", type=Path)
    return p.parse_args(argv)


def _load_config(path: Path | None) -> ImportConfig:
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return ImportConfig()
        path = DEFAULT_CONFIG_PATH
    return load_config(path)


def _load_mapping(path: Path) -> dict[str, str | None]:
    if not path.exists():
        raise CliError(f"mapping file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise CliError(f"invalid mapping file {path.name}: {e}") from e
    if not isinstance(data, dict) or not all(v is None or isinstance(v, str) for v in data.values()):
        raise CliError(f"mapping file {path.name} must map header -> field name or null")
    return {str(k): v for k, v in data.items()}


def _print_preview(result: Any, rows: int) -> None:
    if rows <= 0 or not result.records:
        return
    print(result_frame(result).head(rows).to_string())


def _cmd_headers(args: argparse.Namespace, cfg: ImportConfig, profile: EntityProfile) -> int:
    logger = setup_logging()
    try:
        if args.file.suffix.lower() in EXCEL_SUFFIXES:
            headers, _ = read_excel_rows(args.file)
            suggested = auto_map(headers, profile, cfg.match)
            print("delimiter: (spreadsheet)")
        else:
            info = extract_headers(read_text(args.file), cfg.delimiter, profile, args.delimiter, cfg.match)
            headers, suggested = info.headers, info.suggested_mapping
            print(f"delimiter: {info.delimiter_name} ({info.delimiter!r})")
    except (ImportFileError, OSError) as e:
        logger.error(f"{args.file.name}: {e}")
        return EXIT_FATAL
    for header in headers:
        print(f"  {header} -> {suggested.get(header) or '-'}")
    missing = [k for k in profile.required_keys if k not in suggested.values()]
    if missing:
        logger.warning(f"required fields without a matching header: {', '.join(missing)}")
    return EXIT_SUCCESS_ALL


def _process_file(
    path: Path,
    profile: EntityProfile,
    args: argparse.Namespace,
    cfg: ImportConfig,
    store: RecordStore,
    error_log: ErrorLogBuffer,
    mapping_store: MappingStore,
    explicit_mapping: Mapping[str, str | None] | None,
) -> FileStat:
    logger = setup_logging()
    started = time.perf_counter()
    session = ImportSession(profile, cfg.delimiter, cfg.match)

    def failed(message: str, error_type: str | None = None) -> FileStat:
        logger.error(f"{path.name}: {message}")
        if error_type:
            error_log.add_file_error(path.name, profile.name, message, error_type)
        else:
            error_log.add_file_error(path.name, profile.name, message)
        return FileStat(
            file_name=path.name,
            entity=profile.name,
            status="failed",
            elapsed_seconds=time.perf_counter() - started,
            error=message,
        )

    try:
        existing = existing_keys_for(profile, store)
    except BatchInsertError as e:
        return failed(str(e))

    mapping = explicit_mapping
    if mapping is None:
        try:
            if path.suffix.lower() in EXCEL_SUFFIXES:
                headers, _ = read_excel_rows(path)
            else:
                headers = session.extract_headers(read_text(path)).headers
        except (ImportFileError, OSError) as e:
            return failed(str(e))
        mapping = mapping_store.load(profile.name, headers)
        if mapping is not None:
            logger.info(f"{path.name}: using remembered mapping")

    try:
        result = session.parse_file(path, mapping, args.delimiter, existing)
    except (ImportFileError, OSError) as e:
        return failed(str(e))

    error_log.add_result(path.name, result)
    for rec in result.records:
        for w in rec.warnings:
            logger.debug(f"{path.name} row {rec.row_number}: {w}")
    if args.save_mapping:
        saved = mapping_store.save(profile.name, result.headers, result.header_mapping())
        logger.debug(f"mapping saved to {saved}")
    if args.command == "preview":
        _print_preview(result, args.rows)

    committed = 0
    if args.command == "commit":
        try:
            committed = commit_result(result, profile, store).inserted_rows
        except CommitError as e:
            return failed(str(e), COMMIT_FAILED)

    logger.info(
        f"{path.name}: total={result.total_count} valid={result.valid_count} "
        f"invalid={result.invalid_count}"
        + (f" committed={committed}" if args.command == "commit" else "")
    )
    return FileStat(
        file_name=path.name,
        entity=profile.name,
        status="success" if result.invalid_count == 0 else "partial",
        total_rows=result.total_count,
        valid_rows=result.valid_count,
        invalid_rows=result.invalid_count,
        committed_rows=committed,
        elapsed_seconds=time.perf_counter() - started,
    )


def _process_backup(
    args: argparse.Namespace,
    cfg: ImportConfig,
    profiles: dict[str, EntityProfile],
    store: RecordStore,
    error_log: ErrorLogBuffer,
) -> FileStat:
    logger = setup_logging()
    started = time.perf_counter()
    path: Path = args.file
    try:
        existing = {name: existing_keys_for(p, store) for name, p in profiles.items()}
        backup = parse_backup_file(path, profiles, args.delimiter, existing, cfg.delimiter)
    except (ImportFileError, BatchInsertError, OSError) as e:
        logger.error(f"{path.name}: {e}")
        error_log.add_file_error(path.name, "backup", str(e))
        return FileStat(path.name, "backup", "failed", error=str(e))

    if backup.metadata:
        meta = ", ".join(f"{k}={v}" for k, v in backup.metadata.items())
        logger.info(f"{path.name}: {meta}")
    committed = 0
    for name, result in backup.sections.items():
        error_log.add_result(path.name, result)
        logger.info(
            f"{path.name} [{name}]: total={result.total_count} valid={result.valid_count} "
            f"invalid={result.invalid_count}"
        )
        if args.commit:
            try:
                committed += commit_result(result, profiles[name], store).inserted_rows
            except CommitError as e:
                logger.error(f"{path.name} [{name}]: {e}")
                error_log.add_file_error(path.name, name, str(e), COMMIT_FAILED)
                return FileStat(
                    path.name,
                    "backup",
                    "failed",
                    total_rows=backup.total_count,
                    valid_rows=backup.valid_count,
                    invalid_rows=backup.invalid_count,
                    committed_rows=committed,
                    error=str(e),
                )
    return FileStat(
        file_name=path.name,
        entity="backup",
        status="success" if backup.invalid_count == 0 else "partial",
        total_rows=backup.total_count,
        valid_rows=backup.valid_count,
        invalid_rows=backup.invalid_count,
        committed_rows=committed,
        elapsed_seconds=time.perf_counter() - started,
    )


def _cmd_template(args: argparse.Namespace, profiles: dict[str, EntityProfile]) -> int:
    if args.backup == "json":
        text = generate_backup_json(profiles)
    elif args.backup == "csv":
        text = generate_backup_csv(profiles, args.delimiter)
    else:
        text = generate_template(get_profile(profiles, args.entity), args.delimiter, bom=args.bom)
    if args.output is None:
        sys.stdout.write(text)
    else:
        args.output.write_text(text, encoding="utf-8")
        setup_logging().info(f"template written: {args.output}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()
    # [] を渡された場合に sys.argv が混入しないよう None のときだけ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        logger = setup_logging(debug=True)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = _load_config(args.config)
        profiles = load_profiles(Path(cfg.profiles_file) if cfg.profiles_file else None)
        profile = get_profile(profiles, args.entity) if getattr(args, "entity", None) else None
        explicit = _load_mapping(args.mapping) if getattr(args, "mapping", None) else None
    except (ConfigError, CliError) as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "template":
        return _cmd_template(args, profiles)
    if args.command == "headers":
        assert profile is not None
        return _cmd_headers(args, cfg, profile)

    error_log = ErrorLogBuffer()
    mapping_store = MappingStore(Path(cfg.mapping_store) if cfg.mapping_store else None)
    batch_stats = BatchStatsAccumulator()
    start_time = datetime.now(UTC)
    stats: list[FileStat] = []
    with _record_store(cfg, batch_stats) as (store, db_mode):
        if args.command == "backup":
            stats.append(_process_backup(args, cfg, profiles, store, error_log))
        else:
            assert profile is not None
            with ProgressTracker(len(args.files)) as progress:
                for path in args.files:
                    progress.start_file(path)
                    stat = _process_file(path, profile, args, cfg, store, error_log, mapping_store, explicit)
                    stats.append(stat)
                    progress.finish_file(stat.valid_rows, stat.invalid_rows)
    run = RunResult(file_stats=tuple(stats), start_time=start_time, end_time=datetime.now(UTC))

    total_batches, avg_batch = batch_stats.get_stats()
    logger.info(f"mode={db_mode} files={len(stats)}")
    logger.debug(f"batches={total_batches} avg_batch_sec={avg_batch:.4f}")
    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log: {log_path}")
    # log_summary が "SUMMARY " を付けるので除いて渡す
    log_summary(render_summary_line(run)[len("SUMMARY "):])
    return EXIT_SUCCESS_ALL if run.fully_successful else EXIT_PARTIAL_FAILURE
