"""Import services: orchestration, commit, backup, templates, summary, progress."""

from .backup import BackupImportResult, parse_backup_file
from .commit import CommitError, InMemoryRecordStore, RecordStore, commit_result
from .orchestrator import ImportSession, extract_headers, parse_content, parse_rows
from .summary import render_summary_line, result_frame
from .template import generate_backup_json, generate_template

__all__ = [
    "BackupImportResult",
    "parse_backup_file",
    "CommitError",
    "InMemoryRecordStore",
    "RecordStore",
    "commit_result",
    "ImportSession",
    "extract_headers",
    "parse_content",
    "parse_rows",
    "render_summary_line",
    "result_frame",
    "generate_backup_json",
    "generate_template",
]
