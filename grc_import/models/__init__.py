"""Domain models for the GRC import tool."""

from .config_models import DatabaseConfig, DelimiterPolicy, ImportConfig
from .error_record import ErrorRecord
from .field_spec import AutoCode, EntityProfile, RequiredWhen, SystemField
from .parsed_record import DelimiterChoice, HeaderInfo, ImportResult, ParsedRecord
from .processing_result import FileStat, RunResult
from .session_state import ImportState

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "DelimiterPolicy",
    "ImportConfig",
    # Profile models
    "AutoCode",
    "EntityProfile",
    "RequiredWhen",
    "SystemField",
    # Parse models
    "DelimiterChoice",
    "HeaderInfo",
    "ImportResult",
    "ParsedRecord",
    "ImportState",
    # Run models
    "ErrorRecord",
    "FileStat",
    "RunResult",
]
