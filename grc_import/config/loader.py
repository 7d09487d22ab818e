from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, DelimiterPolicy, ImportConfig

"""Config loader.

Responsibilities:
- Load YAML config/import.yml
- Validate against schemas/config_schema.json
- Apply defaults (every key is optional)
"""

__all__ = [
    "SCHEMA_DIR",
    "DEFAULT_CONFIG_PATH",
    "ConfigError",
    "validate_against_schema",
    "load_config",
]

SCHEMA_DIR = Path(__file__).parent / "schemas"
CONFIG_SCHEMA_PATH = SCHEMA_DIR / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def validate_against_schema(data: Any, schema_path: Path, *, what: str = "config") -> None:
    """Validate ``data`` against a JSON schema file.

    Raises:
        ConfigError: schema file missing or unreadable, or ``data`` violates it.
    """
    if not schema_path.exists():
        raise ConfigError(f"{what} schema not found: {schema_path}")
    try:
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path)
        where = f" at '{location}'" if location else ""
        raise ConfigError(f"{what} validation failed{where}: {e.message}") from e


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    validate_against_schema(data, CONFIG_SCHEMA_PATH)

    delim_raw = data.get("delimiter", {})
    policy = DelimiterPolicy(
        fallback=delim_raw.get("fallback", ","),
        tolerance=delim_raw.get("tolerance", "tolerant"),
        sample_lines=delim_raw.get("sample_lines", 10),
    )
    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    # 相対パスは設定ファイルの位置ではなくカレントディレクトリ基準
    return ImportConfig(
        delimiter=policy,
        match=data.get("match", "exact"),
        profiles_file=data.get("profiles_file"),
        mapping_store=data.get("mapping_store"),
        page_size=data.get("page_size", 500),
        database=db,
    )
