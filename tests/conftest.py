# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from grc_import.config.profiles import build_profile, load_profiles
from grc_import.logging.init import reset_logging


@pytest.fixture(autouse=True)
def clean_logging():
    # StreamHandler は作成時の sys.stdout を掴むため capsys ごとに作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(scope="session")
def profiles():
    return load_profiles()


@pytest.fixture()
def controls(profiles):
    return profiles["controls"]


@pytest.fixture()
def vendors(profiles):
    return profiles["vendors"]


@pytest.fixture()
def questions(profiles):
    return profiles["questions"]


@pytest.fixture()
def people_profile():
    """Small profile exercising every invalid-enum policy."""
    return build_profile(
        "people",
        {
            "table": "people",
            "fields": [
                {"key": "code", "kind": "code", "required": True, "synonyms": ["code", "id"]},
                {"key": "name", "required": True, "synonyms": ["name", "nome"]},
                {"key": "email", "kind": "email", "synonyms": ["email", "e-mail"]},
                {"key": "birthday", "kind": "date", "synonyms": ["birthday"]},
                {
                    "key": "level",
                    "kind": "enum",
                    "values": ["low", "high"],
                    "default": "low",
                    "on_invalid": "error",
                },
                {
                    "key": "tier",
                    "kind": "enum",
                    "values": ["bronze", "gold"],
                    "default": "bronze",
                    "on_invalid": "default",
                },
                {"key": "tag", "kind": "enum", "values": ["a", "b"], "on_invalid": "passthrough"},
            ],
        },
    )


@pytest.fixture()
def sample_config_yaml() -> str:
    return """delimiter:
  fallback: ";"
  tolerance: strict
  sample_lines: 5
match: fuzzy
page_size: 100
mapping_store: state/mappings.json
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: grc
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def controls_csv(temp_workdir: Path) -> Path:
    f = temp_workdir / "data" / "controls.csv"
    f.write_text(
        "code;name;weight\n"
        "CTRL-001;Access Control;3\n"
        "CTRL-001;Duplicate Name;2\n"
        ";No Code;1\n"
        "CTRL-003;Bad Weight;9\n",
        encoding="utf-8",
    )
    return f


@pytest.fixture()
def valid_controls_csv(temp_workdir: Path) -> Path:
    f = temp_workdir / "data" / "controls_ok.csv"
    f.write_text(
        "Código,Nome,Categoria,Peso\n"
        "CTRL-010,Backup,Operações,2\n"
        "CTRL-011,Logging,Operações,4\n",
        encoding="utf-8",
    )
    return f
