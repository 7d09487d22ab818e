from __future__ import annotations

import json
from pathlib import Path

import pytest

from grc_import.services.backup import (
    parse_backup_csv,
    parse_backup_file,
    parse_backup_json,
    section_key,
)
from grc_import.tabular.errors import EmptyFileError, UnsupportedFormatError

SECTIONED = """## Risks
code,title,inherent_probability,inherent_impact
RSK-1,Leak,4,5
RSK-1,Dup,1,1
## Action Plans
title;status
Rotate keys;todo
## Unknown Things
a,b
1,2
## Assessments
"""


def test_section_key():
    assert section_key(" Action  Plans ") == "action_plans"
    assert section_key("risks") == "risks"


def test_sectioned_csv(profiles):
    backup = parse_backup_csv(SECTIONED, profiles)
    assert list(backup.sections) == ["risks", "action_plans", "assessments"]
    risks = backup.sections["risks"]
    assert risks.total_count == 2
    assert risks.records[1].errors == ('duplicate code "RSK-1" in file',)
    plans = backup.sections["action_plans"]
    assert plans.delimiter.delimiter == ";"
    assert plans.records[0].values["status"] == "todo"
    assert plans.records[0].values["priority"] == "media"
    assert backup.sections["assessments"].total_count == 0
    assert (backup.total_count, backup.valid_count, backup.invalid_count) == (3, 2, 1)


def test_sectioned_csv_existing_keys(profiles):
    backup = parse_backup_csv(SECTIONED, profiles, existing_keys={"risks": {"RSK-1"}})
    assert backup.sections["risks"].records[0].errors == ('code "RSK-1" already exists',)


def test_csv_without_sections(profiles):
    with pytest.raises(EmptyFileError):
        parse_backup_csv("code,title\nRSK-1,x\n", profiles)


def test_json_backup(profiles):
    doc = {
        "metadata": {"organization_name": "ACME", "version": "1.0"},
        "risks": [{"code": "RSK-1", "title": "Leak", "inherent_probability": 4, "inherent_impact": 5}],
        "action_plans": [{"title": "", "status": "done"}],
    }
    backup = parse_backup_json(doc, profiles)
    assert backup.metadata["organization_name"] == "ACME"
    assert backup.sections["risks"].records[0].values["inherent_probability"] == 4
    assert backup.sections["action_plans"].records[0].errors == ("title is required",)
    assert "assessments" not in backup.sections
    assert (backup.valid_count, backup.invalid_count) == (1, 1)


@pytest.mark.parametrize(
    "doc,error",
    [
        ([], UnsupportedFormatError),
        ({"risks": {"code": "x"}}, UnsupportedFormatError),
        ({"metadata": {}}, EmptyFileError),
    ],
)
def test_json_backup_shape_errors(profiles, doc, error):
    with pytest.raises(error):
        parse_backup_json(doc, profiles)


def test_parse_backup_file_dispatch(profiles, temp_workdir: Path):
    j = temp_workdir / "data" / "backup.json"
    j.write_text(json.dumps({"risks": [{"code": "R", "title": "t", "inherent_probability": 1, "inherent_impact": 1}]}), encoding="utf-8")
    assert parse_backup_file(j, profiles).valid_count == 1

    c = temp_workdir / "data" / "backup.csv"
    c.write_text(SECTIONED, encoding="utf-8")
    assert parse_backup_file(c, profiles).total_count == 3

    x = temp_workdir / "data" / "backup.xml"
    x.write_text("<x/>", encoding="utf-8")
    with pytest.raises(UnsupportedFormatError):
        parse_backup_file(x, profiles)


def test_json_backup_empty_section(profiles):
    backup = parse_backup_json({"risks": [], "action_plans": [{"title": "t"}]}, profiles)
    assert backup.sections["risks"].total_count == 0
    assert backup.valid_count == 1
