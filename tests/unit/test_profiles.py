from __future__ import annotations

from pathlib import Path

import pytest

from grc_import.config.profiles import ProfileError, build_profile, get_profile, load_profiles


def test_builtin_profiles(profiles):
    assert set(profiles) >= {"controls", "vendors", "questions", "risks", "action_plans", "assessments"}
    controls = profiles["controls"]
    assert controls.required_keys == ["code", "name"]
    assert controls.key_field == "code"
    assert profiles["questions"].key_field is None
    assert profiles["vendors"].constants == {"lifecycle_stage": "ativo"}


def test_get_profile_unknown(profiles):
    with pytest.raises(ProfileError, match="unknown entity 'policies'"):
        get_profile(profiles, "policies")


def test_key_field_defaults_to_first_code_field():
    p = build_profile(
        "things",
        {"table": "things", "fields": [{"key": "name"}, {"key": "ref", "kind": "code"}]},
    )
    assert p.key_field == "ref"


def test_field_column_rename():
    p = build_profile(
        "things",
        {"table": "things", "fields": [{"key": "name", "column": "display_name"}]},
    )
    assert p.get_field("name").column_name == "display_name"


@pytest.mark.parametrize(
    "fields,message",
    [
        ([{"key": "a"}, {"key": "a"}], "duplicate field"),
        ([{"key": "a", "kind": "enum"}], "has no values"),
        ([{"key": "a", "kind": "enum", "values": ["x"], "default": "y"}], "not an allowed value"),
        (
            [{"key": "a", "kind": "code", "required": True, "auto_code": {"prefix": "A"}}],
            "cannot be both",
        ),
        ([{"key": "a", "required_when": {"field": "b", "equals": "x"}}], "unknown field"),
    ],
)
def test_semantic_checks(fields, message):
    with pytest.raises(ProfileError, match=message):
        build_profile("bad", {"table": "bad", "fields": fields})


def test_extra_profiles_file_overrides(temp_workdir: Path):
    extra = temp_workdir / "config" / "profiles.yml"
    extra.write_text(
        "controls:\n"
        "  table: custom_controls\n"
        "  fields:\n"
        "    - {key: code, kind: code, required: true}\n"
        "    - {key: title, required: true, synonyms: [title, titulo]}\n",
        encoding="utf-8",
    )
    profiles = load_profiles(extra)
    assert profiles["controls"].table == "custom_controls"
    assert profiles["controls"].keys == ["code", "title"]
    assert profiles["vendors"].table == "vendors"


def test_extra_profiles_schema_violation(temp_workdir: Path):
    extra = temp_workdir / "config" / "profiles.yml"
    extra.write_text("things:\n  fields: []\n", encoding="utf-8")
    with pytest.raises(ProfileError) as e:
        load_profiles(extra)
    assert "profiles validation failed" in str(e.value)
