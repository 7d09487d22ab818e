from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ..models.field_spec import AutoCode, EntityProfile, RequiredWhen, SystemField
from .loader import SCHEMA_DIR, ConfigError, validate_against_schema

"""Entity profile loading.

Built-in profiles ship in profiles.yml next to this module. An extra YAML file
(config ``profiles_file``) may add entities or replace built-in ones entirely.
Both go through schemas/profile_schema.json plus the semantic checks below.
"""

__all__ = [
    "BUILTIN_PROFILES_PATH",
    "ProfileError",
    "load_profiles",
    "get_profile",
    "build_profile",
]

BUILTIN_PROFILES_PATH = Path(__file__).parent / "profiles.yml"
PROFILE_SCHEMA_PATH = SCHEMA_DIR / "profile_schema.json"


class ProfileError(ConfigError):
    pass


def _build_field(raw: dict[str, Any]) -> SystemField:
    auto = raw.get("auto_code")
    cond = raw.get("required_when")
    # キー自身も常に同義語として扱う (テンプレートの見出しは既定でキー)
    synonyms = list(raw.get("synonyms") or ())
    if raw["key"] not in synonyms:
        synonyms.append(raw["key"])
    return SystemField(
        key=raw["key"],
        label=raw.get("label", raw["key"]),
        required=raw.get("required", False),
        description=raw.get("description", ""),
        kind=raw.get("kind", "text"),
        synonyms=tuple(synonyms),
        values=tuple(str(v) for v in raw.get("values", ())),
        aliases={str(k): str(v) for k, v in (raw.get("aliases") or {}).items()},
        default=raw.get("default"),
        on_invalid=raw.get("on_invalid", "error"),
        minimum=raw.get("minimum"),
        maximum=raw.get("maximum"),
        auto_code=AutoCode(auto["prefix"], auto.get("width", 3)) if auto else None,
        required_when=RequiredWhen(cond["field"], cond["equals"]) if cond else None,
        min_items=raw.get("min_items"),
        column=raw.get("column"),
    )


def _check(profile: EntityProfile) -> None:
    seen: set[str] = set()
    for f in profile.fields:
        if f.key in seen:
            raise ProfileError(f"profile '{profile.name}': duplicate field '{f.key}'")
        seen.add(f.key)
        if f.kind == "enum" and not f.values:
            raise ProfileError(f"profile '{profile.name}': enum field '{f.key}' has no values")
        if f.kind == "enum" and f.default is not None and str(f.default) not in f.values:
            raise ProfileError(
                f"profile '{profile.name}': default '{f.default}' of '{f.key}' is not an allowed value"
            )
        if f.required and f.auto_code is not None:
            raise ProfileError(
                f"profile '{profile.name}': '{f.key}' cannot be both required and auto-generated"
            )
        if f.required_when is not None and not profile.has_field(f.required_when.field):
            raise ProfileError(
                f"profile '{profile.name}': '{f.key}' depends on unknown field "
                f"'{f.required_when.field}'"
            )
    if profile.key_field is not None:
        if not profile.has_field(profile.key_field):
            raise ProfileError(
                f"profile '{profile.name}': key_field '{profile.key_field}' is not a field"
            )
        if profile.get_field(profile.key_field).kind != "code":
            raise ProfileError(f"profile '{profile.name}': key_field must be of kind 'code'")


def build_profile(name: str, raw: dict[str, Any]) -> EntityProfile:
    fields = tuple(_build_field(f) for f in raw["fields"])
    key_field = raw.get("key_field")
    if key_field is None:
        # 未指定なら最初の code フィールド
        key_field = next((f.key for f in fields if f.kind == "code"), None)
    profile = EntityProfile(
        name=name,
        table=raw["table"],
        fields=fields,
        key_field=key_field,
        constants=dict(raw.get("constants") or {}),
        examples=tuple(
            {k: "" if v is None else str(v) for k, v in ex.items()}
            for ex in raw.get("examples", ())
        ),
        template_headers=tuple(raw.get("template_headers", ())),
    )
    _check(profile)
    if profile.template_headers and len(profile.template_headers) != len(profile.fields):
        raise ProfileError(
            f"profile '{name}': template_headers must name every field in order"
        )
    return profile


def _read_profiles(path: Path) -> dict[str, EntityProfile]:
    if not path.exists():
        raise ProfileError(f"profiles file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ProfileError(f"invalid yaml in {path.name}: {e}") from e
    validate_against_schema(data, PROFILE_SCHEMA_PATH, what="profiles")
    return {name: build_profile(name, raw) for name, raw in data.items()}


def load_profiles(extra_path: Path | None = None) -> dict[str, EntityProfile]:
    """Return built-in profiles, overlaid with ``extra_path`` when given."""
    profiles = _read_profiles(BUILTIN_PROFILES_PATH)
    if extra_path is not None:
        profiles.update(_read_profiles(extra_path))
    return profiles


def get_profile(profiles: dict[str, EntityProfile], name: str) -> EntityProfile:
    try:
        return profiles[name]
    except KeyError:
        known = ", ".join(sorted(profiles))
        raise ProfileError(f"unknown entity '{name}' (known: {known})") from None
