from __future__ import annotations

from pathlib import Path

from grc_import.config.mapping_store import MappingStore, mapping_key


def test_key_ignores_header_order():
    assert mapping_key("controls", ["a", "b"]) == mapping_key("controls", ["b", "a"])
    assert mapping_key("controls", ["a"]) != mapping_key("vendors", ["a"])


def test_save_and_load(temp_workdir: Path):
    store = MappingStore(temp_workdir / "state" / "mappings.json")
    assert store.load("controls", ["Código", "Nome"]) is None
    store.save("controls", ["Código", "Nome"], {"Código": "code", "Nome": "name"})
    again = MappingStore(temp_workdir / "state" / "mappings.json")
    assert again.load("controls", ["Nome", "Código"]) == {"Nome": "name", "Código": "code"}


def test_unreadable_store_is_treated_as_empty(temp_workdir: Path):
    path = temp_workdir / "mappings.json"
    path.write_text("{not json", encoding="utf-8")
    store = MappingStore(path)
    assert store.load("controls", ["a"]) is None
    store.save("controls", ["a"], {"a": None})
    assert store.load("controls", ["a"]) == {"a": None}
