from __future__ import annotations

import pytest

from grc_import.config.profiles import build_profile
from grc_import.db.batch_insert import BatchInsertError, InsertResult
from grc_import.services.commit import (
    CommitError,
    InMemoryRecordStore,
    commit_result,
    existing_keys_for,
    to_store_row,
)
from grc_import.services.orchestrator import parse_content

SCENARIO = (
    "code;name;weight\n"
    "CTRL-001;Access Control;3\n"
    "CTRL-001;Duplicate Name;2\n"
    ";No Code;1\n"
    "CTRL-003;Bad Weight;9\n"
)


def test_only_valid_records_are_committed(controls):
    store = InMemoryRecordStore()
    result = parse_content(SCENARIO, controls)
    inserted = commit_result(result, controls, store)
    assert inserted.inserted_rows == 1
    rows = store.rows("controls")
    assert len(rows) == 1
    assert rows[0]["code"] == "CTRL-001"
    assert rows[0]["weight"] == 3
    assert rows[0]["order_index"] == 1


def test_parse_does_not_touch_store(controls):
    store = InMemoryRecordStore()
    parse_content(SCENARIO, controls, existing_keys=existing_keys_for(controls, store))
    assert store.rows("controls") == []


def test_existing_keys_feed_store_scoped_duplicates(controls):
    store = InMemoryRecordStore({"controls": [{"code": "CTRL-003", "name": "old"}]})
    assert existing_keys_for(controls, store) == {"CTRL-003"}
    result = parse_content("code,name\nCTRL-003,New\n", controls, existing_keys=existing_keys_for(controls, store))
    assert result.records[0].errors == ('code "CTRL-003" already exists',)


def test_existing_keys_without_key_field(questions):
    assert existing_keys_for(questions, InMemoryRecordStore()) == set()


def test_store_row_applies_column_rename_and_constants():
    profile = build_profile(
        "vendors_renamed",
        {
            "table": "vendors",
            "constants": {"lifecycle_stage": "ativo"},
            "fields": [
                {"key": "code", "kind": "code", "auto_code": {"prefix": "VND"}},
                {"key": "name", "required": True, "column": "vendor_name"},
            ],
        },
    )
    result = parse_content("name\nACME\n", profile)
    row = to_store_row(result.records[0], profile)
    assert row == {"code": "VND-001", "vendor_name": "ACME", "lifecycle_stage": "ativo"}


def test_nothing_valid_inserts_nothing(controls):
    store = InMemoryRecordStore()
    result = parse_content("code,name\n,\n", controls)
    assert commit_result(result, controls, store).inserted_rows == 0
    assert store.rows("controls") == []


def test_profile_mismatch(controls, vendors):
    result = parse_content("code,name\nC-1,A\n", controls)
    with pytest.raises(CommitError, match="result is for 'controls'"):
        commit_result(result, vendors, InMemoryRecordStore())


class FailingStore(InMemoryRecordStore):
    def insert_many(self, table, records):
        super().insert_many(table, records)
        raise BatchInsertError("duplicate key value violates unique constraint")


def test_failed_insert_rolls_back(controls):
    store = FailingStore()
    result = parse_content("code,name\nC-1,A\nC-2,B\n", controls)
    with pytest.raises(CommitError, match="duplicate key"):
        commit_result(result, controls, store)
    assert store.rows("controls") == []
    assert store.existing_keys("controls", "code") == set()


def test_in_memory_store_pending_until_commit():
    store = InMemoryRecordStore()
    assert store.insert_many("t", [{"code": "A"}]) == InsertResult(inserted_rows=1)
    assert store.existing_keys("t", "code") == {"A"}
    assert store.rows("t") == []
    store.commit()
    assert store.rows("t") == [{"code": "A"}]
