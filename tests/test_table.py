"""Tests for the bounded, ordered entry table."""

import pytest

from voxels_store import CapacityExceededError, Entry, EntryTable, KeyNotFoundError
from voxels_store.table import truncate_utf8, utf8_len


def test_set_appends_in_insertion_order():
    table = EntryTable()
    for key in ("a", "b", "c"):
        assert table.set(key, key.upper()) is True

    assert table.keys() == ["a", "b", "c"]
    assert table.items() == [("a", "A"), ("b", "B"), ("c", "C")]


def test_overwrite_keeps_position_and_count():
    table = EntryTable()
    table.set("a", "1")
    table.set("b", "2")

    assert table.set("a", "3") is False
    assert table.keys() == ["a", "b"]
    assert table.get("a") == "3"
    assert len(table) == 2


def test_find_is_case_sensitive():
    table = EntryTable()
    table.set("Key", "v")

    assert table.find("Key") == 0
    assert table.find("key") is None
    assert "key" not in table


def test_capacity_boundary():
    table = EntryTable(capacity=3)
    for index in range(3):
        table.set(f"k{index}", str(index))
    assert table.is_full

    with pytest.raises(CapacityExceededError):
        table.set("extra", "x")

    # Existing keys can still be updated when full
    table.set("k1", "updated")
    assert table.items() == [("k0", "0"), ("k1", "updated"), ("k2", "2")]


def test_delete_shifts_later_entries():
    table = EntryTable()
    for key in "abcd":
        table.set(key, key)

    table.delete("b")

    assert table.keys() == ["a", "c", "d"]
    assert table.find("c") == 1


def test_missing_key_raises_not_found():
    table = EntryTable()

    with pytest.raises(KeyNotFoundError):
        table.get("nope")
    with pytest.raises(KeyNotFoundError):
        table.delete("nope")

    # KeyNotFoundError is also a KeyError
    with pytest.raises(KeyError):
        table.get("nope")


def test_iteration_yields_copies():
    table = EntryTable()
    table.set("a", "1")

    for entry in table:
        entry.value = "changed"

    assert table.get("a") == "1"
    assert list(table) == [Entry("a", "1")]


def test_load_replaces_and_reports_dropped():
    table = EntryTable(capacity=2)
    table.set("old", "x")

    dropped = table.load([("a", "1"), ("b", "2"), ("c", "3")])

    assert dropped == 1
    assert table.items() == [("a", "1"), ("b", "2")]


def test_load_repeated_key_keeps_first_position():
    table = EntryTable()
    table.load([("a", "1"), ("b", "2"), ("a", "3")])

    assert table.items() == [("a", "3"), ("b", "2")]


def test_truncate_utf8_respects_character_boundaries():
    assert truncate_utf8("hello", 10) == "hello"
    assert truncate_utf8("hello", 3) == "hel"
    # 'é' is two bytes and must not be split
    assert truncate_utf8("hé", 2) == "h"
    assert truncate_utf8("hé", 3) == "hé"
    assert utf8_len("hé") == 3


def test_truncate_utf8_keeps_escaped_raw_bytes():
    # 0xE9 read from a latin-1 file is carried as one escaped byte
    text = b"caf\xe9\xe9".decode("utf-8", errors="surrogateescape")
    assert utf8_len(text) == 5
    assert truncate_utf8(text, 4) == text[:4]
    assert truncate_utf8(text, 4).encode("utf-8", errors="surrogateescape") == b"caf\xe9"
