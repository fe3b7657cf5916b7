"""Tests for store lifecycle, backend selection and CRUD."""

import sqlite3
import threading

import pytest

from voxels_store import (
    BackendKind,
    CapacityExceededError,
    ConfigStore,
    DirectoryMedia,
    InvalidArgumentError,
    InvalidStateError,
    KeyNotFoundError,
    KeyTooLongError,
    NeedsFormatError,
    SqliteFlashPartition,
    StorageNotPresentError,
    StoreIOError,
    StoreStatus,
    ValueTooLongError,
)
from voxels_store.file_backend import FileBackend

HEADER = "# Voxels Database v1.0\n# Format: key=value\n"


def reopen(store):
    """Save, tear down and initialize again, as across a reboot."""
    store.save()
    store.deinit()
    return store.init()


# =============================================================================
# Lifecycle and backend selection
# =============================================================================

def test_new_store_is_not_present(store):
    assert store.get_status() is StoreStatus.NOT_PRESENT
    assert store.get_storage_type() == "None"
    assert store.is_ready() is False


def test_fresh_device_without_card_falls_back_to_flash(store):
    assert store.init() is StoreStatus.READY
    assert store.get_storage_type() == "NVS Flash"
    assert store.backend_kind is BackendKind.FLASH_NAMESPACE
    assert store.key_exists("anything") is False
    assert store.count == 0


def test_no_medium_at_all_is_error(config, broken_partition):
    store = ConfigStore(config, DirectoryMedia(config.mount_point), broken_partition)

    assert store.init() is StoreStatus.ERROR
    assert store.get_storage_type() == "None"
    with pytest.raises(InvalidStateError):
        store.set_string("a", "1")


def test_unformatted_card_needs_format(store, card):
    assert store.init() is StoreStatus.NOT_INITIALIZED
    assert store.get_storage_type() == "SD Card"
    assert store.key_exists("a") is False

    with pytest.raises(NeedsFormatError):
        store.set_string("a", "1")
    with pytest.raises(InvalidStateError):
        store.get_string("a")
    with pytest.raises(InvalidStateError):
        store.delete("a")
    with pytest.raises(InvalidStateError):
        store.save()


def test_format_and_init_clears_stale_entries(store, card):
    (card / "voxels.db").write_text(HEADER + "stale=1\n")
    assert store.init() is StoreStatus.NOT_INITIALIZED

    assert store.format_and_init() is StoreStatus.READY
    assert store.is_ready()
    assert store.key_exists("stale") is False
    assert (card / "voxels.db").read_text() == HEADER
    assert (card / ".voxels_init").exists()


def test_marker_without_database_file_needs_format(store, card):
    (card / ".voxels_init").write_text("initialized\n")

    assert store.init() is StoreStatus.NOT_INITIALIZED
    assert store.count == 0


def test_format_failure_is_error(store, card, monkeypatch):
    store.init()

    def fail(self):
        raise StoreIOError("card is write protected")

    monkeypatch.setattr(FileBackend, "wipe", fail)

    assert store.format_and_init() is StoreStatus.ERROR
    assert store.is_ready() is False


def test_format_without_init_selects_backend(store, card):
    assert store.format_and_init() is StoreStatus.READY
    assert store.get_storage_type() == "SD Card"


def test_format_flash_erases_entries(flash_store):
    flash_store.set_string("a", "1")
    flash_store.save()

    assert flash_store.format_and_init() is StoreStatus.READY
    assert flash_store.count == 0
    assert reopen(flash_store) is StoreStatus.READY
    assert flash_store.count == 0


def test_corrupt_flash_count_still_ready(config, store):
    handle = SqliteFlashPartition(config.flash_path).open_namespace(config.namespace)
    handle.set_str("count", "garbage")
    handle.commit()
    handle.close()

    assert store.init() is StoreStatus.READY
    assert store.count == 0


def test_non_numeric_flash_count_still_ready(config, store):
    SqliteFlashPartition(config.flash_path).open_namespace(config.namespace).close()
    with sqlite3.connect(config.flash_path) as conn:
        conn.execute(
            "INSERT INTO nvs (namespace, key, kind, value) VALUES (?, ?, ?, ?)",
            (config.namespace, "count", "i32", "abc"),
        )

    assert store.init() is StoreStatus.READY
    assert store.get_storage_type() == "NVS Flash"
    assert store.count == 0


def test_deinit_resets_everything(sd_store):
    sd_store.set_string("a", "1")
    sd_store.deinit()

    assert sd_store.get_status() is StoreStatus.NOT_PRESENT
    assert sd_store.get_storage_type() == "None"
    assert sd_store.count == 0
    assert sd_store.dirty is False
    assert sd_store.media.is_mounted is False


def test_deinit_flushes_dirty_entries(sd_store, formatted_card):
    sd_store.set_string("timezone", "UTC")
    sd_store.deinit()

    assert (formatted_card / "voxels.db").read_text() == HEADER + "timezone=UTC\n"


def test_deinit_survives_failed_flush(sd_store, monkeypatch):
    sd_store.set_string("a", "1")

    def fail(self, table):
        raise StoreIOError("card removed")

    monkeypatch.setattr(FileBackend, "save", fail)
    sd_store.deinit()

    assert sd_store.get_status() is StoreStatus.NOT_PRESENT
    assert sd_store.count == 0


def test_init_twice_reinitializes(sd_store):
    sd_store.set_string("a", "1")

    assert sd_store.init() is StoreStatus.READY
    assert sd_store.get_string("a") == "1"


def test_context_manager(config, formatted_card):
    with ConfigStore.from_config(config) as store:
        assert store.is_ready()
        store.set_int("boot_count", 1)

    assert store.get_status() is StoreStatus.NOT_PRESENT
    assert "boot_count=1" in (formatted_card / "voxels.db").read_text()


def test_status_handlers_see_transitions(store, card):
    seen = []
    store.on_status_change(lambda old, new: seen.append((old, new)))
    store.on_status_change(lambda old, new: 1 / 0)

    store.init()
    store.format_and_init()
    store.deinit()

    assert seen == [
        (StoreStatus.NOT_PRESENT, StoreStatus.NOT_INITIALIZED),
        (StoreStatus.NOT_INITIALIZED, StoreStatus.READY),
        (StoreStatus.READY, StoreStatus.NOT_PRESENT),
    ]


# =============================================================================
# Persistence properties
# =============================================================================

@pytest.mark.parametrize("fixture_name", ["sd_store", "flash_store"])
def test_round_trip(request, fixture_name):
    store = request.getfixturevalue(fixture_name)
    store.set_string("device_name", "Kitchen")
    store.set_string("device_name", "Hallway")
    store.set_int("boot_count", 41)
    store.set_string("empty", "")

    assert reopen(store) is StoreStatus.READY
    assert store.get_string("device_name") == "Hallway"
    assert store.get_int("boot_count") == 41
    assert store.get_string("empty") == ""
    assert store.keys() == ["device_name", "boot_count", "empty"]


@pytest.mark.parametrize("fixture_name", ["sd_store", "flash_store"])
def test_delete_preserves_order_across_reload(request, fixture_name):
    store = request.getfixturevalue(fixture_name)
    for key in "abcd":
        store.set_string(key, key)
    store.delete("b")

    reopen(store)

    assert store.keys() == ["a", "c", "d"]


def test_saved_file_is_byte_identical_after_reload(sd_store, formatted_card):
    sd_store.set_string("a", "1")
    sd_store.set_string("b", "x=y")
    sd_store.save()
    first = (formatted_card / "voxels.db").read_bytes()

    reopen(sd_store)
    sd_store.set_string("a", "1")
    sd_store.save()

    assert (formatted_card / "voxels.db").read_bytes() == first


def test_idempotent_save(sd_store, monkeypatch):
    sd_store.set_string("a", "1")
    sd_store.save()
    assert sd_store.dirty is False

    calls = []
    monkeypatch.setattr(FileBackend, "save", lambda self, table: calls.append(table))
    sd_store.save()

    assert calls == []
    assert sd_store.dirty is False


def test_failed_save_keeps_dirty(sd_store, monkeypatch):
    sd_store.set_string("a", "1")

    def fail(self, table):
        raise StoreIOError("card removed")

    monkeypatch.setattr(FileBackend, "save", fail)
    with pytest.raises(StoreIOError):
        sd_store.save()
    assert sd_store.dirty is True

    monkeypatch.undo()
    sd_store.save()
    assert sd_store.dirty is False


def test_wipe_empties_store_without_changing_status(sd_store, formatted_card):
    sd_store.set_string("a", "1")
    sd_store.save()
    (formatted_card / "notes.txt").write_text("x")

    sd_store.wipe()

    assert sd_store.is_ready()
    assert sd_store.count == 0
    assert sd_store.dirty is False
    assert not (formatted_card / "notes.txt").exists()
    assert (formatted_card / "voxels.db").read_text() == HEADER


def test_wipe_flash(flash_store):
    flash_store.set_string("a", "1")
    flash_store.save()

    flash_store.wipe()

    assert reopen(flash_store) is StoreStatus.READY
    assert flash_store.count == 0


def test_wipe_without_backend(store):
    with pytest.raises(StorageNotPresentError):
        store.wipe()


# =============================================================================
# CRUD
# =============================================================================

def test_key_uniqueness(sd_store):
    sd_store.set_string("k", "v1")
    sd_store.set_string("k", "v2")

    assert sd_store.get_string("k") == "v2"
    assert sd_store.count == 1


def test_capacity_boundary(sd_store):
    for index in range(100):
        sd_store.set_string(f"key{index}", str(index))

    with pytest.raises(CapacityExceededError):
        sd_store.set_string("one_too_many", "x")

    assert sd_store.count == 100
    assert all(sd_store.get_string(f"key{i}") == str(i) for i in range(100))


def test_not_found_semantics(sd_store):
    sd_store.set_string("a", "1")
    sd_store.save()

    with pytest.raises(KeyNotFoundError):
        sd_store.get_string("missing")
    with pytest.raises(KeyNotFoundError):
        sd_store.delete("missing")
    with pytest.raises(KeyNotFoundError):
        sd_store.get_int("missing")

    assert sd_store.key_exists("missing") is False
    assert sd_store.dirty is False


def test_get_string_bounded_buffer(sd_store):
    sd_store.set_string("name", "héllo")

    assert sd_store.get_string("name", max_len=64) == "héllo"
    assert sd_store.get_string("name", max_len=4) == "hé"
    assert sd_store.get_string("name", max_len=3) == "h"
    assert sd_store.get_string("name", max_len=1) == ""
    with pytest.raises(InvalidArgumentError):
        sd_store.get_string("name", max_len=0)


@pytest.mark.parametrize(
    "text, expected",
    [("42", 42), ("-7", -7), ("  +5", 5), ("12abc", 12), ("abc", 0), ("", 0)],
)
def test_get_int_parses_like_atoi(sd_store, text, expected):
    sd_store.set_string("n", text)
    assert sd_store.get_int("n") == expected


def test_set_int_rejects_non_integers(sd_store):
    with pytest.raises(InvalidArgumentError):
        sd_store.set_int("n", "5")
    with pytest.raises(InvalidArgumentError):
        sd_store.set_int("n", True)


def test_defaults_when_absent_or_not_ready(store, card):
    assert store.get_string_or("tz", "UTC") == "UTC"
    store.init()
    assert store.get_int_or("boot_count", 0) == 0

    store.format_and_init()
    store.set_int("boot_count", 3)
    assert store.get_int_or("boot_count", 0) == 3


@pytest.mark.parametrize("key", ["", "a=b", "line\nbreak", "#comment", None, 5])
def test_invalid_keys_rejected(sd_store, key):
    with pytest.raises(InvalidArgumentError):
        sd_store.set_string(key, "v")
    assert sd_store.dirty is False


@pytest.mark.parametrize("value", ["two\nlines", "cr\r", None, 3])
def test_invalid_values_rejected(sd_store, value):
    with pytest.raises(InvalidArgumentError):
        sd_store.set_string("k", value)


def test_oversize_input_rejected_by_default(sd_store):
    with pytest.raises(KeyTooLongError):
        sd_store.set_string("k" * 64, "v")
    with pytest.raises(ValueTooLongError):
        sd_store.set_string("k", "v" * 128)

    sd_store.set_string("k" * 63, "v" * 127)
    assert sd_store.get_string("k" * 63) == "v" * 127


def test_oversize_input_truncated_when_lenient(config, formatted_card):
    config.strict_lengths = False
    store = ConfigStore.from_config(config)
    store.init()
    try:
        store.set_string("k" * 70, "é" * 70)

        [(key, value)] = store.items()
        assert key == "k" * 63
        assert value == "é" * 63
    finally:
        store.deinit()


def test_concurrent_writers(sd_store):
    def writer(prefix):
        for index in range(10):
            sd_store.set_string(f"{prefix}{index}", str(index))
            sd_store.save()

    threads = [threading.Thread(target=writer, args=(p,)) for p in "abcd"]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sd_store.count == 40
    assert reopen(sd_store) is StoreStatus.READY
    assert sd_store.count == 40
