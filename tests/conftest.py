"""Shared fixtures for store tests."""

import pytest

from voxels_store import ConfigStore, FlashPartition, StoreConfig, StoreIOError


class BrokenFlashPartition(FlashPartition):
    """Flash partition whose namespace can never be opened."""

    def open_namespace(self, name):
        raise StoreIOError("flash partition unavailable")


@pytest.fixture
def broken_partition():
    return BrokenFlashPartition()


@pytest.fixture
def config(tmp_path):
    """Config pointing at a (not yet created) card directory and flash file."""
    return StoreConfig(
        mount_point=str(tmp_path / "sdcard"),
        flash_path=str(tmp_path / "nvs.sqlite"),
    )


@pytest.fixture
def card(config, tmp_path):
    """An inserted but unformatted card."""
    path = tmp_path / "sdcard"
    path.mkdir()
    return path


@pytest.fixture
def formatted_card(card):
    """An inserted card carrying an empty database."""
    (card / "voxels.db").write_text("# Voxels Database v1.0\n# Format: key=value\n")
    (card / ".voxels_init").write_text("initialized\n")
    return card


@pytest.fixture
def store(config):
    """Store over the fixture config; deinitialized after the test."""
    store = ConfigStore.from_config(config)
    yield store
    store.deinit()


@pytest.fixture
def sd_store(store, formatted_card):
    """Ready store backed by removable storage."""
    store.init()
    return store


@pytest.fixture
def flash_store(store):
    """Ready store backed by flash (no card inserted)."""
    store.init()
    return store
