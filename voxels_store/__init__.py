"""
Voxels Configuration Store

Persistent key/value settings for the Voxels smart display. Settings live
on removable storage when a card is present and in internal flash when it
is not; the application sees the same API either way.

Architecture:
    ConfigStore (status + CRUD)
        │
        ├── EntryTable (bounded, ordered, in memory)
        ▼
    Backend Selector
        │
        ├── FileBackend  -> voxels.db + .voxels_init on removable storage
        └── FlashBackend -> count/_k<i>/_v<i> in a flash namespace

Startup:
    READY            - entries loaded, CRUD allowed
    NOT_INITIALIZED  - card present but unformatted; ask the user, then
                       call format_and_init()
    ERROR            - no usable medium
    NOT_PRESENT      - before init() / after deinit()

Usage:
    from voxels_store import ConfigStore, StoreConfig, StoreStatus

    config = StoreConfig.from_yaml("config.yaml")
    store = ConfigStore.from_config(config)

    if store.init() is StoreStatus.NOT_INITIALIZED:
        store.format_and_init()

    if store.is_ready():
        boot_count = store.get_int_or("boot_count", 0)
        store.set_int("boot_count", boot_count + 1)
        store.save()

    store.deinit()
"""

from .errors import (
    CapacityExceededError,
    InvalidArgumentError,
    InvalidStateError,
    KeyNotFoundError,
    KeyTooLongError,
    NeedsFormatError,
    StorageNotPresentError,
    StoreError,
    StoreIOError,
    ValueTooLongError,
)
from .media import (
    DirectoryMedia,
    FlashNamespace,
    FlashPartition,
    RemovableMedia,
    SqliteFlashPartition,
)
from .models import BackendKind, Entry, StoreConfig, StoreStatus
from .store import ConfigStore
from .table import EntryTable

__version__ = "1.0.0"
__all__ = [
    # Store
    "ConfigStore",
    "StoreConfig",
    "StoreStatus",
    "BackendKind",
    "Entry",
    "EntryTable",
    # Media
    "RemovableMedia",
    "DirectoryMedia",
    "FlashPartition",
    "FlashNamespace",
    "SqliteFlashPartition",
    # Errors
    "StoreError",
    "StorageNotPresentError",
    "InvalidStateError",
    "NeedsFormatError",
    "KeyNotFoundError",
    "CapacityExceededError",
    "StoreIOError",
    "InvalidArgumentError",
    "KeyTooLongError",
    "ValueTooLongError",
]
