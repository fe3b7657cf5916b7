#!/usr/bin/env python3
"""
Flash Backend for the Internal NVS Namespace

Stores the entry table in a flash key/value namespace using synthetic
per-slot keys:

    count   (int)   number of entries
    _k0     (str)   key of entry 0
    _v0     (str)   value of entry 0
    ...

There is no marker concept: an open namespace is always ready, and an
absent count simply means nothing has been saved yet.
"""

import logging
from typing import Optional

from .backends import StorageBackend
from .errors import StoreIOError
from .media import FlashNamespace, FlashPartition
from .models import (
    FLASH_COUNT_KEY,
    FLASH_KEY_PREFIX,
    FLASH_VALUE_PREFIX,
    BackendKind,
    StoreConfig,
)
from .table import EntryTable


def slot_keys(index: int):
    """Synthetic (key, value) names for a table slot."""
    return f"{FLASH_KEY_PREFIX}{index}", f"{FLASH_VALUE_PREFIX}{index}"


class FlashBackend(StorageBackend):
    """Entry table persisted in an internal flash namespace."""

    kind = BackendKind.FLASH_NAMESPACE

    def __init__(
        self,
        config: StoreConfig,
        partition: FlashPartition,
        logger: logging.Logger = None,
    ):
        """
        Initialize flash backend.

        Args:
            config: Store configuration.
            partition: Flash partition providing the namespace.
            logger: Logger instance (creates one if not provided).
        """
        super().__init__(config, logger or logging.getLogger("FlashBackend"))
        self.partition = partition
        self.handle: Optional[FlashNamespace] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def mount(self) -> bool:
        try:
            self.handle = self.partition.open_namespace(self.config.namespace)
        except StoreIOError as e:
            self.logger.error(f"Failed to open flash namespace {self.config.namespace!r}: {e}")
            self.handle = None
            return False

        self.logger.info(f"Opened flash namespace {self.config.namespace!r}")
        return True

    def unmount(self):
        if self.handle is None:
            return
        handle, self.handle = self.handle, None
        handle.close()
        self.logger.info(f"Closed flash namespace {self.config.namespace!r}")

    def is_formatted(self) -> bool:
        return self.handle is not None

    def _require_handle(self) -> FlashNamespace:
        if self.handle is None:
            raise StoreIOError("flash namespace is not open")
        return self.handle

    # -------------------------------------------------------------------------
    # Codec
    # -------------------------------------------------------------------------

    def load(self, table: EntryTable) -> int:
        handle = self._require_handle()

        count = handle.get_int(FLASH_COUNT_KEY)
        if count is None:
            self.logger.info("No entries in flash yet")
            table.clear()
            return 0

        count = max(count, 0)
        if count > table.capacity:
            self.logger.warning(
                f"Flash holds {count} entries, ignoring those beyond {table.capacity}"
            )
            count = table.capacity

        pairs = []
        for index in range(count):
            key_name, value_name = slot_keys(index)
            key = handle.get_str(key_name)
            value = handle.get_str(value_name)
            if key is None or value is None:
                self.logger.warning(f"Flash slot {index} incomplete, skipping")
                continue
            pairs.append((key, value))

        loaded = self._fill(table, pairs)
        self.logger.info(f"Loaded {loaded} entries from flash")
        return loaded

    def save(self, table: EntryTable):
        handle = self._require_handle()
        self.logger.info("Saving database to flash...")

        handle.erase_all()
        handle.set_int(FLASH_COUNT_KEY, len(table))
        for index, (key, value) in enumerate(table.items()):
            key_name, value_name = slot_keys(index)
            handle.set_str(key_name, key)
            handle.set_str(value_name, value)
        handle.commit()

        self.logger.info(f"Database saved to flash with {len(table)} entries")

    def wipe(self):
        handle = self._require_handle()
        self.logger.info(f"Erasing flash namespace {self.config.namespace!r}")
        handle.erase_all()
        handle.commit()
