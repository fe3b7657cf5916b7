#!/usr/bin/env python3
"""
Storage Backend Interface

Every medium that can back the entry table implements the same small
capability set, so the store never branches on which one is active:

    mount()         -> bool     Acquire the medium
    is_formatted()  -> bool     Medium carries this application's data
    load(table)     -> int      Fill the table, return entry count
    save(table)                 Fully rewrite persisted content
    wipe()                      Erase persisted content, leave fresh state
    unmount()                   Release the medium
"""

import logging

from .models import BackendKind, StoreConfig
from .table import EntryTable, truncate_utf8


class StorageBackend:
    """Base class for storage backends."""

    kind = BackendKind.NONE

    # A failed load at startup means the medium must be reformatted
    load_failure_needs_format = False

    def __init__(self, config: StoreConfig, logger: logging.Logger = None):
        """
        Initialize backend.

        Args:
            config: Store configuration.
            logger: Logger instance (creates one if not provided).
        """
        self.config = config
        self.logger = logger or logging.getLogger(type(self).__name__)

    @property
    def label(self) -> str:
        """Storage type shown to users."""
        return self.kind.label

    def mount(self) -> bool:
        raise NotImplementedError

    def is_formatted(self) -> bool:
        raise NotImplementedError

    def load(self, table: EntryTable) -> int:
        """
        Replace table contents with persisted entries.

        Raises:
            StoreIOError: If the medium cannot be read.
        """
        raise NotImplementedError

    def save(self, table: EntryTable):
        """
        Persist table contents, replacing what was there.

        Raises:
            StoreIOError: If the medium cannot be written.
        """
        raise NotImplementedError

    def wipe(self):
        """
        Erase persisted content and leave the medium in a fresh state.

        Raises:
            StoreIOError: If the medium cannot be erased.
        """
        raise NotImplementedError

    def unmount(self):
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _bound_pair(self, key: str, value: str):
        """Clip a persisted pair to the table's byte bounds."""
        bounded_key = truncate_utf8(key, self.config.max_key_bytes)
        bounded_value = truncate_utf8(value, self.config.max_value_bytes)
        if bounded_key != key or bounded_value != value:
            self.logger.warning(f"Truncated oversize entry {bounded_key!r} on load")
        return bounded_key, bounded_value

    def _fill(self, table: EntryTable, pairs) -> int:
        """Load pairs into table, logging anything dropped."""
        dropped = table.load(self._bound_pair(key, value) for key, value in pairs)
        if dropped:
            self.logger.warning(
                f"Dropped {dropped} entries beyond capacity {table.capacity}"
            )
        return len(table)
