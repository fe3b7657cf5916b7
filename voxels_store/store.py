#!/usr/bin/env python3
"""
Voxels Configuration Store

Owns the store lifecycle and the public CRUD API. At startup the store
mounts removable storage if it can and falls back to internal flash
otherwise; after that every read and write goes to the in-memory entry
table, and save() writes the table back to whichever medium is active.

Lifecycle:
    NOT_PRESENT --mount ok, marker missing------------> NOT_INITIALIZED
    NOT_PRESENT --mount ok, marker present, load ok---> READY
    NOT_PRESENT --mount fails, flash opens------------> READY
    NOT_PRESENT --mount fails, flash open fails-------> ERROR
    NOT_INITIALIZED --format_and_init ok--------------> READY
    NOT_INITIALIZED --format_and_init fails-----------> ERROR
    READY --deinit------------------------------------> NOT_PRESENT

Callers poll status for the init path; CRUD failures raise per call.
Every public method runs under one re-entrant lock, so a store may be
shared by several threads in one process.
"""

import logging
import re
import threading
from typing import Callable, List, Optional, Tuple

from .backends import StorageBackend
from .errors import (
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
    FlashPartition,
    RemovableMedia,
    SqliteFlashPartition,
)
from .models import BackendKind, StoreConfig, StoreStatus
from .selector import select_backend
from .table import EntryTable, truncate_utf8, utf8_len


# Maximum status handlers (bounded collections)
MAX_STATUS_HANDLERS = 32

# Leading integer, as parsed by C atoi()
_ATOI_PATTERN = re.compile(r"\s*([+-]?\d+)")


class ConfigStore:
    """
    Key/value configuration store with removable and flash backends.

    Create one per application and pass it to whatever needs settings.
    """

    def __init__(
        self,
        config: StoreConfig,
        media: RemovableMedia,
        partition: FlashPartition,
        logger: logging.Logger = None,
    ):
        """
        Initialize the store. Nothing is mounted until init().

        Args:
            config: Store configuration.
            media: Removable medium tried first.
            partition: Internal flash partition used as fallback.
            logger: Logger instance (creates one if not provided).
        """
        self.config = config
        self.media = media
        self.partition = partition
        self.logger = logger or logging.getLogger("ConfigStore")

        self._lock = threading.RLock()
        self._status = StoreStatus.NOT_PRESENT
        self._backend: Optional[StorageBackend] = None
        self._table = EntryTable(config.capacity)
        self._dirty = False
        self._status_handlers: List[Callable] = []

    @classmethod
    def from_config(cls, config: StoreConfig, logger: logging.Logger = None) -> "ConfigStore":
        """Build a store over a mount-point directory and a SQLite flash file."""
        return cls(
            config,
            DirectoryMedia(config.mount_point),
            SqliteFlashPartition(config.flash_path),
            logger=logger,
        )

    def __enter__(self) -> "ConfigStore":
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.deinit()
        return False

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @property
    def status(self) -> StoreStatus:
        return self._status

    @property
    def backend_kind(self) -> BackendKind:
        return self._backend.kind if self._backend else BackendKind.NONE

    @property
    def dirty(self) -> bool:
        """True if the table has changes not yet saved."""
        return self._dirty

    @property
    def count(self) -> int:
        return len(self._table)

    @property
    def capacity(self) -> int:
        return self._table.capacity

    def is_ready(self) -> bool:
        return self._status is StoreStatus.READY

    def get_status(self) -> StoreStatus:
        return self._status

    def get_storage_type(self) -> str:
        """Return "SD Card", "NVS Flash" or "None"."""
        return self.backend_kind.label

    def on_status_change(self, handler: Callable):
        """Register handler(old_status, new_status)."""
        if len(self._status_handlers) >= MAX_STATUS_HANDLERS:
            self.logger.warning("Max status handlers reached")
            return
        self._status_handlers.append(handler)

    def _set_status(self, status: StoreStatus):
        """Update status and notify handlers."""
        old_status = self._status
        self._status = status
        if old_status is status:
            return

        self.logger.info(f"Status: {old_status.value} -> {status.value}")
        for handler in self._status_handlers:
            try:
                handler(old_status, status)
            except Exception as e:
                self.logger.error(f"Status handler error: {e}")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def init(self) -> StoreStatus:
        """
        Select a backend and load persisted entries.

        Returns:
            READY, NOT_INITIALIZED if removable storage needs formatting,
            or ERROR if no medium is usable.
        """
        with self._lock:
            if self._backend is not None or self._status is not StoreStatus.NOT_PRESENT:
                try:
                    self.deinit()
                except StoreIOError as e:
                    self.logger.warning(f"Release before re-init failed: {e}")

            self.logger.info("Initializing configuration store...")

            backend = select_backend(self.config, self.media, self.partition, self.logger)
            if backend is None:
                self._set_status(StoreStatus.ERROR)
                return self._status

            self._backend = backend

            if not backend.is_formatted():
                self.logger.warning("Database not initialized - marker file missing")
                self._set_status(StoreStatus.NOT_INITIALIZED)
                return self._status

            try:
                backend.load(self._table)
            except StoreIOError as e:
                self._table.clear()
                if backend.load_failure_needs_format:
                    self.logger.warning(f"Failed to load database - needs initialization: {e}")
                    self._set_status(StoreStatus.NOT_INITIALIZED)
                    return self._status
                self.logger.warning(f"Failed to load entries, starting empty: {e}")

            self._dirty = False
            self._set_status(StoreStatus.READY)
            self.logger.info(
                f"Database ready on {backend.label} with {len(self._table)} entries"
            )
            return self._status

    def format_and_init(self) -> StoreStatus:
        """
        Erase the active medium and start a fresh, empty database.

        Uses the backend chosen by init(), selecting one first if none is
        active. This is the only way out of NOT_INITIALIZED.

        Returns:
            READY on success, ERROR otherwise.
        """
        with self._lock:
            self.logger.info("Formatting storage and initializing database...")

            if self._backend is None:
                self._backend = select_backend(
                    self.config, self.media, self.partition, self.logger
                )
                if self._backend is None:
                    self._set_status(StoreStatus.ERROR)
                    return self._status

            try:
                self._backend.wipe()
                self._table.clear()
                self._dirty = False
                self._backend.load(self._table)
            except StoreIOError as e:
                self.logger.error(f"Database initialization failed after format: {e}")
                self._table.clear()
                self._set_status(StoreStatus.ERROR)
                return self._status

            self._set_status(StoreStatus.READY)
            self.logger.info("Database ready after format")
            return self._status

    def wipe(self):
        """
        Erase persisted content and empty the table. Status is unchanged.

        Raises:
            StorageNotPresentError: If no backend is active.
            StoreIOError: If the medium cannot be erased.
        """
        with self._lock:
            if self._backend is None:
                raise StorageNotPresentError()

            self.logger.info(f"Wiping {self._backend.label} database...")
            self._backend.wipe()
            self._table.clear()
            self._dirty = False

    def save(self):
        """
        Write the table to the active medium if it has changed.

        Raises:
            InvalidStateError: If the store is not ready.
            StoreIOError: If writing fails; the table stays dirty.
        """
        with self._lock:
            self._require_ready()

            if not self._dirty:
                self.logger.debug("No changes to save")
                return

            self._backend.save(self._table)
            self._dirty = False

    def deinit(self):
        """
        Flush pending changes, release the medium and reset to NOT_PRESENT.

        A failed flush is logged and the in-memory state is discarded
        anyway.

        Raises:
            StoreIOError: If releasing the medium fails (after the reset).
        """
        with self._lock:
            self.logger.info("Deinitializing configuration store...")

            if self._dirty and self.is_ready():
                try:
                    self.save()
                except StoreError as e:
                    self.logger.error(f"Failed to save pending changes: {e}")

            backend, self._backend = self._backend, None
            self._table.clear()
            self._dirty = False
            self._set_status(StoreStatus.NOT_PRESENT)

            if backend is not None:
                backend.unmount()

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def set_string(self, key: str, value: str):
        """
        Store value under key, appending new keys at the end.

        Raises:
            InvalidStateError: If the store is not ready.
            InvalidArgumentError: If key or value is malformed or too long.
            CapacityExceededError: If the key is new and the table is full.
        """
        with self._lock:
            self._require_ready()
            key = self._check_key(key)
            value = self._check_value(key, value)

            self._table.set(key, value)
            self._dirty = True
            self.logger.debug(f"Set {key} = {value}")

    def get_string(self, key: str, max_len: Optional[int] = None) -> str:
        """
        Get the value stored under key.

        Args:
            key: Key name.
            max_len: Caller buffer size in bytes, terminator included. The
                value is silently cut to fit, if given.

        Raises:
            InvalidStateError: If the store is not ready.
            KeyNotFoundError: If the key is absent.
        """
        with self._lock:
            self._require_ready()
            if key is None:
                raise InvalidArgumentError("key is required")

            value = self._table.get(key)
            if max_len is None:
                return value
            if max_len <= 0:
                raise InvalidArgumentError("max_len must be positive")
            return truncate_utf8(value, max_len - 1)

    def set_int(self, key: str, value: int):
        """Store an integer as decimal text."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgumentError(f"integer required for {key!r}")
        self.set_string(key, f"{value:d}")

    def get_int(self, key: str) -> int:
        """
        Get an integer stored as decimal text.

        Parses like atoi(): leading whitespace and sign, then digits. Text
        with no leading digits reads as 0.
        """
        text = self.get_string(key)
        match = _ATOI_PATTERN.match(text)
        return int(match.group(1)) if match else 0

    def delete(self, key: str):
        """
        Remove key, keeping the order of the remaining entries.

        Raises:
            InvalidStateError: If the store is not ready.
            KeyNotFoundError: If the key is absent.
        """
        with self._lock:
            self._require_ready()
            if key is None:
                raise InvalidArgumentError("key is required")

            self._table.delete(key)
            self._dirty = True
            self.logger.debug(f"Deleted key: {key}")

    def key_exists(self, key: str) -> bool:
        with self._lock:
            if not self.is_ready() or key is None:
                return False
            return key in self._table

    def keys(self) -> List[str]:
        """Keys in storage order."""
        with self._lock:
            self._require_ready()
            return self._table.keys()

    def items(self) -> List[Tuple[str, str]]:
        """(key, value) pairs in storage order."""
        with self._lock:
            self._require_ready()
            return self._table.items()

    def get_string_or(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Value for key, or default if not ready or absent."""
        try:
            return self.get_string(key)
        except (InvalidStateError, KeyNotFoundError):
            return default

    def get_int_or(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Integer for key, or default if not ready or absent."""
        try:
            return self.get_int(key)
        except (InvalidStateError, KeyNotFoundError):
            return default

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _require_ready(self):
        if self._status is StoreStatus.READY:
            return
        if self._status is StoreStatus.NOT_INITIALIZED:
            raise NeedsFormatError()
        raise InvalidStateError(f"store is {self._status.value}")

    def _check_key(self, key) -> str:
        if not isinstance(key, str):
            raise InvalidArgumentError("key must be a string")
        if not key:
            raise InvalidArgumentError("key must not be empty")
        if "=" in key or "\r" in key or "\n" in key:
            raise InvalidArgumentError(f"key {key!r} contains '=' or a line break")
        if key.startswith("#"):
            raise InvalidArgumentError(f"key {key!r} starts with '#'")

        limit = self.config.max_key_bytes
        if utf8_len(key) > limit:
            if self.config.strict_lengths:
                raise KeyTooLongError(key, limit)
            key = truncate_utf8(key, limit)
            self.logger.debug(f"Truncated key to {key!r}")
        return key

    def _check_value(self, key: str, value) -> str:
        if not isinstance(value, str):
            raise InvalidArgumentError(f"value for {key!r} must be a string")
        if "\r" in value or "\n" in value:
            raise InvalidArgumentError(f"value for {key!r} contains a line break")

        limit = self.config.max_value_bytes
        if utf8_len(value) > limit:
            if self.config.strict_lengths:
                raise ValueTooLongError(key, limit)
            value = truncate_utf8(value, limit)
            self.logger.debug(f"Truncated value for {key!r}")
        return value
