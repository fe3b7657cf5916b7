#!/usr/bin/env python3
"""
Storage Media for the Voxels Configuration Store

The store only needs two things from the hardware layer:
- Removable storage that can be mounted and unmounted
- An internal flash partition that can open a key/value namespace

This module defines those interfaces and host implementations:
- DirectoryMedia: a directory stands in for the SD card mount point
- SqliteFlashPartition: a SQLite file stands in for the NVS partition
"""

import logging
import os
import sqlite3
from pathlib import Path
from typing import Optional

from .errors import StoreIOError


# =============================================================================
# Removable Storage
# =============================================================================

class RemovableMedia:
    """Interface for a mountable removable medium."""

    @property
    def mount_point(self) -> Path:
        raise NotImplementedError

    @property
    def is_mounted(self) -> bool:
        raise NotImplementedError

    def mount(self) -> bool:
        """Mount the medium. Returns True on success."""
        raise NotImplementedError

    def unmount(self) -> bool:
        """Unmount the medium. Returns True on success."""
        raise NotImplementedError


class DirectoryMedia(RemovableMedia):
    """
    Removable medium backed by a host directory.

    Mounting succeeds only if the directory exists and is writable, which
    models "card inserted" vs "no card".
    """

    def __init__(self, path: str, logger: logging.Logger = None):
        """
        Initialize directory media.

        Args:
            path: Directory acting as the mount point.
            logger: Logger instance (creates one if not provided).
        """
        self._path = Path(path)
        self._mounted = False
        self.logger = logger or logging.getLogger("DirectoryMedia")

    @property
    def mount_point(self) -> Path:
        return self._path

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    def mount(self) -> bool:
        if not self._path.is_dir():
            self.logger.warning(f"Mount point not present: {self._path}")
            return False
        if not os.access(self._path, os.R_OK | os.W_OK):
            self.logger.warning(f"Mount point not writable: {self._path}")
            return False

        self._mounted = True
        self.logger.info(f"Mounted removable storage at {self._path}")
        return True

    def unmount(self) -> bool:
        if self._mounted:
            self.logger.info(f"Unmounted removable storage at {self._path}")
        self._mounted = False
        return True


# =============================================================================
# Internal Flash
# =============================================================================

class FlashNamespace:
    """Interface for an open key/value namespace in internal flash."""

    name: str = ""

    def get_int(self, key: str) -> Optional[int]:
        """Read an integer, or None if the key is absent."""
        raise NotImplementedError

    def get_str(self, key: str) -> Optional[str]:
        """Read a string, or None if the key is absent."""
        raise NotImplementedError

    def set_int(self, key: str, value: int):
        raise NotImplementedError

    def set_str(self, key: str, value: str):
        raise NotImplementedError

    def erase_all(self):
        """Erase every key in this namespace."""
        raise NotImplementedError

    def commit(self):
        """Make pending writes durable."""
        raise NotImplementedError

    def close(self):
        """Release the handle. Uncommitted writes are discarded."""
        raise NotImplementedError


class FlashPartition:
    """Interface for the internal flash key/value partition."""

    def open_namespace(self, name: str) -> FlashNamespace:
        """
        Open (creating if needed) a namespace for read/write.

        Raises:
            StoreIOError: If the partition cannot be opened.
        """
        raise NotImplementedError


# Value kinds stored in the nvs table
KIND_INT = "i32"
KIND_STR = "str"


class SqliteNamespace(FlashNamespace):
    """Namespace handle over a SQLite connection."""

    def __init__(self, conn: sqlite3.Connection, name: str):
        self._conn = conn
        self.name = name

    def _read(self, key: str, kind: str) -> Optional[str]:
        try:
            row = self._conn.execute(
                "SELECT kind, value FROM nvs WHERE namespace = ? AND key = ?",
                (self.name, key),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreIOError(f"flash read failed for {key!r}: {e}") from e

        if row is None:
            return None
        if row[0] != kind:
            raise StoreIOError(f"flash type mismatch for {key!r}: {row[0]} != {kind}")
        return row[1]

    def _write(self, key: str, kind: str, value: str):
        try:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO nvs (namespace, key, kind, value)
                VALUES (?, ?, ?, ?)
                """,
                (self.name, key, kind, value),
            )
        except sqlite3.Error as e:
            raise StoreIOError(f"flash write failed for {key!r}: {e}") from e

    def get_int(self, key: str) -> Optional[int]:
        raw = self._read(key, KIND_INT)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError as e:
            raise StoreIOError(f"flash value for {key!r} is not an integer: {raw!r}") from e

    def get_str(self, key: str) -> Optional[str]:
        return self._read(key, KIND_STR)

    def set_int(self, key: str, value: int):
        self._write(key, KIND_INT, str(int(value)))

    def set_str(self, key: str, value: str):
        self._write(key, KIND_STR, value)

    def erase_all(self):
        try:
            self._conn.execute("DELETE FROM nvs WHERE namespace = ?", (self.name,))
        except sqlite3.Error as e:
            raise StoreIOError(f"flash erase failed: {e}") from e

    def commit(self):
        try:
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreIOError(f"flash commit failed: {e}") from e

    def close(self):
        try:
            self._conn.rollback()
            self._conn.close()
        except sqlite3.Error as e:
            raise StoreIOError(f"flash close failed: {e}") from e


class SqliteFlashPartition(FlashPartition):
    """
    Flash partition stored in a SQLite database file.

    Each namespace is a set of rows in a single table, keyed by
    (namespace, key).
    """

    def __init__(self, db_path: str):
        """
        Initialize partition.

        Args:
            db_path: Path to SQLite database file.
        """
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS nvs (
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                kind TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (namespace, key)
            )
        """)
        conn.commit()
        return conn

    def open_namespace(self, name: str) -> FlashNamespace:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreIOError(f"cannot open flash partition {self.db_path}: {e}") from e
        return SqliteNamespace(conn, name)
