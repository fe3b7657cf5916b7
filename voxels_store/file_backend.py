#!/usr/bin/env python3
"""
File Backend for Removable Storage

Stores the entry table as a line-oriented text file at the mount point:

    # Voxels Database v1.0
    # Format: key=value
    device_name=Kitchen
    boot_count=12

A sibling marker file signals that the medium has been formatted for this
application. Its presence is the only thing distinguishing "never touched"
from "formatted but empty".
"""

import logging
import os
from pathlib import Path
from typing import List, Tuple

from .backends import StorageBackend
from .errors import StoreIOError
from .media import RemovableMedia
from .models import DB_HEADER_LINES, MARKER_CONTENT, BackendKind, StoreConfig
from .table import EntryTable


def parse_lines(text: str, limit: int) -> Tuple[List[Tuple[str, str]], int]:
    """
    Parse database text into (key, value) pairs.

    Comment lines (leading '#') and empty lines are skipped. The key is
    everything before the first '=', the value everything after it. Lines
    with no '=' are ignored.

    Args:
        text: File contents.
        limit: Maximum number of pairs to return.

    Returns:
        Tuple of (pairs, number of data lines dropped past the limit).
    """
    pairs: List[Tuple[str, str]] = []
    dropped = 0

    for line in text.split("\n"):
        line = line.rstrip("\r\n")
        if not line or line.startswith("#"):
            continue

        key, sep, value = line.partition("=")
        if not sep:
            continue

        if len(pairs) >= limit:
            dropped += 1
            continue
        pairs.append((key, value))

    return pairs, dropped


def format_lines(pairs) -> str:
    """Render header plus one key=value line per pair."""
    lines = list(DB_HEADER_LINES)
    lines.extend(f"{key}={value}" for key, value in pairs)
    return "\n".join(lines) + "\n"


class FileBackend(StorageBackend):
    """Entry table persisted as a text file on removable storage."""

    kind = BackendKind.REMOVABLE_FILE
    load_failure_needs_format = True

    def __init__(
        self,
        config: StoreConfig,
        media: RemovableMedia,
        logger: logging.Logger = None,
    ):
        """
        Initialize file backend.

        Args:
            config: Store configuration.
            media: Removable medium holding the files.
            logger: Logger instance (creates one if not provided).
        """
        super().__init__(config, logger or logging.getLogger("FileBackend"))
        self.media = media

    @property
    def db_path(self) -> Path:
        return self.media.mount_point / self.config.db_file

    @property
    def marker_path(self) -> Path:
        return self.media.mount_point / self.config.marker_file

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def mount(self) -> bool:
        return self.media.mount()

    def unmount(self):
        if not self.media.unmount():
            raise StoreIOError(f"failed to unmount {self.media.mount_point}")

    def is_formatted(self) -> bool:
        return self.marker_path.exists()

    # -------------------------------------------------------------------------
    # Codec
    # -------------------------------------------------------------------------

    def load(self, table: EntryTable) -> int:
        self.logger.info(f"Loading database from {self.db_path}")

        try:
            raw = self.db_path.read_bytes()
        except FileNotFoundError as e:
            raise StoreIOError(f"database file not found: {self.db_path}") from e
        except OSError as e:
            raise StoreIOError(f"cannot read {self.db_path}: {e}") from e

        text = raw.decode("utf-8", errors="surrogateescape")
        pairs, excess = parse_lines(text, table.capacity)
        if excess:
            self.logger.warning(f"Ignored {excess} lines beyond capacity {table.capacity}")

        count = self._fill(table, pairs)
        self.logger.info(f"Loaded {count} entries from database")
        return count

    def save(self, table: EntryTable):
        self.logger.info(f"Saving database to {self.db_path}")
        self._write_text(self.db_path, format_lines(table.items()))
        self.logger.info(f"Database saved with {len(table)} entries")

    def wipe(self):
        mount_point = self.media.mount_point
        self.logger.info(f"Wiping removable storage at {mount_point}")

        try:
            for path in mount_point.iterdir():
                if path.is_file() and not path.is_symlink():
                    self.logger.info(f"Removing: {path}")
                    path.unlink()
        except OSError as e:
            raise StoreIOError(f"cannot clear {mount_point}: {e}") from e

        self.create_empty()

    def create_empty(self):
        """Write an empty database file and the format marker."""
        self.logger.info("Creating empty database...")
        self._write_text(self.db_path, format_lines([]))
        self._write_text(self.marker_path, MARKER_CONTENT)
        self.logger.info("Empty database created")

    def _write_text(self, path: Path, text: str):
        """Write text to path, via a temp file and rename if configured."""
        target = path.with_name(path.name + ".tmp") if self.config.atomic_save else path
        try:
            with open(target, "w", encoding="utf-8", errors="surrogateescape", newline="\n") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            if target != path:
                os.replace(target, path)
        except (OSError, UnicodeEncodeError) as e:
            raise StoreIOError(f"failed to write {path}: {e}") from e
