#!/usr/bin/env python3
"""
Data Models for the Voxels Configuration Store

This module contains the constants, enums and data classes shared by the
entry table, the storage backends and the store itself.
"""

import yaml
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from .errors import InvalidArgumentError


# =============================================================================
# Constants (fixed bounds for all limits)
# =============================================================================

# Maximum number of entries held in the table
MAX_ENTRIES = 100

# Key and value bounds in UTF-8 bytes (buffer size minus terminator)
MAX_KEY_BYTES = 63
MAX_VALUE_BYTES = 127

# Removable storage layout
DEFAULT_MOUNT_POINT = "/sdcard"
DEFAULT_DB_FILE = "voxels.db"
DEFAULT_MARKER_FILE = ".voxels_init"

DB_HEADER_LINES = (
    "# Voxels Database v1.0",
    "# Format: key=value",
)
MARKER_CONTENT = "initialized\n"

# Internal flash layout
DEFAULT_FLASH_PATH = "nvs.sqlite"
DEFAULT_NAMESPACE = "voxels_db"
FLASH_COUNT_KEY = "count"
FLASH_KEY_PREFIX = "_k"
FLASH_VALUE_PREFIX = "_v"


# =============================================================================
# Enums
# =============================================================================

class StoreStatus(Enum):
    """Store lifecycle states."""
    NOT_PRESENT = "not_present"
    NOT_INITIALIZED = "not_initialized"
    READY = "ready"
    ERROR = "error"


class BackendKind(Enum):
    """Storage medium backing the entry table."""
    NONE = "None"
    FLASH_NAMESPACE = "NVS Flash"
    REMOVABLE_FILE = "SD Card"

    @property
    def label(self) -> str:
        """Human readable storage type."""
        return self.value


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class Entry:
    """A single key/value pair."""
    key: str
    value: str


@dataclass
class StoreConfig:
    """Configuration for the configuration store."""
    # Removable storage
    mount_point: str = DEFAULT_MOUNT_POINT
    db_file: str = DEFAULT_DB_FILE
    marker_file: str = DEFAULT_MARKER_FILE
    atomic_save: bool = True  # Write to temp file, then rename

    # Internal flash
    flash_path: str = DEFAULT_FLASH_PATH
    namespace: str = DEFAULT_NAMESPACE

    # Limits
    capacity: int = MAX_ENTRIES
    max_key_bytes: int = MAX_KEY_BYTES
    max_value_bytes: int = MAX_VALUE_BYTES
    strict_lengths: bool = True  # Reject oversize input instead of truncating

    # Logging
    log_level: str = "INFO"
    log_file: str = ""

    def __post_init__(self):
        for name in ("capacity", "max_key_bytes", "max_value_bytes"):
            if getattr(self, name) <= 0:
                raise InvalidArgumentError(f"{name} must be positive")

    @classmethod
    def from_yaml(cls, path: str) -> "StoreConfig":
        """Load configuration from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreConfig":
        """Build configuration from a nested dictionary."""
        storage = data.get("storage") or {}
        flash = data.get("flash") or {}
        limits = data.get("limits") or {}
        log = data.get("logging") or {}

        return cls(
            mount_point=storage.get("mount_point", DEFAULT_MOUNT_POINT),
            db_file=storage.get("db_file", DEFAULT_DB_FILE),
            marker_file=storage.get("marker_file", DEFAULT_MARKER_FILE),
            atomic_save=storage.get("atomic_save", True),
            flash_path=flash.get("path", DEFAULT_FLASH_PATH),
            namespace=flash.get("namespace", DEFAULT_NAMESPACE),
            capacity=limits.get("capacity", MAX_ENTRIES),
            max_key_bytes=limits.get("max_key_bytes", MAX_KEY_BYTES),
            max_value_bytes=limits.get("max_value_bytes", MAX_VALUE_BYTES),
            strict_lengths=limits.get("strict_lengths", True),
            log_level=log.get("level", "INFO"),
            log_file=log.get("file", "") or "",
        )

    def to_dict(self) -> Dict:
        """Convert config to dictionary."""
        return {
            "storage": {
                "mount_point": self.mount_point,
                "db_file": self.db_file,
                "marker_file": self.marker_file,
                "atomic_save": self.atomic_save,
            },
            "flash": {
                "path": self.flash_path,
                "namespace": self.namespace,
            },
            "limits": {
                "capacity": self.capacity,
                "max_key_bytes": self.max_key_bytes,
                "max_value_bytes": self.max_value_bytes,
                "strict_lengths": self.strict_lengths,
            },
            "logging": {
                "level": self.log_level,
                "file": self.log_file,
            },
        }

    def to_yaml(self, path: str):
        """Write configuration to YAML file."""
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
