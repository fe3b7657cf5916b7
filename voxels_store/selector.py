"""
Backend Selector

Chooses the storage backend at startup: removable storage when it mounts,
internal flash otherwise.
"""

import logging
from typing import Optional

from .backends import StorageBackend
from .file_backend import FileBackend
from .flash_backend import FlashBackend
from .media import FlashPartition, RemovableMedia
from .models import StoreConfig


def select_backend(
    config: StoreConfig,
    media: RemovableMedia,
    partition: FlashPartition,
    logger: logging.Logger = None,
) -> Optional[StorageBackend]:
    """
    Mount the first available backend.

    Args:
        config: Store configuration.
        media: Removable medium to try first.
        partition: Flash partition used as fallback.
        logger: Logger for selection messages.

    Returns:
        A mounted backend, or None if neither medium is usable.
    """
    logger = logger or logging.getLogger("BackendSelector")

    file_backend = FileBackend(config, media)
    if file_backend.mount():
        logger.info(f"Using removable storage at {media.mount_point}")
        return file_backend

    logger.warning("Removable storage not present or mount failed, falling back to flash")

    flash_backend = FlashBackend(config, partition)
    if flash_backend.mount():
        logger.info(f"Using flash namespace {config.namespace!r}")
        return flash_backend

    logger.error("No storage backend available")
    return None
