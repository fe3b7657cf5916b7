#!/usr/bin/env python3
"""
Entry Table for the Voxels Configuration Store

Bounded, order-preserving collection of key/value pairs. Insertion order
determines serialization order, so an existing key is always updated in
place and deletions keep the relative order of the remaining entries.
"""

from typing import Iterable, Iterator, List, Optional, Tuple

from .errors import CapacityExceededError, KeyNotFoundError
from .models import MAX_ENTRIES, Entry


def utf8_len(text: str) -> int:
    """Length of text in UTF-8 bytes, counting escaped raw bytes as one."""
    return len(text.encode("utf-8", errors="surrogateescape"))


def truncate_utf8(text: str, limit: int) -> str:
    """
    Cut text to at most limit UTF-8 bytes.

    A multi-byte character that would straddle the boundary is dropped
    whole. Raw bytes carried as surrogate escapes count as one byte each
    and are kept as they are.
    """
    if utf8_len(text) <= limit:
        return text
    size = 0
    for end, ch in enumerate(text):
        size += utf8_len(ch)
        if size > limit:
            return text[:end]
    return text


class EntryTable:
    """
    Ordered key/value table with a fixed capacity.

    Lookups are linear scans with case-sensitive exact matching.
    """

    def __init__(self, capacity: int = MAX_ENTRIES):
        """
        Initialize an empty table.

        Args:
            capacity: Maximum number of entries.
        """
        self._capacity = capacity
        self._entries: List[Entry] = []

    @property
    def capacity(self) -> int:
        """Maximum number of entries."""
        return self._capacity

    @property
    def is_full(self) -> bool:
        """True when no new key can be inserted."""
        return len(self._entries) >= self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        # Copies, so callers cannot alias table storage
        for entry in self._entries:
            yield Entry(entry.key, entry.value)

    def __contains__(self, key) -> bool:
        return self.find(key) is not None

    def find(self, key: str) -> Optional[int]:
        """Return the index of key, or None if absent."""
        for index, entry in enumerate(self._entries):
            if entry.key == key:
                return index
        return None

    def get(self, key: str) -> str:
        """
        Get the value stored under key.

        Raises:
            KeyNotFoundError: If the key is absent.
        """
        index = self.find(key)
        if index is None:
            raise KeyNotFoundError(key)
        return self._entries[index].value

    def set(self, key: str, value: str) -> bool:
        """
        Insert or overwrite a key.

        An existing key keeps its position; a new key is appended.

        Returns:
            True if a new entry was appended.

        Raises:
            CapacityExceededError: If the key is new and the table is full.
        """
        index = self.find(key)
        if index is not None:
            self._entries[index].value = value
            return False

        if self.is_full:
            raise CapacityExceededError(self._capacity)

        self._entries.append(Entry(key, value))
        return True

    def delete(self, key: str):
        """
        Remove a key, shifting later entries down by one.

        Raises:
            KeyNotFoundError: If the key is absent.
        """
        index = self.find(key)
        if index is None:
            raise KeyNotFoundError(key)
        del self._entries[index]

    def clear(self):
        """Remove all entries."""
        self._entries.clear()

    def load(self, pairs: Iterable[Tuple[str, str]]) -> int:
        """
        Replace the table contents with pairs, in order.

        Pairs beyond capacity are dropped. A repeated key keeps its first
        position and takes the later value.

        Returns:
            Number of pairs dropped for lack of capacity.
        """
        self.clear()
        dropped = 0
        for key, value in pairs:
            try:
                self.set(key, value)
            except CapacityExceededError:
                dropped += 1
        return dropped

    def keys(self) -> List[str]:
        """Keys in table order."""
        return [entry.key for entry in self._entries]

    def items(self) -> List[Tuple[str, str]]:
        """(key, value) pairs in table order."""
        return [(entry.key, entry.value) for entry in self._entries]
