"""Common type definitions for the cdb reader.

Defines fundamental types used across all components.
"""

from __future__ import annotations

from typing import NamedTuple

# Core primitive types
Key = bytes
Value = bytes
Position = int
KeyLike = bytes | bytearray | memoryview | str


class HeaderEntry(NamedTuple):
    """One of the 256 header entries locating a hash-slot table."""
    position: Position
    slots: int


class Slot(NamedTuple):
    """A single (hash, record position) pair inside a hash-slot table."""
    hash: int
    position: Position


# On-disk layout: 256 header entries, then tables and records. Every
# header entry, slot and record prefix is a pair of little-endian u32s.
HEADER_ENTRIES = 256
SLOT_SIZE = 8