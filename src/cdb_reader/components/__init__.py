"""Building blocks: key hashing and storage accessors."""

from .hashing import cdb_hash
from .storage import BufferStorage, FileStorage, MappedStorage, open_storage

__all__ = ["cdb_hash", "BufferStorage", "FileStorage", "MappedStorage", "open_storage"]
