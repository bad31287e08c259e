"""cdb reader - read-only access to constant database (cdb) files in Python."""

from .core.config import CDBConfig
from .core.errors import CDBError, ConfigError, StorageError
from .core.reader import LookupContext, RecordView, SimpleCDBReader, open_cdb
from .core.types import HeaderEntry, Key, Slot, Value
from .components.hashing import cdb_hash
from .components.storage import BufferStorage, FileStorage, MappedStorage, open_storage

__all__ = [
    "CDBConfig",
    "CDBError",
    "ConfigError",
    "StorageError",
    "SimpleCDBReader",
    "LookupContext",
    "RecordView",
    "open_cdb",
    "cdb_hash",
    "BufferStorage",
    "FileStorage",
    "MappedStorage",
    "open_storage",
    "HeaderEntry",
    "Key",
    "Slot",
    "Value",
]
