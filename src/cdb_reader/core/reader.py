"""cdb reader implementation - main public API.

Parses the header, scans hash-slot tables and walks the records stored
under a key, reading everything through a storage accessor.
"""

from __future__ import annotations

import io
import logging
import struct
import warnings
from collections.abc import Iterator
from dataclasses import dataclass, field

from ..components.hashing import cdb_hash
from ..components.storage import Source, open_storage
from ..interfaces.storage import StorageAccessor
from .config import DEFAULT_SCRATCH_SIZE, CDBConfig
from .errors import ConfigError, StorageError
from .types import HEADER_ENTRIES, SLOT_SIZE, HeaderEntry, Key, KeyLike, Position, Slot, Value

logger = logging.getLogger(__name__)

# Header entry, slot and record prefix all share this layout:
# [u32 LE][u32 LE]
_PAIR = struct.Struct("<II")

_MISSING = object()


def _as_key(key: KeyLike) -> Key:
    """Normalise a lookup key to bytes."""
    if isinstance(key, bytes):
        return key
    if isinstance(key, (bytearray, memoryview)):
        return bytes(key)
    if isinstance(key, str):
        return key.encode("utf-8")
    raise TypeError(f"Key {key!r} should be bytes or str")


@dataclass
class LookupContext:
    """Caller-owned progress through one key's slot sequence.

    Attributes:
        loop: Number of slots visited for the current key (0 = start over)
        khash: Hash of the current key
        kpos: Position of the next slot to visit
        hpos: Position of the current hash-slot table
        hslots: Number of slots in the current table
        dpos: Position of the last matched value
        dlen: Length of the last matched value
        buf: Scratch space for slot reads and key comparison

    Invariants:
        - khash, kpos, hpos and hslots are meaningful only while loop > 0
        - dpos and dlen are meaningful only after a successful match
        - A context must not be shared between concurrent lookups
    """

    loop: int = 0
    khash: int = 0
    kpos: Position = 0
    hpos: Position = 0
    hslots: int = 0
    dpos: Position = 0
    dlen: int = 0
    buf: bytearray = field(default_factory=lambda: bytearray(DEFAULT_SCRATCH_SIZE), repr=False)

    def __post_init__(self) -> None:
        if len(self.buf) < SLOT_SIZE:
            raise ConfigError(f"Context buffer must hold at least {SLOT_SIZE} bytes, got {len(self.buf)}")


class RecordView:
    """Read-only, seekable window over one matched value.

    Args:
        storage: Accessor the value is read through
        position: Absolute offset of the value
        length: Length of the value in bytes
    """

    def __init__(self, storage: StorageAccessor, position: Position, length: int):
        self._storage = storage
        self.position = position
        self.length = length
        self._offset = 0

    def __len__(self) -> int:
        return self.length

    def __bytes__(self) -> bytes:
        return self.tobytes()

    def __repr__(self) -> str:
        return f"RecordView(position={self.position}, length={self.length})"

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._offset

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            new = offset
        elif whence == io.SEEK_CUR:
            new = self._offset + offset
        elif whence == io.SEEK_END:
            new = self.length + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if new < 0:
            raise ValueError(f"Negative seek position {new}")
        self._offset = new
        return new

    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to size bytes at offset relative to the start of the value."""
        if offset < 0:
            raise ValueError(f"Negative offset {offset}")
        size = max(0, min(size, self.length - offset))
        if size == 0:
            return b""
        return self._storage.read_at(self.position + offset, size)

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = self.length
        data = self.read_at(self._offset, size)
        self._offset += len(data)
        return data

    def readinto(self, buffer) -> int:
        view = memoryview(buffer).cast("B")
        data = self.read(len(view))
        view[:len(data)] = data
        return len(data)

    def tobytes(self) -> bytes:
        """Return the whole value regardless of the current offset."""
        return self.read_at(0, self.length)


class SimpleCDBReader:
    """Read-only lookups against a cdb database.

    Args:
        storage: Accessor over the database bytes
        config: Reader configuration
        name: Label used in logs and warnings

    Public API:
        - new_context(): Create a reusable lookup context
        - find_start(context): Reset a context for a new key
        - find(key, context): First record under key
        - find_next(key, context): Next record under the same key
        - data(key, context): First value under key, materialised
        - get / get_all / in / []: dict-style conveniences

    Invariants:
        - The database is never modified
        - All per-search state lives in the caller's LookupContext
        - Storage failures propagate as StorageError; absence is None
    """

    def __init__(self, storage: StorageAccessor, config: CDBConfig | None = None, name: str | None = None):
        self.config = config or CDBConfig()
        self.name = name or getattr(storage, "name", type(storage).__name__)
        self._storage: StorageAccessor | None = storage

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def closed(self) -> bool:
        return self._storage is None

    @property
    def storage(self) -> StorageAccessor:
        if self._storage is None:
            raise StorageError(f"Database {self.name} is closed")
        return self._storage

    def close(self) -> None:
        """Release the underlying storage. Safe to call more than once."""
        storage, self._storage = self._storage, None
        if storage is not None:
            storage.close()
            logger.info(f"Closed cdb {self.name}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        if getattr(self, "_storage", None) is None:
            return
        if self.config.warn_unclosed:
            warnings.warn(f"unclosed cdb {self.name!r}", ResourceWarning, source=self)
            logger.warning(f"cdb {self.name} was not closed explicitly")
        self.close()

    # ------------------------------------------------------------------
    # Lookup protocol

    def new_context(self) -> LookupContext:
        """Return a fresh context sized by config.scratch_size."""
        return LookupContext(buf=bytearray(self.config.scratch_size))

    def find_start(self, context: LookupContext) -> None:
        """Reset context so the next step starts a new key search."""
        context.loop = 0

    def find(self, key: KeyLike, context: LookupContext | None = None) -> RecordView | None:
        """Return the first record under key, or None if there is none."""
        if context is None:
            context = self.new_context()
        self.find_start(context)
        return self.find_next(key, context)

    def find_next(self, key: KeyLike, context: LookupContext) -> RecordView | None:
        """Return the next record under key, or None when exhausted.

        Continues the search where the previous find/find_next on this
        context stopped; key must be the same key.
        """
        storage = self.storage
        key = _as_key(key)
        if not self._step(storage, key, context):
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"No (more) records for key {key!r} in {self.name}")
            return None
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Matched key {key!r} in {self.name}: dpos={context.dpos}, dlen={context.dlen}")
        return RecordView(storage, context.dpos, context.dlen)

    def data(self, key: KeyLike, context: LookupContext | None = None) -> Value | None:
        """Return the first value under key as bytes, or None."""
        view = self.find(key, context)
        return None if view is None else view.tobytes()

    def header_entry(self, index: int, context: LookupContext | None = None) -> HeaderEntry:
        """Return header entry index (0-255) as (position, slots)."""
        if not 0 <= index < HEADER_ENTRIES:
            raise IndexError(f"Header index {index} out of range")
        if context is None:
            context = self.new_context()
        return HeaderEntry(*self._read_pair(self.storage, index * SLOT_SIZE, context))

    # ------------------------------------------------------------------
    # Dict-style conveniences

    def get(self, key: KeyLike, default: Value | None = None) -> Value | None:
        """Return the first value under key, or default if missing."""
        value = self.data(key)
        return default if value is None else value

    def get_all(self, key: KeyLike) -> Iterator[Value]:
        """Yield every value stored under key, in slot order."""
        key = _as_key(key)
        context = self.new_context()
        view = self.find(key, context)
        while view is not None:
            yield view.tobytes()
            view = self.find_next(key, context)

    def __contains__(self, key: KeyLike) -> bool:
        return self.find(key) is not None

    def __getitem__(self, key: KeyLike) -> Value:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            raise KeyError(key)
        return value

    # ------------------------------------------------------------------
    # Slot scanning internals

    def _read_pair(self, storage: StorageAccessor, pos: Position, context: LookupContext) -> Slot:
        """Read two little-endian u32s at pos through the context buffer."""
        view = memoryview(context.buf)[:SLOT_SIZE]
        storage.readinto_at(view, pos)
        return Slot(*_PAIR.unpack(view))

    def _match(self, storage: StorageAccessor, key: Key, pos: Position, context: LookupContext) -> bool:
        """Compare key with the stored key at pos, one scratch buffer at a time."""
        buf = memoryview(context.buf)
        klen = len(key)
        n = 0
        while n < klen:
            chunk = buf[:min(len(buf), klen - n)]
            storage.readinto_at(chunk, pos + n)
            if chunk != key[n:n + len(chunk)]:
                return False
            n += len(chunk)
        return True

    def _step(self, storage: StorageAccessor, key: Key, context: LookupContext) -> bool:
        """Advance context to the next record under key.

        Returns:
            True with context.dpos/dlen set on a match, False when no
            (more) records exist under key
        """
        if context.loop == 0:
            h = cdb_hash(key)
            context.hpos, context.hslots = self._read_pair(storage, (h & 0xFF) * SLOT_SIZE, context)
            if context.hslots == 0:
                return False
            context.khash = h
            context.kpos = context.hpos + ((h >> 8) % context.hslots) * SLOT_SIZE

        end = context.hpos + context.hslots * SLOT_SIZE
        while context.loop < context.hslots:
            slot_hash, pos = self._read_pair(storage, context.kpos, context)
            if pos == 0:
                return False
            context.loop += 1
            context.kpos += SLOT_SIZE
            if context.kpos == end:
                context.kpos = context.hpos
            if slot_hash == context.khash:
                klen, dlen = self._read_pair(storage, pos, context)
                if klen == len(key) and self._match(storage, key, pos + SLOT_SIZE, context):
                    context.dpos = pos + SLOT_SIZE + klen
                    context.dlen = dlen
                    return True

        return False


def open_cdb(source: Source, config: CDBConfig | None = None) -> SimpleCDBReader:
    """Open a cdb database from a path, binary file handle or bytes.

    Raises:
        StorageError: if the source cannot be opened
    """
    config = config or CDBConfig()
    storage = open_storage(source, config.backend)
    name = getattr(storage, "name", None) or f"<{type(storage).__name__}>"
    db = SimpleCDBReader(storage, config, name=name)
    logger.info(f"Opened cdb {name} ({storage.size} bytes, {type(storage).__name__})")
    return db
