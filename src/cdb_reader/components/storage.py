"""Storage accessor implementations.

Provides positioned, bounds-checked reads over an immutable database held
in memory, in a read-only memory mapping, or behind a file handle.
"""

from __future__ import annotations

import logging
import mmap
import os
import threading
from pathlib import Path
from typing import BinaryIO

from ..core.errors import StorageError
from ..interfaces.storage import StorageAccessor

logger = logging.getLogger(__name__)

Source = str | os.PathLike | BinaryIO | bytes | bytearray | memoryview


def _fileno(handle: BinaryIO) -> int | None:
    """Return the OS file descriptor behind handle, if it has one."""
    try:
        return handle.fileno()
    except (AttributeError, OSError, ValueError):
        return None


class _Storage:
    """Shared bounds checking and lifecycle for storage accessors."""

    size: int = 0

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_range(self, offset: int, size: int) -> None:
        if self._closed:
            raise StorageError(f"{type(self).__name__} is closed")
        if offset < 0 or size < 0 or offset + size > self.size:
            raise StorageError(
                f"Read of {size} bytes at offset {offset} is out of range (size {self.size})"
            )

    def read_at(self, offset: int, size: int) -> bytes:
        raise NotImplementedError

    def readinto_at(self, buffer: bytearray | memoryview, offset: int) -> int:
        """Fill buffer from offset using read_at."""
        view = memoryview(buffer).cast("B")
        n = len(view)
        view[:] = self.read_at(offset, n)
        return n

    def close(self) -> None:
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class BufferStorage(_Storage):
    """Storage over a bytes-like object already in memory.

    Args:
        data: Database bytes (bytes, bytearray, memoryview, mmap, ...)
    """

    def __init__(self, data: bytes | bytearray | memoryview):
        super().__init__()
        self._view = memoryview(data).cast("B")
        self.size = len(self._view)

    def read_at(self, offset: int, size: int) -> bytes:
        self._check_range(offset, size)
        return self._view[offset:offset + size].tobytes()

    def readinto_at(self, buffer: bytearray | memoryview, offset: int) -> int:
        view = memoryview(buffer).cast("B")
        n = len(view)
        self._check_range(offset, n)
        view[:] = self._view[offset:offset + n]
        return n

    def close(self) -> None:
        if not self._closed:
            self._view.release()
            self._closed = True


class MappedStorage(_Storage):
    """Storage over a read-only memory mapping of a whole file.

    Args:
        source: Path to the database, or an open binary file handle

    Invariants:
        - A path is opened and closed by this accessor; a caller's handle is
          never closed, only the mapping made from it
        - Zero-length files are not mapped; every read on them is out of range
    """

    def __init__(self, source: str | os.PathLike | BinaryIO):
        super().__init__()
        self._fd: int | None = None
        self._owns_fd = False
        self._mm: mmap.mmap | None = None

        if isinstance(source, (str, os.PathLike)):
            self.name = str(source)
            try:
                self._fd = os.open(source, os.O_RDONLY)
            except OSError as e:
                raise StorageError(f"Cannot open {self.name}: {e}") from e
            self._owns_fd = True
        else:
            self.name = getattr(source, "name", repr(source))
            self._fd = _fileno(source)
            if self._fd is None:
                raise StorageError(f"Cannot memory-map {self.name}: handle has no file descriptor")

        try:
            self.size = os.fstat(self._fd).st_size
            if self.size > 0:
                self._mm = mmap.mmap(self._fd, self.size, access=mmap.ACCESS_READ)
        except (OSError, ValueError) as e:
            self._release_fd()
            raise StorageError(f"Cannot memory-map {self.name}: {e}") from e

        self._view = memoryview(self._mm) if self._mm is not None else memoryview(b"")
        logger.debug(f"Mapped {self.name} ({self.size} bytes)")

    def read_at(self, offset: int, size: int) -> bytes:
        self._check_range(offset, size)
        return self._view[offset:offset + size].tobytes()

    def readinto_at(self, buffer: bytearray | memoryview, offset: int) -> int:
        view = memoryview(buffer).cast("B")
        n = len(view)
        self._check_range(offset, n)
        view[:] = self._view[offset:offset + n]
        return n

    def _release_fd(self) -> None:
        if self._owns_fd and self._fd is not None:
            os.close(self._fd)
        self._fd = None

    def close(self) -> None:
        """Release the mapping and any descriptor this accessor opened."""
        if self._closed:
            return
        self._closed = True
        self._view.release()
        if self._mm is not None:
            self._mm.close()
            self._mm = None
        self._release_fd()
        logger.debug(f"Unmapped {self.name}")


class FileStorage(_Storage):
    """Storage using positioned reads against a file.

    Args:
        source: Path to the database, or an open binary file handle

    Invariants:
        - Handles backed by a real descriptor are read with os.pread, which
          never moves a shared file offset
        - Other handles (e.g. io.BytesIO) are read with seek + read under a lock
        - A caller's handle is never closed by this accessor
    """

    def __init__(self, source: str | os.PathLike | BinaryIO):
        super().__init__()
        self._lock = threading.Lock()
        self._owns_file = False

        if isinstance(source, (str, os.PathLike)):
            self.name = str(source)
            try:
                self._file: BinaryIO | None = open(Path(source), "rb")
            except OSError as e:
                raise StorageError(f"Cannot open {self.name}: {e}") from e
            self._owns_file = True
        else:
            self.name = getattr(source, "name", repr(source))
            self._file = source

        fd = _fileno(self._file)
        self._fd = fd if fd is not None and hasattr(os, "pread") else None

        try:
            if self._fd is not None:
                self.size = os.fstat(self._fd).st_size
            else:
                with self._lock:
                    self.size = self._file.seek(0, os.SEEK_END)
        except (OSError, ValueError) as e:
            self.close()
            raise StorageError(f"Cannot determine size of {self.name}: {e}") from e

        mode = "pread" if self._fd is not None else "seek/read"
        logger.debug(f"Opened {self.name} for {mode} access ({self.size} bytes)")

    def read_at(self, offset: int, size: int) -> bytes:
        self._check_range(offset, size)
        try:
            if self._fd is not None:
                data = os.pread(self._fd, size, offset)
            else:
                with self._lock:
                    self._file.seek(offset)
                    data = self._file.read(size)
        except (OSError, ValueError) as e:
            raise StorageError(f"Read of {size} bytes at offset {offset} failed: {e}") from e
        if len(data) != size:
            raise StorageError(
                f"Short read at offset {offset}: wanted {size} bytes, got {len(data)}"
            )
        return data

    def close(self) -> None:
        """Close the file if this accessor opened it."""
        if self._closed:
            return
        self._closed = True
        if self._owns_file and self._file is not None:
            self._file.close()
        self._file = None
        self._fd = None
        logger.debug(f"Closed {self.name}")


def open_storage(source: Source, backend: str = "mmap") -> StorageAccessor:
    """Return a storage accessor for source.

    Bytes-like sources are served from memory. Paths and file handles use
    the requested backend; handles without a file descriptor cannot be
    mapped and always use positioned reads.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return BufferStorage(source)

    if backend == "mmap":
        if isinstance(source, (str, os.PathLike)) or _fileno(source) is not None:
            return MappedStorage(source)
        logger.debug("Handle has no file descriptor, using positioned reads")
    return FileStorage(source)
