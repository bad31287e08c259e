"""Protocol definition for storage accessors."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class StorageAccessor(Protocol):
    """Positioned, bounds-checked reads over immutable database bytes."""

    size: int

    @property
    def closed(self) -> bool:
        """True once close() has released the underlying resource."""
        ...

    def read_at(self, offset: int, size: int) -> bytes:
        """Return exactly size bytes starting at offset.

        Raises:
            StorageError: if the range falls outside the data, the accessor
                is closed, or the underlying read fails
        """
        ...

    def readinto_at(self, buffer: bytearray | memoryview, offset: int) -> int:
        """Fill the whole of buffer with bytes starting at offset.

        Returns:
            Number of bytes written (always len(buffer))

        Invariants:
            - Safe for concurrent invocation from multiple threads
            - Never retried; failures surface as StorageError
        """
        ...

    def close(self) -> None:
        """Release the underlying file or mapping. Idempotent."""
        ...
