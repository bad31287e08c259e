"""Protocol definition for the cdb reader."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..core.types import KeyLike, Value

if TYPE_CHECKING:
    from ..core.reader import LookupContext, RecordView


@runtime_checkable
class CDBReader(Protocol):
    """Public API for read-only cdb lookups."""

    def new_context(self) -> LookupContext:
        """Return a reusable lookup context owned by the caller."""
        ...

    def find_start(self, context: LookupContext) -> None:
        """Reset context so the next step searches a new key. No I/O."""
        ...

    def find(self, key: KeyLike, context: LookupContext | None = None) -> RecordView | None:
        """Return the first record under key, or None if absent."""
        ...

    def find_next(self, key: KeyLike, context: LookupContext) -> RecordView | None:
        """Return the next record under the same key, or None when exhausted.

        Invariants:
            - Resumes from the slot after the previous match on context
            - Must be called with the key of the preceding find on context
        """
        ...

    def data(self, key: KeyLike, context: LookupContext | None = None) -> Value | None:
        """Return the first value under key as bytes, or None if absent."""
        ...

    def get_all(self, key: KeyLike) -> Iterator[Value]:
        """Yield every value under key in slot order."""
        ...

    def close(self) -> None:
        """Release the underlying storage."""
        ...
