"""Configuration for the cdb reader.

Defines the tunable parameters for opening and querying a database.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ConfigError
from .types import SLOT_SIZE

BACKENDS = ("mmap", "pread")
DEFAULT_SCRATCH_SIZE = 64


@dataclass
class CDBConfig:
    """Configuration parameters for the cdb reader.

    Attributes:
        backend: Storage used for paths and file handles ("mmap" or "pread")
        scratch_size: Size of each lookup context's key comparison buffer
        warn_unclosed: Emit a ResourceWarning when an open reader is collected
    """

    backend: str = "mmap"
    scratch_size: int = DEFAULT_SCRATCH_SIZE
    warn_unclosed: bool = True

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ConfigError(f"Unknown storage backend {self.backend!r}, expected one of {BACKENDS}")
        if self.scratch_size < SLOT_SIZE:
            raise ConfigError(f"scratch_size must be at least {SLOT_SIZE} bytes, got {self.scratch_size}")
