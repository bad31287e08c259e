"""Exception hierarchy for the cdb reader.

Defines all custom exceptions used throughout the implementation.
"""

from __future__ import annotations


class CDBError(Exception):
    """Base exception for all cdb reader errors."""
    pass


class StorageError(CDBError):
    """Raised when the underlying storage cannot be opened or read.

    Covers I/O faults, reads past the end of the file (truncated or corrupt
    databases) and reads against a closed accessor.
    """
    pass


class ConfigError(CDBError):
    """Raised when reader configuration is invalid."""
    pass
