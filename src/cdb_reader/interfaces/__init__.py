"""Protocols describing the reader's seams."""

from .reader import CDBReader
from .storage import StorageAccessor

__all__ = ["CDBReader", "StorageAccessor"]
