"""cdb reader core."""

from .reader import LookupContext, RecordView, SimpleCDBReader, open_cdb

__all__ = ["SimpleCDBReader", "LookupContext", "RecordView", "open_cdb"]
