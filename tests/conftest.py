"""Shared fixtures: temp directories and a minimal cdb builder.

The builder follows the reference cdbmake layout: records from offset 2048,
then one hash-slot table per header entry sized at twice its key count and
filled by linear probing with wraparound, then the header.
"""

import shutil
import struct
import tempfile
from pathlib import Path

import pytest

from cdb_reader import cdb_hash

PAIR = struct.Struct("<II")


def build_cdb(items) -> bytes:
    """Return the bytes of a cdb holding items (an iterable of key/value pairs)."""
    out = bytearray(2048)
    buckets: list[list[tuple[int, int]]] = [[] for _ in range(256)]

    for key, value in items:
        h = cdb_hash(key)
        buckets[h & 0xFF].append((h, len(out)))
        out += PAIR.pack(len(key), len(value)) + key + value

    header = []
    for entries in buckets:
        nslots = len(entries) * 2
        table = [(0, 0)] * nslots
        for h, pos in entries:
            i = (h >> 8) % nslots
            while table[i][1] != 0:
                i = (i + 1) % nslots
            table[i] = (h, pos)
        header.append((len(out), nslots))
        for slot in table:
            out += PAIR.pack(*slot)

    out[:2048] = b"".join(PAIR.pack(*entry) for entry in header)
    return bytes(out)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def write_cdb(temp_dir):
    """Return a function that builds a cdb file from items and returns its path."""
    counter = 0

    def _write(items, name=None) -> Path:
        nonlocal counter
        counter += 1
        path = Path(temp_dir) / (name or f"test-{counter}.cdb")
        path.write_bytes(build_cdb(items))
        return path

    return _write


@pytest.fixture
def cdb_bytes():
    """Return the in-memory builder."""
    return build_cdb
