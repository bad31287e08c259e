"""Key hashing for the cdb format.

The hash is fixed by the file format: every builder and reader must agree
on it bit for bit.
"""

from __future__ import annotations

HASH_SEED = 5381
HASH_MASK = 0xFFFFFFFF


def cdb_hash(key: bytes | bytearray | memoryview) -> int:
    """Return the 32-bit cdb hash of key.

    Starts from 5381 and folds in every byte with ``h = (h * 33) ^ c``,
    truncating to unsigned 32 bits after each step.
    """
    h = HASH_SEED
    for c in bytes(key):
        h = (((h << 5) + h) & HASH_MASK) ^ c
    return h
