"""
ID generation and timestamp utilities (stdlib-only).

Document ids must be unique without a server round trip, and the in-memory
store needs ids that sort by creation time so default query ordering is
stable. ``generate_id()`` produces 26-character, Crockford base32,
time-sortable ids; ``utc_now()`` is the single source of creation stamps.
"""

import random
import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def generate_id() -> str:
    """
    Generate a ULID-like document identifier.

    Format: 26 characters, base32 encoded, time-sortable.
    """
    timestamp_chars = _encode_base32(int(time.time() * 1000), 10)
    random_part = "".join(random.choices(_ENCODING, k=16))
    return timestamp_chars + random_part


# Crockford's base32 alphabet
_ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_ENCODING_LEN = len(_ENCODING)


def _encode_base32(value: int, length: int) -> str:
    result = []
    for _ in range(length):
        result.append(_ENCODING[value % _ENCODING_LEN])
        value //= _ENCODING_LEN
    return "".join(reversed(result))
