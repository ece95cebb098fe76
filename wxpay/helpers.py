"""Small helpers: SHA-1 signatures, nonces, timestamps and chunking."""

from __future__ import annotations

import hashlib
import secrets
import time
from collections.abc import Sequence

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


def signature(*args: str) -> str:
    """SHA-1 hex digest of the arguments concatenated in sorted order."""
    digest = hashlib.sha1()
    for part in sorted(args):
        digest.update(part.encode("utf-8"))
    return digest.hexdigest()


def random_str(length: int) -> str:
    """A random string of ``length`` letters and digits."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(max(length, 0)))


def current_timestamp() -> int:
    """The current Unix time in whole seconds."""
    return int(time.time())


def slice_chunk(src: Sequence[str] | None, chunk_size: int) -> list[list[str]]:
    """Split ``src`` into lists of at most ``chunk_size`` items (at least one)."""
    items = list(src or ())
    size = max(chunk_size, 1)
    return [items[start:start + size] for start in range(0, len(items), size)]