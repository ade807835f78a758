"""Order-sensitive, process-stable hashing for cache keys."""

import hashlib
from typing import Any


def compute_hash(*values: Any) -> str:
    """First 32 hex chars of the SHA-256 of ``values`` joined with ``|``.

    >>> compute_hash("a", "b") != compute_hash("b", "a")
    True
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:32]
