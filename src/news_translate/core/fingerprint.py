"""Content fingerprint used as cache and dedup key."""

from __future__ import annotations

import hashlib
from typing import Optional

KEY_PREFIX = "trans_"


def fingerprint(title: str, summary: Optional[str] = None) -> str:
    """Return a stable key for a title/summary pair.

    Each field is length-prefixed before hashing so that moving text across
    the title/summary boundary, or an empty versus missing summary, never
    yields the same key. The caller's item id plays no part.
    """
    digest = hashlib.sha256()
    for part in (title, summary):
        if part is None:
            digest.update(b"-;")
            continue
        encoded = part.encode("utf-8")
        digest.update(f"{len(encoded)}:".encode("ascii"))
        digest.update(encoded)
        digest.update(b";")
    return KEY_PREFIX + digest.hexdigest()
