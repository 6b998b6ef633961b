"""Canonical JSON helpers shared by the SQLite-backed stores.

Stored JSON columns use one deterministic serialization so journal and
args rows compare byte-for-byte across processes.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON text — sorted keys, compact separators.

    Values JSON cannot represent natively (datetimes, enums) fall back to
    ``str()``.
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str
    )


def content_digest(obj: Any) -> str:
    """Content fingerprint of a JSON-serializable object, ``"sha256:<hex>"``."""
    digest = hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"
