"""HACKLEDGER v1.0 — Canonical Hash Construction.

Provides deterministic JSON serialization and null-byte separated
hash computation for the event journal.

Hash scheme:
    f"{prev}\\x00{kind}\\x00{canonical_payload}\\x00{ts}"
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Any

GENESIS_HASH = "0" * 64

# ─── Canonical JSON ───────────────────────────────────────────────


def canonical_json(obj: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace, ASCII-safe.

    Guarantees identical output for semantically identical input
    regardless of dict insertion order.
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"),
        ensure_ascii=True, default=str,
    )


# ─── Event Hash ───────────────────────────────────────────────────


def compute_event_hash(
    prev_hash: str,
    kind: str,
    payload_json: str,
    timestamp: str,
) -> str:
    """Compute an event hash using the null-byte separated canonical form.

    Args:
        prev_hash: Hash of the previous event, or ``GENESIS_HASH``.
        kind: Event kind (project_registered, vote_cast, ...).
        payload_json: Canonical JSON string of the event payload.
        timestamp: ISO 8601 UTC timestamp.

    Returns:
        SHA-256 hex digest of the canonical input.
    """
    h_input = f"{prev_hash}\x00{kind}\x00{payload_json}\x00{timestamp}"
    return hashlib.sha256(h_input.encode("utf-8")).hexdigest()


def now_iso() -> str:
    """Current UTC time as ISO 8601."""
    return datetime.now(timezone.utc).isoformat()
