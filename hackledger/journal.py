"""
HACKLEDGER v1.0 — Event Journal.

Append-only record of every registration, vote and resolution event.
Entries are chained with SHA-256 (each hash covers the previous one) and
sealed in batches under Merkle roots, so any edit to a stored event is
detectable by ``verify_chain_integrity`` / ``verify_merkle_roots``.

Observers (dashboards, notifiers) subscribe to receive each entry after
it has been committed.
"""

import json
import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from hackledger import config
from hackledger.canonical import GENESIS_HASH, canonical_json, compute_event_hash, now_iso
from hackledger.exceptions import JournalError
from hackledger.merkle import MerkleTree, compute_merkle_root, verify_merkle_proof
from hackledger.metrics import metrics

logger = logging.getLogger("hackledger.journal")

# Event kinds
PROJECT_REGISTERED = "project_registered"
VOTE_CAST = "vote_cast"
PRIZE_POOL_CONFIGURED = "prize_pool_configured"
VOTING_RESOLVED = "voting_resolved"
PRIZE_TRANSFERRED = "prize_transferred"
PRIZE_TRANSFER_FAILED = "prize_transfer_failed"

SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    kind        TEXT NOT NULL,
    payload     TEXT NOT NULL,
    prev_hash   TEXT NOT NULL,
    hash        TEXT NOT NULL UNIQUE,
    timestamp   TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS event_merkle_roots (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    event_start_id  INTEGER NOT NULL,
    event_end_id    INTEGER NOT NULL,
    root_hash       TEXT NOT NULL,
    event_count     INTEGER NOT NULL,
    created_at      TEXT NOT NULL
);
"""


@dataclass(frozen=True)
class EventEntry:
    id: int
    kind: str
    payload: dict
    prev_hash: str
    hash: str
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "payload": self.payload,
            "prev_hash": self.prev_hash,
            "hash": self.hash,
            "timestamp": self.timestamp,
        }


Subscriber = Callable[[EventEntry], None]


class EventJournal:
    """
    Hash-chained, append-only event store on SQLite.

    ``db_path`` of ``":memory:"`` keeps everything in-process; a file
    path persists the journal so it can be audited later from the CLI.
    """

    def __init__(self, db_path: Optional[str | Path] = None, checkpoint_batch: Optional[int] = None):
        path = config.JOURNAL_PATH if db_path is None else db_path
        self._db_path = str(path)
        self.checkpoint_batch = checkpoint_batch or config.CHECKPOINT_BATCH_SIZE
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        try:
            if self._db_path != ":memory:":
                resolved = Path(self._db_path).expanduser()
                resolved.parent.mkdir(parents=True, exist_ok=True)
                self._db_path = str(resolved)
            self._conn = sqlite3.connect(self._db_path, timeout=30, check_same_thread=False)
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to open journal at %s: %s", self._db_path, e)
            raise JournalError(f"Cannot open journal at {self._db_path}") from e

    @property
    def db_path(self) -> str:
        return self._db_path

    # ─── Subscribers ──────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register an observer; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, entry: EventEntry) -> None:
        """Deliver an already committed entry to every subscriber."""
        for callback in list(self._subscribers):
            try:
                callback(entry)
            except Exception:
                # Subscriber errors are logged and skipped.
                logger.warning("Journal subscriber %r failed on event #%d", callback, entry.id, exc_info=True)

    # ─── Append ───────────────────────────────────────────────────

    def append(self, kind: str, payload: dict[str, Any], publish: bool = True) -> EventEntry:
        """Seal an event at the end of the chain.

        With ``publish=False`` the caller delivers the entry later via
        ``publish()``, once its own state reflects the event.
        """
        return self.append_batch([(kind, payload)], publish=publish)[0]

    def append_batch(
        self,
        events: list[tuple[str, dict[str, Any]]],
        publish: bool = True,
    ) -> list[EventEntry]:
        """Seal several events in one transaction: all are written or none."""
        timestamp = now_iso()
        sealed = []

        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT hash FROM events ORDER BY id DESC LIMIT 1"
                ).fetchone()
                prev_hash = row[0] if row else GENESIS_HASH

                for kind, payload in events:
                    payload_json = canonical_json(payload)
                    entry_hash = compute_event_hash(prev_hash, kind, payload_json, timestamp)
                    cursor = self._conn.execute(
                        "INSERT INTO events (kind, payload, prev_hash, hash, timestamp) VALUES (?, ?, ?, ?, ?)",
                        (kind, payload_json, prev_hash, entry_hash, timestamp),
                    )
                    sealed.append(EventEntry(
                        id=cursor.lastrowid, kind=kind, payload=json.loads(payload_json),
                        prev_hash=prev_hash, hash=entry_hash, timestamp=timestamp,
                    ))
                    prev_hash = entry_hash

                self._maybe_checkpoint()
                self._conn.commit()
            except (sqlite3.Error, OSError) as e:
                self._conn.rollback()
                kinds = ", ".join(sorted({k for k, _ in events}))
                logger.error("Failed to append %s events: %s", kinds, e)
                raise JournalError(f"Failed to append {kinds} events") from e

        for entry in sealed:
            logger.debug("Event #%d sealed: %s | %s...", entry.id, entry.kind, entry.hash[:8])
            if publish:
                self.publish(entry)
        return sealed

    # ─── Reads ────────────────────────────────────────────────────

    def entries(self, kind: Optional[str] = None, since_id: int = 0) -> list[EventEntry]:
        """Events in append order, optionally filtered by kind."""
        sql = "SELECT id, kind, payload, prev_hash, hash, timestamp FROM events WHERE id > ?"
        params: list[Any] = [since_id]
        if kind:
            sql += " AND kind = ?"
            params.append(kind)
        sql += " ORDER BY id ASC"

        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()

        return [
            EventEntry(id=r[0], kind=r[1], payload=json.loads(r[2]), prev_hash=r[3], hash=r[4], timestamp=r[5])
            for r in rows
        ]

    def __len__(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]

    def status(self) -> dict[str, int]:
        """Entry count, checkpoint count and last sealed event id."""
        with self._lock:
            count = self._conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
            checkpoints = self._conn.execute("SELECT COUNT(*) FROM event_merkle_roots").fetchone()[0]
            last_sealed = self._conn.execute("SELECT MAX(event_end_id) FROM event_merkle_roots").fetchone()[0] or 0
        return {
            "events": count,
            "checkpoints": checkpoints,
            "last_sealed_id": last_sealed,
            "unsealed": count - last_sealed,
        }

    # ─── Integrity ────────────────────────────────────────────────

    def verify_chain_integrity(self) -> dict[str, Any]:
        """Recompute every hash and check each link to its predecessor."""
        violations = []
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, kind, payload, prev_hash, hash, timestamp FROM events ORDER BY id ASC"
            ).fetchall()

        expected_prev = GENESIS_HASH
        for e_id, kind, payload_json, p_hash, c_hash, ts in rows:
            if p_hash != expected_prev:
                violations.append({
                    "event_id": e_id,
                    "type": "CHAIN_BREAK",
                    "expected_prev": expected_prev,
                    "actual_prev": p_hash,
                })

            actual_hash = compute_event_hash(p_hash, kind, payload_json, ts)
            if actual_hash != c_hash:
                violations.append({
                    "event_id": e_id,
                    "type": "DATA_TAMPERING",
                    "expected_hash": c_hash,
                    "actual_hash": actual_hash,
                })

            expected_prev = c_hash

        if violations:
            metrics.inc("hackledger_journal_violations_total", value=len(violations))
            logger.error("Journal integrity check found %d violations", len(violations))

        return {
            "valid": not violations,
            "violations": violations,
            "events_checked": len(rows),
        }

    def create_checkpoint(self) -> Optional[str]:
        """Seal all unsealed events under a Merkle root. Returns the root."""
        with self._lock:
            try:
                root = self._create_checkpoint_internal(limit=None)
                self._conn.commit()
                return root
            except (sqlite3.Error, OSError) as e:
                self._conn.rollback()
                logger.error("Journal checkpoint failed: %s", e)
                raise JournalError("Journal checkpoint failed") from e

    def _maybe_checkpoint(self) -> None:
        while True:
            last_sealed = self._conn.execute("SELECT MAX(event_end_id) FROM event_merkle_roots").fetchone()[0] or 0
            pending = self._conn.execute("SELECT COUNT(*) FROM events WHERE id > ?", (last_sealed,)).fetchone()[0]
            if pending < self.checkpoint_batch:
                return
            self._create_checkpoint_internal(limit=self.checkpoint_batch)

    def _create_checkpoint_internal(self, limit: Optional[int]) -> Optional[str]:
        row = self._conn.execute("SELECT MAX(event_end_id) FROM event_merkle_roots").fetchone()
        start_id = (row[0] + 1) if row and row[0] is not None else 1

        sql = "SELECT hash, id FROM events WHERE id >= ? ORDER BY id"
        params: tuple = (start_id,)
        if limit:
            sql += " LIMIT ?"
            params = (start_id, limit)
        rows = self._conn.execute(sql, params).fetchall()
        if not rows:
            return None

        hashes = [r[0] for r in rows]
        end_id = rows[-1][1]
        root_hash = MerkleTree(hashes).root

        self._conn.execute(
            "INSERT INTO event_merkle_roots (event_start_id, event_end_id, root_hash, event_count, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (start_id, end_id, root_hash, len(hashes), now_iso()),
        )
        logger.info("Merkle checkpoint created: events %d-%d -> %s", start_id, end_id, root_hash[:16])
        return root_hash

    def verify_merkle_roots(self) -> list[dict[str, Any]]:
        """Recompute every stored Merkle root."""
        results = []
        with self._lock:
            checkpoints = self._conn.execute(
                "SELECT id, event_start_id, event_end_id, root_hash FROM event_merkle_roots ORDER BY id"
            ).fetchall()

            for cp_id, start, end, stored_root in checkpoints:
                hashes = [
                    r[0] for r in self._conn.execute(
                        "SELECT hash FROM events WHERE id >= ? AND id <= ? ORDER BY id", (start, end)
                    ).fetchall()
                ]
                recomputed = compute_merkle_root(hashes)
                results.append({
                    "checkpoint_id": cp_id,
                    "range": f"{start}-{end}",
                    "valid": recomputed == stored_root,
                    "expected": stored_root,
                    "actual": recomputed,
                })

        bad = sum(1 for r in results if not r["valid"])
        if bad:
            metrics.inc("hackledger_journal_violations_total", value=bad)
        return results

    def prove(self, event_id: int) -> Optional[dict[str, Any]]:
        """Inclusion proof for one event against its checkpoint's stored root.

        Returns None when the event does not exist or no checkpoint seals
        it yet. ``valid`` is False when the stored events no longer hash
        to the sealed root.
        """
        with self._lock:
            checkpoint = self._conn.execute(
                "SELECT id, event_start_id, event_end_id, root_hash FROM event_merkle_roots "
                "WHERE event_start_id <= ? AND event_end_id >= ?",
                (event_id, event_id),
            ).fetchone()
            if checkpoint is None:
                return None
            cp_id, start, end, stored_root = checkpoint
            rows = self._conn.execute(
                "SELECT id, hash FROM events WHERE id >= ? AND id <= ? ORDER BY id", (start, end)
            ).fetchall()

        ids = [r[0] for r in rows]
        if event_id not in ids:
            return None

        index = ids.index(event_id)
        hashes = [r[1] for r in rows]
        proof = MerkleTree(hashes).get_proof(index)
        return {
            "event_id": event_id,
            "checkpoint_id": cp_id,
            "range": f"{start}-{end}",
            "leaf": hashes[index],
            "root": stored_root,
            "proof": proof,
            "valid": verify_merkle_proof(hashes[index], proof, stored_root),
        }

    def close(self) -> None:
        with self._lock:
            self._conn.close()
