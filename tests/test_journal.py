"""
Tests for the hash-chained event journal and its Merkle checkpoints.
"""

import sqlite3
import threading

import pytest

from hackledger.canonical import GENESIS_HASH, canonical_json, compute_event_hash
from hackledger.contest import Contest
from hackledger.exceptions import JournalError
from hackledger.journal import (
    PRIZE_POOL_CONFIGURED,
    PRIZE_TRANSFERRED,
    PROJECT_REGISTERED,
    VOTE_CAST,
    VOTING_RESOLVED,
    EventJournal,
)
from hackledger.merkle import MerkleTree, compute_merkle_root, verify_merkle_proof
from hackledger.metrics import metrics

from conftest import ADMIN, cast, register


@pytest.fixture
def journal():
    jr = EventJournal(":memory:")
    yield jr
    jr.close()


def _tamper(jr: EventJournal, sql: str, params=()):
    jr._conn.execute(sql, params)
    jr._conn.commit()


# ─── Canonical hashing ───────────────────────────────────────────


class TestCanonical:
    def test_key_order_does_not_matter(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == canonical_json({"a": [1, 2], "b": 1})
        assert canonical_json({"b": 1, "a": 2}) == '{"a":2,"b":1}'

    def test_non_ascii_is_escaped(self):
        assert canonical_json({"t": "ñ"}) == '{"t":"\\u00f1"}'

    def test_null_byte_separation(self):
        # Moving a character across a field boundary must change the hash.
        h1 = compute_event_hash(GENESIS_HASH, "ab", "c", "t")
        h2 = compute_event_hash(GENESIS_HASH, "a", "bc", "t")
        assert h1 != h2
        assert len(h1) == 64


class TestMerkle:
    def test_empty_and_single(self):
        assert compute_merkle_root([]) == ""
        assert compute_merkle_root(["aa"]) == "aa"

    def test_tree_root_matches_function(self):
        hashes = [f"{i:064x}" for i in range(7)]
        assert MerkleTree(hashes).root == compute_merkle_root(hashes)

    @pytest.mark.parametrize("n", [1, 2, 5, 8])
    def test_every_leaf_has_a_valid_proof(self, n):
        hashes = [f"{i:064x}" for i in range(n)]
        tree = MerkleTree(hashes)
        for i, leaf in enumerate(hashes):
            assert verify_merkle_proof(leaf, tree.get_proof(i), tree.root)

    def test_proof_rejects_wrong_leaf(self):
        hashes = [f"{i:064x}" for i in range(4)]
        tree = MerkleTree(hashes)
        assert not verify_merkle_proof("f" * 64, tree.get_proof(0), tree.root)
        assert tree.get_proof(10) == []


# ─── Append & read ───────────────────────────────────────────────


class TestAppend:
    def test_first_entry_links_to_genesis(self, journal):
        entry = journal.append(VOTE_CAST, {"voter": "a", "project_id": 1})
        assert entry.id == 1
        assert entry.prev_hash == GENESIS_HASH
        assert entry.payload == {"voter": "a", "project_id": 1}

    def test_entries_are_linked(self, journal):
        first = journal.append(VOTE_CAST, {"n": 1})
        second = journal.append(VOTE_CAST, {"n": 2})
        assert second.prev_hash == first.hash
        assert len(journal) == 2

    def test_filter_by_kind_and_since(self, journal):
        journal.append(PROJECT_REGISTERED, {"project_id": 1})
        journal.append(VOTE_CAST, {"project_id": 1})
        journal.append(VOTE_CAST, {"project_id": 1})
        assert [e.id for e in journal.entries(VOTE_CAST)] == [2, 3]
        assert [e.id for e in journal.entries(since_id=2)] == [3]

    def test_batch_is_one_chain(self, journal):
        entries = journal.append_batch([(VOTE_CAST, {"n": i}) for i in range(3)])
        assert [e.id for e in entries] == [1, 2, 3]
        assert entries[2].prev_hash == entries[1].hash
        assert journal.verify_chain_integrity()["valid"]

    def test_failed_batch_writes_nothing(self, journal):
        journal.append(VOTE_CAST, {"n": 0})
        _tamper(
            journal,
            "CREATE TRIGGER no_fail BEFORE INSERT ON events WHEN NEW.kind = 'fail' "
            "BEGIN SELECT RAISE(ABORT, 'refused'); END",
        )
        with pytest.raises(JournalError):
            journal.append_batch([(VOTE_CAST, {"n": 1}), ("fail", {})])
        assert len(journal) == 1

    def test_unopenable_path_raises_journal_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(JournalError):
            EventJournal(blocker / "journal.db")

    def test_file_journal_persists(self, tmp_path):
        path = tmp_path / "nested" / "contest.db"
        jr = EventJournal(path)
        jr.append(VOTE_CAST, {"n": 1})
        jr.close()

        reopened = EventJournal(path)
        try:
            assert len(reopened) == 1
            assert reopened.verify_chain_integrity()["valid"]
        finally:
            reopened.close()


class TestSubscribers:
    def test_receives_committed_entries(self, journal):
        seen = []
        journal.subscribe(seen.append)
        entry = journal.append(VOTE_CAST, {"n": 1})
        assert seen == [entry]

    def test_unsubscribe(self, journal):
        seen = []
        unsubscribe = journal.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        journal.append(VOTE_CAST, {"n": 1})
        assert seen == []

    def test_failing_subscriber_is_isolated(self, journal):
        seen = []

        def boom(entry):
            raise RuntimeError("observer down")

        journal.subscribe(boom)
        journal.subscribe(seen.append)
        journal.append(VOTE_CAST, {"n": 1})
        assert len(seen) == 1

    def test_failing_subscriber_does_not_break_vote(self, seeded):
        seeded.journal.subscribe(lambda e: 1 / 0)
        assert seeded.vote("alice", 1) == 1
        assert seeded.get_my_votes("alice") == (1,)

    def test_subscriber_may_wait_on_another_thread_reading_the_contest(self, contest):
        seen = []

        def hand_off(entry):
            worker = threading.Thread(
                target=lambda: seen.append((entry.kind, contest.get_total_votes())), daemon=True,
            )
            worker.start()
            worker.join(timeout=5)

        contest.journal.subscribe(hand_off)
        register(contest, 2)
        contest.vote("alice", 1)
        contest.configure_prize_pool(ADMIN, "sponsor", 300)
        contest.resolve_voting(ADMIN)

        assert [kind for kind, _ in seen] == [
            PROJECT_REGISTERED, PROJECT_REGISTERED, VOTE_CAST,
            PRIZE_POOL_CONFIGURED, VOTING_RESOLVED, PRIZE_TRANSFERRED,
        ]
        assert seen[-1][1] == 1

    def test_deferred_publish_sees_updated_state(self, seeded):
        seen = []
        seeded.journal.subscribe(lambda e: seen.append(seeded.get_project(e.payload["project_id"]).vote_count))
        seeded.vote("alice", 2)
        seeded.vote("bob", 2)
        assert seen == [1, 2]


# ─── Integrity ───────────────────────────────────────────────────


class TestIntegrity:
    def test_clean_chain(self, journal):
        for i in range(5):
            journal.append(VOTE_CAST, {"n": i})
        report = journal.verify_chain_integrity()
        assert report == {"valid": True, "violations": [], "events_checked": 5}

    def test_payload_edit_is_detected(self, journal):
        for i in range(3):
            journal.append(VOTE_CAST, {"n": i})
        _tamper(journal, "UPDATE events SET payload = ? WHERE id = 2", ('{"n":99}',))

        report = journal.verify_chain_integrity()
        assert not report["valid"]
        assert [(v["type"], v["event_id"]) for v in report["violations"]] == [("DATA_TAMPERING", 2)]
        assert metrics.get("hackledger_journal_violations_total") == 1

    def test_relinked_entry_is_a_chain_break(self, journal):
        for i in range(3):
            journal.append(VOTE_CAST, {"n": i})
        _tamper(journal, "UPDATE events SET prev_hash = ? WHERE id = 3", (GENESIS_HASH,))
        types = {v["type"] for v in journal.verify_chain_integrity()["violations"]}
        assert "CHAIN_BREAK" in types

    def test_deleted_entry_is_a_chain_break(self, journal):
        for i in range(3):
            journal.append(VOTE_CAST, {"n": i})
        _tamper(journal, "DELETE FROM events WHERE id = 2")
        report = journal.verify_chain_integrity()
        assert [(v["type"], v["event_id"]) for v in report["violations"]] == [("CHAIN_BREAK", 3)]


class TestCheckpoints:
    def test_manual_checkpoint(self, journal):
        for i in range(3):
            journal.append(VOTE_CAST, {"n": i})
        root = journal.create_checkpoint()
        assert root == compute_merkle_root([e.hash for e in journal.entries()])
        assert journal.status() == {"events": 3, "checkpoints": 1, "last_sealed_id": 3, "unsealed": 0}
        assert journal.create_checkpoint() is None

    def test_auto_checkpoint_every_batch(self):
        jr = EventJournal(":memory:", checkpoint_batch=2)
        try:
            for i in range(5):
                jr.append(VOTE_CAST, {"n": i})
            assert jr.status() == {"events": 5, "checkpoints": 2, "last_sealed_id": 4, "unsealed": 1}
        finally:
            jr.close()

    def test_large_batch_seals_several_checkpoints(self):
        jr = EventJournal(":memory:", checkpoint_batch=2)
        try:
            jr.append_batch([(VOTE_CAST, {"n": i}) for i in range(5)])
            roots = jr.verify_merkle_roots()
            assert [r["range"] for r in roots] == ["1-2", "3-4"]
            assert all(r["valid"] for r in roots)
        finally:
            jr.close()

    def test_tampering_breaks_merkle_root(self, journal):
        for i in range(4):
            journal.append(VOTE_CAST, {"n": i})
        journal.create_checkpoint()
        _tamper(journal, "UPDATE events SET hash = ? WHERE id = 1", ("f" * 64,))
        (result,) = journal.verify_merkle_roots()
        assert result["valid"] is False
        assert result["range"] == "1-4"


class TestProofs:
    @pytest.mark.parametrize("event_id", [1, 3, 5])
    def test_sealed_event_has_valid_proof(self, journal, event_id):
        for i in range(5):
            journal.append(VOTE_CAST, {"n": i})
        root = journal.create_checkpoint()

        result = journal.prove(event_id)

        assert result["valid"] is True
        assert result["root"] == root
        assert result["range"] == "1-5"
        assert result["leaf"] == journal.entries(since_id=event_id - 1)[0].hash
        assert verify_merkle_proof(result["leaf"], result["proof"], root)

    def test_unsealed_or_unknown_event(self, journal):
        journal.append(VOTE_CAST, {"n": 0})
        assert journal.prove(1) is None
        journal.create_checkpoint()
        assert journal.prove(1) is not None
        assert journal.prove(2) is None

    def test_proof_in_later_checkpoint(self):
        jr = EventJournal(":memory:", checkpoint_batch=2)
        try:
            for i in range(4):
                jr.append(VOTE_CAST, {"n": i})
            result = jr.prove(4)
            assert result["range"] == "3-4"
            assert result["valid"]
        finally:
            jr.close()

    def test_tampered_neighbour_fails_proof(self, journal):
        for i in range(4):
            journal.append(VOTE_CAST, {"n": i})
        journal.create_checkpoint()
        _tamper(journal, "UPDATE events SET hash = ? WHERE id = 2", ("e" * 64,))
        assert journal.prove(1)["valid"] is False


# ─── Contest audit ───────────────────────────────────────────────


class TestContestAudit:
    def test_full_contest_verifies(self, contest):
        register(contest, 3)
        cast(contest, [2, 1, 1])
        contest.configure_prize_pool(ADMIN, "sponsor", 300)
        contest.resolve_voting(ADMIN)
        contest.journal.create_checkpoint()

        report = contest.verify_journal()
        assert report["valid"]
        assert report["invariants"] == []
        assert report["chain"]["events_checked"] == len(contest.journal)

    def test_tampered_vote_fails_audit(self, seeded):
        seeded.vote("alice", 1)
        _tamper(seeded.journal, "UPDATE events SET payload = replace(payload, 'alice', 'mallory')")
        assert not seeded.verify_journal()["valid"]

    def test_contest_journal_on_disk(self, tmp_path):
        path = tmp_path / "contest.db"
        with Contest(admins=[ADMIN], journal_path=path) as c:
            register(c, 2)
            c.vote("alice", 2)

        conn = sqlite3.connect(path)
        try:
            kinds = [r[0] for r in conn.execute("SELECT kind FROM events ORDER BY id")]
        finally:
            conn.close()
        assert kinds == [PROJECT_REGISTERED, PROJECT_REGISTERED, VOTE_CAST]
