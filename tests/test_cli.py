"""
Tests for the hackledger audit CLI.
"""

import sqlite3

import pytest
from click.testing import CliRunner

from hackledger import __version__
from hackledger.cli import cli
from hackledger.contest import Contest
from hackledger.treasury import InMemoryTreasury

from conftest import ADMIN, cast, register


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def journal_file(tmp_path):
    """A finished contest persisted to disk."""
    path = tmp_path / "contest.db"
    with Contest(admins=[ADMIN], treasury=InMemoryTreasury("sponsor", 300), journal_path=path) as c:
        register(c, 3)
        cast(c, [1, 3, 2])
        c.configure_prize_pool(ADMIN, "sponsor", 300)
        c.resolve_voting(ADMIN)
    return str(path)


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


class TestJournalCommands:
    def test_status(self, runner, journal_file):
        result = runner.invoke(cli, ["journal", "status", "--db", journal_file])
        assert result.exit_code == 0
        assert "Journal Status" in result.output
        # 3 registrations, 6 votes, pool, resolution, 3 transfers
        assert "Events: 14" in result.output

    def test_verify_clean_journal(self, runner, journal_file):
        result = runner.invoke(cli, ["journal", "verify", "--db", journal_file])
        assert result.exit_code == 0
        assert "Hash chain: OK" in result.output
        assert "Merkle roots: OK" in result.output

    def test_verify_tampered_journal(self, runner, journal_file):
        conn = sqlite3.connect(journal_file)
        conn.execute("UPDATE events SET payload = replace(payload, '\"project_id\":1', '\"project_id\":2') "
                     "WHERE kind = 'vote_cast'")
        conn.commit()
        conn.close()

        result = runner.invoke(cli, ["journal", "verify", "--db", journal_file])
        assert result.exit_code == 1
        assert "Hash chain: FAILED" in result.output
        assert "DATA_TAMPERING" in result.output

    def test_checkpoint_then_verify(self, runner, journal_file):
        result = runner.invoke(cli, ["journal", "checkpoint", "--db", journal_file])
        assert result.exit_code == 0
        assert "Checkpoint created" in result.output

        again = runner.invoke(cli, ["journal", "checkpoint", "--db", journal_file])
        assert "No unsealed events" in again.output

        verify = runner.invoke(cli, ["journal", "verify", "--db", journal_file])
        assert verify.exit_code == 0
        assert "1 checkpoints" in verify.output

    def test_prove_sealed_event(self, runner, journal_file):
        runner.invoke(cli, ["journal", "checkpoint", "--db", journal_file])
        result = runner.invoke(cli, ["journal", "prove", "5", "--db", journal_file])
        assert result.exit_code == 0
        assert "Event #5 in checkpoint 1 (1-14)" in result.output
        assert "Proof: OK" in result.output

    def test_prove_unsealed_event(self, runner, journal_file):
        result = runner.invoke(cli, ["journal", "prove", "5", "--db", journal_file])
        assert result.exit_code == 1
        assert "not sealed" in result.output

    def test_missing_journal(self, runner, tmp_path):
        result = runner.invoke(cli, ["journal", "status", "--db", str(tmp_path / "nope.db")])
        assert result.exit_code == 2
        assert "Journal not found" in result.output

    def test_default_db_comes_from_env(self, runner, journal_file, monkeypatch):
        monkeypatch.setenv("HACKLEDGER_JOURNAL", journal_file)
        from hackledger import config

        config.reload()
        result = runner.invoke(cli, ["journal", "status"])
        assert result.exit_code == 0
        assert "Events: 14" in result.output


class TestStandings:
    def test_rebuilds_tallies_from_journal(self, runner, journal_file):
        result = runner.invoke(cli, ["standings", "--db", journal_file])
        assert result.exit_code == 0
        assert "Standings" in result.output
        assert "Project 2" in result.output
        assert "6 votes from 6 voters" in result.output
        assert "Winner: #2 Project 2 (3 votes)" in result.output

    def test_unresolved_contest_has_no_winner(self, runner, tmp_path):
        path = tmp_path / "open.db"
        with Contest(admins=[ADMIN], journal_path=path) as c:
            register(c, 2)
            c.vote("alice", 1)
        result = runner.invoke(cli, ["standings", "--db", str(path)])
        assert result.exit_code == 0
        assert "1 votes from 1 voters" in result.output
        assert "Winner" not in result.output
