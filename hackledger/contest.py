"""HACKLEDGER Contest — composite orchestrator."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from hackledger import config
from hackledger.gate import AdminGate, StaticAdminGate
from hackledger.journal import EventJournal
from hackledger.ledger import VoteLedger
from hackledger.queries import QueryService
from hackledger.registry import ProjectRegistry
from hackledger.resolution import ResolutionEngine
from hackledger.state import LedgerState
from hackledger.treasury import TransferSink

logger = logging.getLogger("hackledger")


class Contest:
    """One hackathon: projects, votes and its resolution.

    Builds a single ``LedgerState`` and hands it to every component.
    The collaborators (gate, transfer sink, journal) are injected;
    defaults come from ``hackledger.config``.
    """

    def __init__(
        self,
        admins: Optional[Iterable[str]] = None,
        gate: Optional[AdminGate] = None,
        treasury: Optional[TransferSink] = None,
        journal: Optional[EventJournal] = None,
        journal_path: Optional[str | Path] = None,
        max_votes: Optional[int] = None,
        podium_size: Optional[int] = None,
    ):
        if gate is not None and admins is not None:
            raise ValueError("pass either admins or gate, not both")

        self.state = LedgerState()
        self.gate = gate or StaticAdminGate(admins)
        self.journal = journal or EventJournal(journal_path)
        self.treasury = treasury

        # Composition layers
        self.registry = ProjectRegistry(self.state, self.journal, self.gate)
        self.votes = VoteLedger(self.state, self.journal, max_votes=max_votes)
        self.resolution = ResolutionEngine(
            self.state, self.journal, self.gate, sink=treasury, podium_size=podium_size,
        )
        self.queries = QueryService(self.state)

        logger.info(
            "Contest ready (journal=%s, max_votes=%d, podium=%d)",
            self.journal.db_path, self.votes.max_votes, self.resolution.podium_size,
        )

    # ─── Delegation ───────────────────────────────────────────────

    def register_project(self, *args, **kwargs):
        return self.registry.register_project(*args, **kwargs)

    def register_projects(self, *args, **kwargs):
        return self.registry.register_projects(*args, **kwargs)

    def get_project(self, project_id: int):
        return self.registry.get_project(project_id)

    def get_projects(self):
        return self.registry.get_projects()

    def vote(self, voter: str, project_id: int) -> int:
        return self.votes.vote(voter, project_id)

    def get_my_votes(self, voter: str) -> tuple[int, ...]:
        return self.votes.get_my_votes(voter)

    def configure_prize_pool(self, caller: str, source: str, amount: int):
        return self.resolution.configure_prize_pool(caller, source, amount)

    def resolve_voting(self, caller: str):
        return self.resolution.resolve_voting(caller)

    def retry_failed_payouts(self, caller: str):
        return self.resolution.retry_failed_payouts(caller)

    def get_voting_data(self, viewer: str):
        return self.queries.get_voting_data(viewer)

    def get_total_votes(self) -> int:
        return self.queries.get_total_votes()

    def get_leaderboard(self):
        return self.queries.get_leaderboard()

    def get_winner(self):
        return self.queries.get_winner()

    # ─── Audit ────────────────────────────────────────────────────

    def verify_journal(self) -> dict[str, Any]:
        """Hash-chain and Merkle verification plus the in-memory invariants."""
        chain = self.journal.verify_chain_integrity()
        roots = self.journal.verify_merkle_roots()
        invariants = self.state.audit(self.votes.max_votes)
        return {
            "valid": chain["valid"] and all(r["valid"] for r in roots) and not invariants,
            "chain": chain,
            "merkle": roots,
            "invariants": invariants,
        }

    @property
    def project_count(self) -> int:
        return self.state.project_count

    @property
    def total_voters(self) -> int:
        return self.state.total_voters

    @property
    def resolved(self) -> bool:
        return self.state.resolved

    # ─── Lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        self.journal.close()

    def __enter__(self) -> "Contest":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @classmethod
    def from_env(cls, treasury: Optional[TransferSink] = None) -> "Contest":
        """Contest configured entirely from ``HACKLEDGER_*`` variables."""
        return cls(
            admins=config.ADMINS,
            treasury=treasury,
            journal_path=config.JOURNAL_PATH,
            max_votes=config.MAX_VOTES_PER_VOTER,
            podium_size=config.PODIUM_SIZE,
        )
