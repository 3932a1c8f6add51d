"""HACKLEDGER State — Project, VoterRecord and the owned ledger state."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Project:
    id: int
    title: str
    description: str = ""
    team_name: str = ""
    category: str = ""
    image_url: str = ""
    demo_url: str = ""
    repo_url: str = ""
    recipient: str = ""
    vote_count: int = 0

    def has_payout_target(self) -> bool:
        return bool(self.recipient and self.recipient.strip())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "team_name": self.team_name,
            "category": self.category,
            "image_url": self.image_url,
            "demo_url": self.demo_url,
            "repo_url": self.repo_url,
            "recipient": self.recipient,
            "vote_count": self.vote_count,
        }


@dataclass
class VoterRecord:
    project_ids: list[int] = field(default_factory=list)
    vote_count: int = 0


@dataclass(frozen=True)
class PrizePool:
    """Payout source identity and the total amount to split."""

    source: str
    amount: int


@dataclass
class PayoutReceipt:
    rank: int
    project_id: int
    recipient: str
    amount: int
    status: str = "pending"  # pending | paid | failed
    error: Optional[str] = None
    attempts: int = 0

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "project_id": self.project_id,
            "recipient": self.recipient,
            "amount": self.amount,
            "status": self.status,
            "error": self.error,
            "attempts": self.attempts,
        }


class LedgerState:
    """Single owned state object shared by every component.

    All mutations and snapshot reads happen while holding ``lock``.
    It is re-entrant so a component already holding it can call
    helpers that take it again.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.projects: dict[int, Project] = {}
        self.voters: dict[str, VoterRecord] = {}
        self.total_voters = 0
        self.resolved = False
        self.winner_id = 0
        self.prize_pool: Optional[PrizePool] = None
        self.podium: list[int] = []
        self.payouts: list[PayoutReceipt] = []

    @property
    def project_count(self) -> int:
        return len(self.projects)

    def next_project_id(self) -> int:
        return len(self.projects) + 1

    def is_valid_project_id(self, project_id: int) -> bool:
        return 0 < project_id <= len(self.projects)

    def history_of(self, voter: str) -> tuple[int, ...]:
        record = self.voters.get(voter)
        return tuple(record.project_ids) if record else ()

    def total_votes(self) -> int:
        return sum(p.vote_count for p in self.projects.values())

    def audit(self, max_votes: int = 2) -> list[str]:
        """Check every ledger invariant and return the violations found."""
        violations = []
        with self.lock:
            ids = sorted(self.projects)
            if ids != list(range(1, len(ids) + 1)):
                violations.append("project ids are not a dense 1..n range")

            for voter, record in self.voters.items():
                if len(record.project_ids) > max_votes:
                    violations.append(f"{voter} holds {len(record.project_ids)} votes")
                if len(set(record.project_ids)) != len(record.project_ids):
                    violations.append(f"{voter} voted twice for the same project")
                if record.vote_count != len(record.project_ids):
                    violations.append(f"{voter} vote_count does not match history")

            active = sum(1 for r in self.voters.values() if r.project_ids)
            if active != self.total_voters:
                violations.append(f"total_voters={self.total_voters} but {active} voters are active")

            voter_sum = sum(r.vote_count for r in self.voters.values())
            if self.total_votes() != voter_sum:
                violations.append(f"project tallies ({self.total_votes()}) != voter tallies ({voter_sum})")

        return violations
