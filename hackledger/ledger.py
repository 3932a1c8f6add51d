"""Vote Ledger — per-voter history and per-project tallies."""

from __future__ import annotations

import logging
from typing import Optional

from hackledger import config
from hackledger.exceptions import (
    AlreadyVotedForProject,
    HackLedgerError,
    MaxVotesReached,
    ProjectNotFound,
    VotingAlreadyResolved,
)
from hackledger.journal import VOTE_CAST, EventJournal
from hackledger.metrics import metrics
from hackledger.state import LedgerState, VoterRecord

logger = logging.getLogger("hackledger.ledger")


class VoteLedger:
    """Records votes under the per-voter cap.

    Each voter may back up to ``max_votes`` distinct projects. Votes are
    final: there is no change or retraction.
    """

    def __init__(self, state: LedgerState, journal: EventJournal, max_votes: Optional[int] = None):
        self._state = state
        self._journal = journal
        self.max_votes = max_votes if max_votes is not None else config.MAX_VOTES_PER_VOTER
        if self.max_votes < 1:
            raise ValueError(f"max_votes must be at least 1, got {self.max_votes}")

    def vote(self, voter: str, project_id: int) -> int:
        """Cast ``voter``'s vote for ``project_id``.

        Checks run in a fixed order (resolved, unknown project, duplicate,
        cap) and the whole check-then-write happens under the state lock.

        Returns:
            The project's new vote count.
        """
        state = self._state
        with state.lock:
            try:
                self._check(voter, project_id)
            except HackLedgerError as e:
                metrics.inc("hackledger_vote_rejections_total", labels={"reason": type(e).__name__})
                logger.info("Vote rejected: %s -> #%s (%s)", voter, project_id, type(e).__name__)
                raise

            project = state.projects[project_id]
            record = state.voters.get(voter)
            first_vote = record is None or record.vote_count == 0
            new_count = project.vote_count + 1

            entry = self._journal.append(
                VOTE_CAST,
                {"voter": voter, "project_id": project_id, "vote_count": new_count},
                publish=False,
            )

            if record is None:
                record = state.voters[voter] = VoterRecord()
            record.project_ids.append(project_id)
            record.vote_count += 1
            if first_vote:
                state.total_voters += 1
            project.vote_count = new_count

            metrics.inc("hackledger_votes_total")
            metrics.set_gauge("hackledger_total_voters", state.total_voters)
            logger.info("Vote cast: %s -> #%d (now %d)", voter, project_id, new_count)

        self._journal.publish(entry)
        return new_count

    def _check(self, voter: str, project_id: int) -> None:
        state = self._state
        if state.resolved:
            raise VotingAlreadyResolved()
        if not state.is_valid_project_id(project_id):
            raise ProjectNotFound(project_id)
        history = state.history_of(voter)
        if project_id in history:
            raise AlreadyVotedForProject(voter, project_id)
        if len(history) >= self.max_votes:
            raise MaxVotesReached(voter, self.max_votes)

    def get_my_votes(self, voter: str) -> tuple[int, ...]:
        """The voter's history in voting order. Never creates a record."""
        with self._state.lock:
            return self._state.history_of(voter)

    def has_voted_for(self, voter: str, project_id: int) -> bool:
        return project_id in self.get_my_votes(voter)

    def votes_remaining(self, voter: str) -> int:
        return max(0, self.max_votes - len(self.get_my_votes(voter)))

    @property
    def total_voters(self) -> int:
        return self._state.total_voters
